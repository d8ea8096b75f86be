"""
Outgoing email.
Resend in production (RESEND_API_KEY set), the Mailpit HTTP API otherwise.
"""
import asyncio

import aiohttp

from .config import Settings
from .logging_config import logger

RESEND_URL = "https://api.resend.com/emails"


async def _send_resend(settings: Settings, to: str, subject: str, html: str) -> None:
    async with aiohttp.ClientSession() as session:
        async with session.post(
            RESEND_URL,
            headers={"Authorization": f"Bearer {settings.resend_api_key}"},
            json={
                "from": f"{settings.mail_from_name} <{settings.mail_from_address}>",
                "to": [to],
                "subject": subject,
                "html": html,
            },
        ) as r:
            if not r.ok:
                error = await r.text()
                raise RuntimeError(f"Failed to send email: {error}")


async def _send_mailpit(settings: Settings, to: str, subject: str, html: str) -> None:
    async with aiohttp.ClientSession() as session:
        async with session.post(
            f"http://{settings.smtp_host}:{settings.mailpit_port}/api/v1/send",
            json={
                "From": {"Email": settings.mail_from_address, "Name": settings.mail_from_name},
                "To": [{"Email": to}],
                "Subject": subject,
                "HTML": html,
            },
        ) as r:
            if not r.ok:
                raise RuntimeError(f"Mailpit error: {await r.text()}")


async def send_email(settings: Settings, to: str, subject: str, html: str) -> None:
    """
    Deliver one HTML email.

    Resend failures propagate. In development an unreachable Mailpit only
    logs the message, so sign-in still works from the console.
    """
    if settings.resend_api_key:
        await _send_resend(settings, to, subject, html)
        logger.info("Email sent via Resend", to=to)
        return

    try:
        await _send_mailpit(settings, to, subject, html)
        logger.info("Email sent via Mailpit", to=to)
    except (aiohttp.ClientError, asyncio.TimeoutError, RuntimeError) as e:
        logger.warning("Mailpit not available, logging email instead",
                       to=to, subject=subject, html=html, error=str(e))


def render_otp_email(settings: Settings, otp: str):
    """Return (subject, html) for a sign-in code."""
    subject = f"Your {settings.mail_from_name} sign-in code"
    minutes = settings.otp_ttl_seconds // 60
    html = f"""
        <!DOCTYPE html>
        <html>
        <head><meta charset="utf-8"><title>{subject}</title></head>
        <body style="font-family: sans-serif; padding: 20px;">
          <h1 style="color: #333;">Your verification code</h1>
          <p>Use this code to sign in to {settings.mail_from_name}:</p>
          <div style="font-size: 32px; font-weight: bold; letter-spacing: 8px; padding: 20px; background: #f5f5f5; text-align: center; margin: 20px 0;">
            {otp}
          </div>
          <p>This code expires in {minutes} minutes.</p>
          <p>If you didn't request this code, you can safely ignore this email.</p>
        </body>
        </html>
    """
    return subject, html


async def send_otp_email(settings: Settings, to: str, otp: str) -> None:
    subject, html = render_otp_email(settings, otp)
    await send_email(settings, to, subject, html)
