import asyncio
from dataclasses import replace

import aiohttp
import pytest

from docchat import mailer


def test_otp_email_contains_the_code(settings):
    subject, html = mailer.render_otp_email(settings, "482913")

    assert subject == "Your Docs Chat sign-in code"
    assert "482913" in html
    assert "10 minutes" in html


def test_unreachable_mailpit_is_not_fatal(settings, monkeypatch):
    async def refused(*args):
        raise aiohttp.ClientConnectionError("connection refused")

    monkeypatch.setattr(mailer, "_send_mailpit", refused)

    asyncio.run(mailer.send_otp_email(replace(settings, resend_api_key=None), "dan@docchat.dev", "123456"))


def test_resend_failures_propagate(settings, monkeypatch):
    sent = []

    async def rejected(settings, to, subject, html):
        sent.append(to)
        raise RuntimeError("Failed to send email: invalid key")

    monkeypatch.setattr(mailer, "_send_resend", rejected)

    with pytest.raises(RuntimeError):
        asyncio.run(mailer.send_otp_email(replace(settings, resend_api_key="re_test"), "dan@docchat.dev", "123456"))
    assert sent == ["dan@docchat.dev"]
