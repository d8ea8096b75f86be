"""
Passwordless sign-in routes (email one-time passcode).
"""
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from starlette.concurrency import run_in_threadpool

from ..config import Settings, get_settings
from ..dependencies import SESSION_COOKIE, get_current_user, session_token_from_request
from ..errors import InvalidOtpError
from ..mailer import send_otp_email
from ..models import User
from ..schemas import SendOtpBody, VerifyOtpBody
from ..services import auth_service
from ..logging_config import logger

router = APIRouter(prefix="/api/auth", tags=["auth"])


def _serialize_user(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "email_verified": user.email_verified,
    }


@router.post("/email-otp/send")
async def send_otp(payload: SendOtpBody, settings: Settings = Depends(get_settings)):
    """Email a 6-digit sign-in code; unknown addresses are signed up on verify."""
    otp = await run_in_threadpool(auth_service.create_otp, payload.email, settings)
    try:
        await send_otp_email(settings, auth_service.normalize_email(payload.email), otp)
    except Exception as e:
        logger.error("Failed to send sign-in code", exc_info=e)
        raise HTTPException(status_code=500, detail="Failed to send verification code")
    return {"success": True}


@router.post("/email-otp/verify")
async def verify_otp(
    payload: VerifyOtpBody,
    request: Request,
    response: Response,
    settings: Settings = Depends(get_settings),
):
    try:
        user, session = await run_in_threadpool(
            auth_service.verify_otp,
            payload.email,
            payload.otp,
            settings,
            request.client.host if request.client else None,
            request.headers.get("User-Agent"),
        )
    except InvalidOtpError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired code")

    response.set_cookie(
        SESSION_COOKIE,
        session.token,
        max_age=settings.session_ttl_seconds,
        httponly=True,
        samesite="lax",
    )
    return {
        "token": session.token,
        "expires_at": session.expires_at.isoformat(),
        "user": _serialize_user(user),
    }


@router.get("/session")
def get_session(request: Request, user: User = Depends(get_current_user)):
    session = auth_service.get_session(session_token_from_request(request))
    return {
        "user": _serialize_user(user),
        "session": {"expires_at": session.expires_at.isoformat()} if session else None,
    }


@router.post("/sign-out")
def sign_out(request: Request, response: Response, user: User = Depends(get_current_user)):
    auth_service.sign_out(session_token_from_request(request))
    response.delete_cookie(SESSION_COOKIE)
    return {"success": True}
