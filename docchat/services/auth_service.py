"""
Passwordless authentication service.
Issues email one-time passcodes, exchanges them for sessions and resolves
session tokens back to users.
"""
import hashlib
import hmac
import secrets
from datetime import timedelta
from typing import Optional, Tuple

from sqlalchemy import delete, select

from ..config import Settings
from ..db import SessionLocal
from ..errors import InvalidOtpError
from ..logging_config import logger
from ..models import AuthSession, User, Verification, utcnow


def _identifier(email: str) -> str:
    return f"sign-in-otp-{email}"


def _hash(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def normalize_email(email: str) -> str:
    return email.strip().lower()


def create_otp(email: str, settings: Settings) -> str:
    """
    Generate a fresh sign-in code for `email`, replacing any pending one.

    Only the hash is stored; the plain code is returned for delivery.
    """
    email = normalize_email(email)
    otp = str(secrets.randbelow(10 ** settings.otp_length)).zfill(settings.otp_length)

    with SessionLocal() as db, db.begin():
        db.execute(delete(Verification).where(Verification.identifier == _identifier(email)))
        db.add(Verification(
            identifier=_identifier(email),
            value=_hash(otp),
            expires_at=utcnow() + timedelta(seconds=settings.otp_ttl_seconds),
        ))

    logger.info("Created sign-in code", email=email)
    return otp


def verify_otp(
    email: str,
    otp: str,
    settings: Settings,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Tuple[User, AuthSession]:
    """
    Exchange a sign-in code for a session, creating the user on first sign-in.

    Raises:
        InvalidOtpError: no pending code, expired, wrong, or too many attempts
    """
    email = normalize_email(email)
    error = None

    # failures are recorded in the same transaction, so raise only after commit
    with SessionLocal() as db, db.begin():
        verification = db.execute(
            select(Verification).where(Verification.identifier == _identifier(email))
        ).scalars().first()

        if verification is None:
            error = "No pending code"
        elif verification.expires_at < utcnow() or verification.attempts >= settings.otp_max_attempts:
            db.delete(verification)
            error = "Code expired"
        elif not hmac.compare_digest(verification.value, _hash(otp.strip())):
            verification.attempts += 1
            error = "Invalid code"
        else:
            db.delete(verification)
            user, session = _start_session(db, email, settings, ip_address, user_agent)

    if error:
        logger.warning("Sign-in code rejected", email=email, reason=error)
        raise InvalidOtpError(error)

    logger.info("User signed in", user_id=user.id)
    return user, session


def _start_session(db, email, settings, ip_address, user_agent):
    user = db.execute(select(User).where(User.email == email)).scalars().first()
    if user is None:
        user = User(email=email, email_verified=True)
        db.add(user)
        db.flush()
        logger.info("Signed up new user", user_id=user.id)
    elif not user.email_verified:
        user.email_verified = True

    session = AuthSession(
        token=secrets.token_urlsafe(32),
        user_id=user.id,
        expires_at=utcnow() + timedelta(seconds=settings.session_ttl_seconds),
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db.add(session)
    return user, session


def get_user_for_token(token: str, settings: Settings) -> Optional[User]:
    """
    Resolve a session token. Returns None for unknown or expired sessions.

    Sessions are slid forward at most once per `session_update_age_seconds`.
    """
    with SessionLocal() as db, db.begin():
        session = db.execute(
            select(AuthSession).where(AuthSession.token == token)
        ).scalars().first()
        if session is None:
            return None

        now = utcnow()
        if session.expires_at <= now:
            db.delete(session)
            return None

        ttl = timedelta(seconds=settings.session_ttl_seconds)
        if session.expires_at - now < ttl - timedelta(seconds=settings.session_update_age_seconds):
            session.expires_at = now + ttl

        return db.get(User, session.user_id)


def get_session(token: str) -> Optional[AuthSession]:
    with SessionLocal() as db:
        return db.execute(select(AuthSession).where(AuthSession.token == token)).scalars().first()


def sign_out(token: str) -> None:
    with SessionLocal() as db, db.begin():
        db.execute(delete(AuthSession).where(AuthSession.token == token))
