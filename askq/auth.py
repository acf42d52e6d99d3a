import logging
import os
from datetime import timedelta
from fastapi import Request, Response, Depends
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from .database import get_db, dialect_insert
from .errors import ValidationError, InvalidOrExpiredCode, Unauthenticated
from .models import User, VerificationCode, Session as SessionModel, Conversation
from .utils import generate_otp, generate_token, send_email, now_utc
from typing import Optional

logger = logging.getLogger("askq")

SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "session")
SESSION_MAX_AGE_DAYS = int(os.getenv("SESSION_MAX_AGE_DAYS", "30"))
APP_ENV = os.getenv("APP_ENV", "development")
SECURE_COOKIE = os.getenv("SECURE_COOKIE", str(APP_ENV == "production")).lower() in ("1", "true", "yes")
OTP_TTL_MINUTES = int(os.getenv("OTP_TTL_MINUTES", "10"))
DEVICE_ID_HEADER = "x-device-id"


async def request_code(email: str, db: AsyncSession, otp_length: int = 6) -> None:
    """Issue a one-time code for ``email`` and dispatch it.

    The user row is created on first request; the response never reveals
    whether the address was already known. Earlier codes stay valid until
    they expire, verification always picks the newest match.
    """
    email = (email or "").strip()
    if not email or "@" not in email:
        raise ValidationError("Invalid email")

    stmt = dialect_insert(db, User.__table__).values(
        email=email, verified=False, created_at=now_utc()
    ).on_conflict_do_nothing(index_elements=["email"])
    await db.execute(stmt)

    code = generate_otp(otp_length)
    expires_at = now_utc() + timedelta(minutes=OTP_TTL_MINUTES)
    db.add(VerificationCode(email=email, code=code, expires_at=expires_at, used=False))
    await db.commit()

    await send_email(
        email,
        "Your verification code",
        f"Your code is: {code}\nExpires in {OTP_TTL_MINUTES} minutes.",
    )


async def verify_code(email: str, code: str, db: AsyncSession) -> str:
    """Consume the newest matching code and mint a session token."""
    email = (email or "").strip()
    code = (code or "").strip()
    if not email or not code:
        raise ValidationError("Missing email or code")

    q = await db.execute(
        select(VerificationCode)
        .where(
            VerificationCode.email == email,
            VerificationCode.code == code,
            VerificationCode.used.is_(False),
            VerificationCode.expires_at > now_utc(),
        )
        .order_by(VerificationCode.id.desc())
        .limit(1)
    )
    otp_row = q.scalar_one_or_none()
    if not otp_row:
        raise InvalidOrExpiredCode()

    now = now_utc()
    otp_row.used = True
    # older outstanding codes for this address die with the login they lost to
    await db.execute(
        update(VerificationCode)
        .where(
            VerificationCode.email == email,
            VerificationCode.id != otp_row.id,
            VerificationCode.used.is_(False),
            VerificationCode.expires_at > now,
        )
        .values(expires_at=now)
    )

    q2 = await db.execute(select(User).where(User.email == email))
    user = q2.scalar_one_or_none()
    if not user:
        user = User(email=email)
        db.add(user)
    user.verified = True
    await db.flush()

    token = generate_token()
    db.add(SessionModel(user_id=user.id, token=token))
    await db.commit()

    logger.info("Verified login for user %s", user.id)
    return token


async def resolve_session(token: Optional[str], db: AsyncSession) -> User:
    # sessions carry no server-side expiry; the cookie max-age is the only bound
    if not token:
        raise Unauthenticated()
    q = await db.execute(
        select(User).join(SessionModel, SessionModel.user_id == User.id).where(SessionModel.token == token)
    )
    user = q.scalar_one_or_none()
    if not user:
        raise Unauthenticated()
    return user


async def migrate_device_history(device_id: str, user_id: int, db: AsyncSession) -> int:
    """Hand every conversation owned by ``device_id`` over to ``user_id``."""
    result = await db.execute(
        update(Conversation)
        .where(Conversation.device_id == device_id)
        .values(user_id=user_id, device_id=None)
    )
    await db.commit()
    if result.rowcount:
        logger.info("Migrated %s conversation(s) from device %s to user %s", result.rowcount, device_id, user_id)
    return result.rowcount or 0


async def get_optional_user(request: Request, db: AsyncSession = Depends(get_db)) -> Optional[User]:
    token = request.cookies.get(SESSION_COOKIE_NAME)
    if not token:
        return None
    try:
        return await resolve_session(token, db)
    except Unauthenticated:
        return None


async def get_current_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    if user is None:
        raise Unauthenticated()
    return user


def get_device_id(request: Request) -> Optional[str]:
    device_id = (request.headers.get(DEVICE_ID_HEADER) or "").strip()
    return device_id or None


def set_session_cookie(response: Response, token: str, max_age: Optional[int] = None) -> None:
    if max_age is None:
        max_age = SESSION_MAX_AGE_DAYS * 24 * 60 * 60
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=SECURE_COOKIE,
        max_age=max_age,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
