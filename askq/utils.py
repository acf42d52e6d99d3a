import secrets
from datetime import datetime
import logging
import os
from email.message import EmailMessage

import aiosmtplib

from .errors import EmailDispatchError

logger = logging.getLogger("askq")


def generate_otp(length: int = 6) -> str:
    """Generate a numeric OTP of given length (no leading zero)."""
    range_start = 10 ** (length - 1)
    range_end = (10 ** length) - 1
    return str(range_start + secrets.randbelow(range_end - range_start + 1))


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


async def send_email(to_email: str, subject: str, body: str) -> None:
    """Send email using SMTP asynchronously via aiosmtplib.

    Uses environment variables: SMTP_HOST, SMTP_PORT, SMTP_USER, SMTP_PASS, SMTP_FROM.
    If SMTP_HOST is not configured, falls back to logging the message.
    Raises EmailDispatchError when the SMTP transport fails.
    """
    smtp_host = os.getenv("SMTP_HOST")
    if not smtp_host:
        logger.info("[send_email - simulated] To: %s Subject: %s Body: %s", to_email, subject, body)
        return

    smtp_port = int(os.getenv("SMTP_PORT", "587"))
    smtp_user = os.getenv("SMTP_USER")
    smtp_pass = os.getenv("SMTP_PASS")
    smtp_from = os.getenv("SMTP_FROM", smtp_user or f"no-reply@{smtp_host}")

    msg = EmailMessage()
    msg["From"] = smtp_from
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        await aiosmtplib.send(
            msg,
            hostname=smtp_host,
            port=smtp_port,
            username=smtp_user,
            password=smtp_pass,
            use_tls=smtp_port == 465,
            start_tls=smtp_port != 465,
        )
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.exception("Failed to send email to %s: %s", to_email, e)
        raise EmailDispatchError() from e
    logger.info("[send_email] Sent to %s via %s:%s", to_email, smtp_host, smtp_port)


def now_utc() -> datetime:
    return datetime.utcnow()


def client_ip(headers) -> str:
    """First x-forwarded-for entry, then x-real-ip, then the shared "unknown" bucket."""
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return "unknown"
