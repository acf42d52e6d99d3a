from unittest.mock import patch, AsyncMock

import aiosmtplib
import pytest

from askq import utils
from askq.errors import EmailDispatchError


def test_generate_otp_is_six_digits():
    for _ in range(50):
        code = utils.generate_otp()
        assert len(code) == 6
        assert code.isdigit()
        assert code[0] != "0"


def test_generate_token_is_unique_hex():
    tokens = {utils.generate_token() for _ in range(20)}
    assert len(tokens) == 20
    assert all(len(t) == 64 for t in tokens)
    int(next(iter(tokens)), 16)


@pytest.mark.asyncio
async def test_send_email_without_smtp_only_logs(monkeypatch):
    monkeypatch.delenv("SMTP_HOST", raising=False)
    with patch("askq.utils.aiosmtplib.send", new=AsyncMock()) as mock_send:
        await utils.send_email("ada@example.com", "Subject", "Body")
    mock_send.assert_not_awaited()


@pytest.mark.asyncio
async def test_send_email_uses_smtp(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("SMTP_USER", "mailer@example.com")
    with patch("askq.utils.aiosmtplib.send", new=AsyncMock()) as mock_send:
        await utils.send_email("ada@example.com", "Your verification code", "Your code is: 123456")

    msg = mock_send.call_args.args[0]
    assert msg["To"] == "ada@example.com"
    assert msg["From"] == "mailer@example.com"
    assert mock_send.call_args.kwargs["hostname"] == "smtp.example.com"
    assert mock_send.call_args.kwargs["start_tls"] is True


@pytest.mark.asyncio
async def test_send_email_failure_raises(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    failing = AsyncMock(side_effect=aiosmtplib.SMTPException("boom"))
    with patch("askq.utils.aiosmtplib.send", new=failing):
        with pytest.raises(EmailDispatchError):
            await utils.send_email("ada@example.com", "Subject", "Body")


def test_client_ip_precedence():
    assert utils.client_ip({"x-forwarded-for": " 203.0.113.5 , 10.0.0.1"}) == "203.0.113.5"
    assert utils.client_ip({"x-forwarded-for": "", "x-real-ip": "10.0.0.2"}) == "10.0.0.2"
    assert utils.client_ip({}) == "unknown"
