"""OTP send/resend/verify against an in-memory provider."""

import asyncio
import os
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from portal.auth.challenge import OtpChallengeStore
from portal.auth.cookies import CookieJar
from portal.auth.errors import ErrorKind, ProviderError
from portal.auth.messages import message_for
from portal.auth.otp import OtpFlow, classify_send_error, classify_verify_error
from fake_provider import ACCESS_COOKIE, FakeIdentityProvider, make_settings


def _build(provider=None, locale="en"):
    settings = make_settings()
    provider = provider or FakeIdentityProvider()
    jar = CookieJar()
    store = OtpChallengeStore(jar, settings)
    return OtpFlow(provider, store, jar, locale=locale), provider, jar


def test_send_starts_challenge_without_creating_users():
    flow, provider, jar = _build()
    result = asyncio.run(flow.send("user@x.com"))
    assert result.success is True
    assert result.message == "Verification code sent to your email"
    assert provider.sent_to == ["user@x.com"]
    assert flow.pending_email() == "user@x.com"


def test_send_rejects_malformed_email_before_provider():
    flow, provider, jar = _build()
    result = asyncio.run(flow.send("user@"))
    assert result.success is False
    assert result.code is ErrorKind.VALIDATION
    assert result.error == "Please enter a valid email address"
    assert provider.calls == []
    assert jar.pending == []


@pytest.mark.parametrize(
    "provider_message, kind",
    [
        ("Signups not allowed for otp", ErrorKind.SIGNUP_DISABLED),
        ("User not found", ErrorKind.SIGNUP_DISABLED),
        ("OTP sign-in is disabled", ErrorKind.SIGNUP_DISABLED),
        ("email rate limit exceeded", ErrorKind.RATE_LIMITED),
    ],
)
def test_send_maps_provider_errors(provider_message, kind):
    provider = FakeIdentityProvider(send_error=ProviderError(provider_message, status_code=400))
    flow, _, jar = _build(provider)
    result = asyncio.run(flow.send("user@x.com"))
    assert result.success is False
    assert result.code is kind
    assert result.error == message_for(kind)
    assert flow.pending_email() is None
    assert jar.pending == []


def test_send_falls_back_to_raw_provider_message():
    provider = FakeIdentityProvider(send_error=ProviderError("Database error saving new user", status_code=500))
    flow, _, _ = _build(provider)
    result = asyncio.run(flow.send("user@x.com"))
    assert result.code is ErrorKind.PROVIDER
    assert result.error == "Database error saving new user"


def test_status_429_is_rate_limited_even_without_wording():
    assert classify_send_error(ProviderError("Too Many Requests", status_code=429)) is ErrorKind.RATE_LIMITED


def test_signup_disabled_message_is_localised():
    provider = FakeIdentityProvider(send_error=ProviderError("Signups not allowed for otp"))
    flow, _, _ = _build(provider, locale="id")
    result = asyncio.run(flow.send("user@x.com"))
    assert result.error.startswith("Pendaftaran tidak dibuka")


def test_resend_behaves_like_send():
    flow, provider, _ = _build()
    asyncio.run(flow.send("user@x.com"))
    result = asyncio.run(flow.resend("user@x.com"))
    assert result.success is True
    assert provider.sent_to == ["user@x.com", "user@x.com"]


def test_verify_without_send_is_session_expired():
    flow, provider, _ = _build()
    result = asyncio.run(flow.verify("123456"))
    assert result.success is False
    assert result.code is ErrorKind.SESSION_EXPIRED
    assert "verify_otp" not in provider.calls


@pytest.mark.parametrize(
    "token, message",
    [
        ("12a456", "OTP must contain only numbers"),
        ("12345", "OTP must be exactly 6 digits"),
        ("1234567", "OTP must be exactly 6 digits"),
        ("", "OTP must be exactly 6 digits"),
        (" 123456 ", "OTP must be exactly 6 digits"),
        ("12345 ", "OTP must contain only numbers"),
        ("12345\n", "OTP must contain only numbers"),
    ],
)
def test_verify_rejects_malformed_token_without_provider(token, message):
    flow, provider, _ = _build()
    asyncio.run(flow.send("user@x.com"))
    result = asyncio.run(flow.verify(token))
    assert result.code is ErrorKind.VALIDATION
    assert result.error == message
    assert "verify_otp" not in provider.calls


def test_verify_invalid_code_keeps_challenge():
    provider = FakeIdentityProvider(verify_error=ProviderError("Token is invalid", status_code=403))
    flow, _, jar = _build(provider)
    asyncio.run(flow.send("user@x.com"))
    result = asyncio.run(flow.verify("000000"))
    assert result.success is False
    assert result.code is ErrorKind.INVALID_CODE
    assert result.error == "Invalid verification code. Please check and try again."
    assert flow.pending_email() == "user@x.com"
    assert ACCESS_COOKIE not in jar.snapshot()


def test_verify_expired_code_wins_over_invalid():
    error = ProviderError("Token has expired or is invalid", status_code=403)
    assert classify_verify_error(error) is ErrorKind.EXPIRED_CODE
    assert classify_verify_error(ProviderError("Something else")) is None


def test_verify_success_sets_session_and_clears_challenge():
    flow, provider, jar = _build()
    asyncio.run(flow.send("user@x.com"))
    result = asyncio.run(flow.verify("123456"))
    assert result.success is True
    assert result.message == "Successfully verified"
    assert jar.get(ACCESS_COOKIE) == "verified-access"
    assert flow.pending_email() is None
    assert jar.pending[-1].name == "otp_session"
    assert jar.pending[-1].is_deletion
