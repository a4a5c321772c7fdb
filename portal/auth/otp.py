"""Email one-time-passcode sign-in: send, resend and verify.

Every operation returns an ``AuthResult``; expected failures never raise.
"""

from __future__ import annotations

import logging

from ..schemas.auth import AuthResult
from .challenge import OtpChallengeStore
from .cookies import CookieJar
from .errors import ErrorKind, ProviderError, SessionExpired, ValidationError
from .messages import DEFAULT_LOCALE, message_for
from .validation import mask_email, validate_email, validate_otp_token

logger = logging.getLogger(__name__)


def classify_send_error(exc: ProviderError) -> ErrorKind | None:
    text = exc.message.lower()
    if (
        "signups not allowed" in text
        or "signup" in text
        or "user not found" in text
        or ("otp" in text and "disabled" in text)
    ):
        return ErrorKind.SIGNUP_DISABLED
    if "rate limit" in text or exc.status_code == 429:
        return ErrorKind.RATE_LIMITED
    return None


def classify_verify_error(exc: ProviderError) -> ErrorKind | None:
    text = exc.message.lower()
    # GoTrue reports "Token has expired or is invalid"; expiry wins.
    if "expired" in text:
        return ErrorKind.EXPIRED_CODE
    if "invalid" in text:
        return ErrorKind.INVALID_CODE
    return None


class OtpFlow:
    def __init__(self, provider, store: OtpChallengeStore, jar: CookieJar, locale: str = DEFAULT_LOCALE) -> None:
        self._provider = provider
        self._store = store
        self._jar = jar
        self._locale = locale

    def _provider_failure(self, exc: ProviderError, kind: ErrorKind | None) -> AuthResult:
        if kind is None:
            return AuthResult.failed(ErrorKind.PROVIDER, exc.message)
        return AuthResult.failed(kind, message_for(kind, self._locale))

    async def send(self, email: str) -> AuthResult:
        try:
            address = validate_email(email)
        except ValidationError as exc:
            return AuthResult.from_error(exc)

        try:
            await self._provider.send_otp(address, create_user=False)
        except ProviderError as exc:
            kind = classify_send_error(exc)
            logger.info(
                "otp.send.failed",
                extra={"extra_data": {"email": mask_email(address), "reason": (kind or ErrorKind.PROVIDER).value}},
            )
            return self._provider_failure(exc, kind)

        self._store.start_challenge(address)
        return AuthResult.ok(message_for("otp_sent", self._locale))

    async def resend(self, email: str) -> AuthResult:
        # Cooldown is the caller's concern; the provider enforces its own rate limit.
        return await self.send(email)

    async def verify(self, token: str) -> AuthResult:
        email = self._store.read_challenge()
        if not email:
            return AuthResult.from_error(SessionExpired(message_for(ErrorKind.SESSION_EXPIRED, self._locale)))

        try:
            code = validate_otp_token(token)
        except ValidationError as exc:
            return AuthResult.from_error(exc)

        try:
            mutations = await self._provider.verify_otp(email, code)
        except ProviderError as exc:
            kind = classify_verify_error(exc)
            logger.info(
                "otp.verify.failed",
                extra={"extra_data": {"email": mask_email(email), "reason": (kind or ErrorKind.PROVIDER).value}},
            )
            return self._provider_failure(exc, kind)

        self._jar.stage(mutations)
        self._store.clear_challenge()
        logger.info("otp.verify.succeeded", extra={"extra_data": {"email": mask_email(email)}})
        return AuthResult.ok(message_for("otp_verified", self._locale))

    def pending_email(self) -> str | None:
        return self._store.read_challenge()


__all__ = ["OtpFlow", "classify_send_error", "classify_verify_error"]
