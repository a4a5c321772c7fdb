"""Pending OTP challenge carried in a signed, self-expiring cookie."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from ..core.config import AppSettings
from ..core.security import decode_token, encode_token
from .cookies import CookieJar, CookieMutation
from .validation import mask_email, validate_email

AUDIENCE = "otp-challenge"
TOKEN_TYPE = "otp_challenge"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OtpChallenge:
    email: str
    created_at: datetime


class OtpChallengeStore:
    """Read/write the single pending challenge for this client.

    The cookie is the only record of which address is mid-verification. Its
    value is a JWT signed with ``APP_SECRET`` whose ``exp`` matches the cookie
    max-age, so a stale or edited cookie reads back as "no challenge".
    """

    def __init__(self, jar: CookieJar, settings: AppSettings, clock: Callable[[], float] = time.time) -> None:
        self._jar = jar
        self._settings = settings
        self._clock = clock

    @property
    def cookie_name(self) -> str:
        return self._settings.OTP_COOKIE_NAME

    def start_challenge(self, email: str) -> OtpChallenge:
        address = validate_email(email)
        now = int(self._clock())
        value = encode_token(
            address,
            secret=self._settings.APP_SECRET,
            audience=AUDIENCE,
            token_type=TOKEN_TYPE,
            issued_at=now,
            expires_at=now + self._settings.OTP_MAX_AGE,
        )
        # Overwrites any earlier challenge: one pending address per client.
        self._jar.stage(
            [
                CookieMutation(
                    name=self.cookie_name,
                    value=value,
                    max_age=self._settings.OTP_MAX_AGE,
                    path="/",
                    secure=self._settings.cookie_secure,
                    httponly=True,
                    samesite="lax",
                )
            ]
        )
        logger.info("otp.challenge.started", extra={"extra_data": {"email": mask_email(address)}})
        return OtpChallenge(email=address, created_at=datetime.fromtimestamp(now, tz=timezone.utc))

    def load(self) -> OtpChallenge | None:
        raw = self._jar.get(self.cookie_name)
        if not raw:
            return None
        try:
            claims = decode_token(raw, secret=self._settings.APP_SECRET, audience=AUDIENCE, verify_type=TOKEN_TYPE)
        except ValueError:
            return None
        return OtpChallenge(email=claims["sub"], created_at=datetime.fromtimestamp(int(claims["iat"]), tz=timezone.utc))

    def read_challenge(self) -> str | None:
        challenge = self.load()
        return challenge.email if challenge else None

    def clear_challenge(self) -> None:
        self._jar.stage([CookieMutation.delete(self.cookie_name, secure=self._settings.cookie_secure)])


__all__ = ["OtpChallenge", "OtpChallengeStore"]
