"""Error taxonomy shared by the OTP flow, the provider client and the HTTP layer."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    VALIDATION = "validation_error"
    SESSION_EXPIRED = "session_expired"
    SIGNUP_DISABLED = "signup_disabled"
    RATE_LIMITED = "rate_limited"
    EXPIRED_CODE = "expired_code"
    INVALID_CODE = "invalid_code"
    PROVIDER = "provider_error"


class AuthError(Exception):
    """Base class for recoverable authentication failures."""

    kind: ErrorKind = ErrorKind.PROVIDER

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AuthError):
    """Malformed email or token; re-prompt the user."""

    kind = ErrorKind.VALIDATION


class SessionExpired(AuthError):
    """The pending OTP challenge is missing or past its expiry."""

    kind = ErrorKind.SESSION_EXPIRED


class ProviderError(AuthError):
    """The identity provider rejected a call or could not be reached."""

    kind = ErrorKind.PROVIDER

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ProviderNotConfigured(ProviderError):
    """Raised when identity provider credentials are missing."""


__all__ = [
    "AuthError",
    "ErrorKind",
    "ProviderError",
    "ProviderNotConfigured",
    "SessionExpired",
    "ValidationError",
]
