from __future__ import annotations

import re

from pydantic import EmailStr, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

OTP_LENGTH = 6
_DIGITS = re.compile(r"[0-9]+")
_email_adapter = TypeAdapter(EmailStr)


def validate_email(value: str | None) -> str:
    """Return the normalised address or raise ``ValidationError``."""

    candidate = (value or "").strip()
    if not candidate:
        raise ValidationError("Email is required")
    try:
        return _email_adapter.validate_python(candidate)
    except PydanticValidationError as exc:
        raise ValidationError("Please enter a valid email address") from exc


def validate_otp_token(value: str | None) -> str:
    token = value or ""
    if len(token) != OTP_LENGTH:
        raise ValidationError(f"OTP must be exactly {OTP_LENGTH} digits")
    if not _DIGITS.fullmatch(token):
        raise ValidationError("OTP must contain only numbers")
    return token


def mask_email(email: str) -> str:
    """Keep log lines useful without writing full addresses."""

    local, _, domain = email.partition("@")
    if not domain:
        return "***"
    return f"{local[:1]}***@{domain}"
