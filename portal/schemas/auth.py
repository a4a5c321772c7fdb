from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from ..auth.errors import AuthError, ErrorKind


class AuthResult(BaseModel):
    success: bool
    error: Optional[str] = None
    message: Optional[str] = None
    code: Optional[ErrorKind] = None

    model_config = {
        "json_schema_extra": {
            "example": {"success": False, "error": "OTP must contain only numbers", "code": "validation_error"}
        }
    }

    @classmethod
    def ok(cls, message: str | None = None) -> "AuthResult":
        return cls(success=True, message=message)

    @classmethod
    def failed(cls, kind: ErrorKind, error: str) -> "AuthResult":
        return cls(success=False, error=error, code=kind)

    @classmethod
    def from_error(cls, exc: AuthError) -> "AuthResult":
        return cls.failed(exc.kind, exc.message)


class OtpSendRequest(BaseModel):
    email: str = Field(default="", max_length=320)

    model_config = {"json_schema_extra": {"example": {"email": "someone@example.com"}}}


class OtpVerifyRequest(BaseModel):
    token: str = Field(default="", max_length=64)

    model_config = {"json_schema_extra": {"example": {"token": "123456"}}}


class OtpSessionOut(BaseModel):
    pending: bool
    email: Optional[str] = None


class UserOut(BaseModel):
    id: str
    email: Optional[str] = None
    is_admin: bool = False
