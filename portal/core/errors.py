from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import JSONResponse, RedirectResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..auth.errors import AuthError, ErrorKind

# HTTP status for each recoverable auth failure surfaced by the API.
AUTH_ERROR_STATUS: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorKind.SESSION_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.SIGNUP_DISABLED: status.HTTP_403_FORBIDDEN,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.EXPIRED_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.INVALID_CODE: status.HTTP_400_BAD_REQUEST,
    ErrorKind.PROVIDER: status.HTTP_502_BAD_GATEWAY,
}


def status_for(kind: ErrorKind | None) -> int:
    if kind is None:
        return status.HTTP_200_OK
    return AUTH_ERROR_STATUS.get(kind, status.HTTP_400_BAD_REQUEST)


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == status.HTTP_401_UNAUTHORIZED:
        accept = (request.headers.get("accept") or "").lower()
        path = request.url.path
        if "text/html" in accept and not path.startswith("/api") and not path.startswith("/login"):
            query = urlencode({"redirect": path})
            return RedirectResponse(url=f"/login?{query}", status_code=status.HTTP_302_FOUND)
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        errors = exc.errors()
        first = errors[0].get("msg") if errors else None
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message=first or "Validation failed",
            details={"errors": [{key: err.get(key) for key in ("loc", "msg", "type")} for err in errors]},
        )
    raise exc


async def auth_exception_handler(request: Request, exc: AuthError):
    return ErrorEnvelope(status_code=status_for(exc.kind), code=exc.kind.value, message=exc.message)
