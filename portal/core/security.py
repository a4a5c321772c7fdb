from __future__ import annotations

import base64
import hashlib
import secrets
from datetime import datetime, timezone
from typing import Any

from jose import JWTError, jwt

ALGORITHM = "HS256"
ISSUER = "milestone-portal"


def _now() -> datetime:
    return datetime.now(tz=timezone.utc)


def encode_token(subject: str, *, secret: str, audience: str, token_type: str, issued_at: int, expires_at: int) -> str:
    payload: dict[str, Any] = {
        "sub": subject,
        "iat": issued_at,
        "exp": expires_at,
        "typ": token_type,
        "aud": audience,
        "iss": ISSUER,
    }
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_token(token: str, *, secret: str, audience: str, verify_type: str | None = None) -> dict[str, Any]:
    try:
        decoded = jwt.decode(token, secret, algorithms=[ALGORITHM], audience=audience, issuer=ISSUER)
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
    if not decoded.get("sub"):
        raise ValueError("Invalid token payload")
    if verify_type and decoded.get("typ") != verify_type:
        raise ValueError("Invalid token type")
    return decoded


def access_token_expired(token: str, *, leeway_seconds: int = 0, now: datetime | None = None) -> bool:
    """Read ``exp`` without verifying the signature; the provider verifies it.

    Unreadable tokens count as expired so the caller goes straight to a refresh.
    """

    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return True
    exp = claims.get("exp")
    if not isinstance(exp, (int, float)):
        return True
    current = (now or _now()).timestamp()
    return exp <= current + leeway_seconds


def generate_code_verifier() -> str:
    return secrets.token_urlsafe(48)


def code_challenge_for(verifier: str) -> str:
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
