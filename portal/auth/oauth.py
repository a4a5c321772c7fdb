"""Google OAuth sign-in initiation and callback (PKCE)."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union
from urllib.parse import urlencode

from ..core.config import AppSettings
from ..core.security import code_challenge_for, generate_code_verifier
from .cookies import CookieJar, CookieMutation
from .errors import ProviderError

logger = logging.getLogger(__name__)

VERIFIER_MAX_AGE = 600
GOOGLE_QUERY_PARAMS = {"access_type": "offline", "prompt": "consent"}


@dataclass(frozen=True)
class OAuthRedirect:
    url: str


@dataclass(frozen=True)
class OAuthFailure:
    message: str


SignInResult = Union[OAuthRedirect, OAuthFailure]


def verifier_cookie_name(settings: AppSettings) -> str:
    return f"{settings.SESSION_COOKIE_PREFIX}-code-verifier"


def safe_redirect_path(target: str | None, default: str = "/") -> str:
    """Only same-origin absolute paths survive; everything else becomes ``default``."""

    if not target or not target.startswith("/") or target.startswith("//") or "\\" in target:
        return default
    return target


def start_oauth_sign_in(
    provider,
    jar: CookieJar,
    settings: AppSettings,
    oauth_provider: str = "google",
    next_path: str | None = None,
) -> SignInResult:
    verifier = generate_code_verifier()
    redirect_to = f"{settings.SITE_URL.rstrip('/')}/auth/callback"
    if next_path and safe_redirect_path(next_path) != "/":
        redirect_to = f"{redirect_to}?{urlencode({'next': safe_redirect_path(next_path)})}"
    try:
        url = provider.authorize_url(
            oauth_provider,
            redirect_to=redirect_to,
            code_challenge=code_challenge_for(verifier),
            query_params=dict(GOOGLE_QUERY_PARAMS) if oauth_provider == "google" else None,
        )
    except ProviderError as exc:
        logger.warning("OAuth sign-in could not start: %s", exc.message)
        return OAuthFailure(exc.message)
    if not url:
        return OAuthFailure("Failed to get OAuth URL")
    jar.stage(
        [
            CookieMutation(
                name=verifier_cookie_name(settings),
                value=verifier,
                max_age=VERIFIER_MAX_AGE,
                secure=settings.cookie_secure,
            )
        ]
    )
    return OAuthRedirect(url)


async def complete_oauth_sign_in(provider, jar: CookieJar, settings: AppSettings, code: str | None) -> bool:
    """Exchange ``code`` for a session; stage the session cookies on success."""

    name = verifier_cookie_name(settings)
    verifier = jar.get(name)
    if not code or not verifier:
        return False
    try:
        mutations = await provider.exchange_code(code, verifier)
    except ProviderError as exc:
        logger.warning("OAuth code exchange failed: %s", exc.message)
        return False
    jar.stage(mutations)
    jar.stage([CookieMutation.delete(name, secure=settings.cookie_secure)])
    return True


__all__ = [
    "OAuthFailure",
    "OAuthRedirect",
    "SignInResult",
    "complete_oauth_sign_in",
    "safe_redirect_path",
    "start_oauth_sign_in",
]
