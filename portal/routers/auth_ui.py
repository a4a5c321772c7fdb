"""Browser-facing sign-in, OAuth callback and sign-out routes.

Pages return small JSON view-models; rendering them is left to the client.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import RedirectResponse

from ..auth.challenge import OtpChallengeStore
from ..auth.cookies import CookieJar
from ..auth.messages import message_for
from ..auth.errors import ErrorKind
from ..auth.oauth import OAuthFailure, complete_oauth_sign_in, safe_redirect_path, start_oauth_sign_in
from ..core.config import AppSettings
from ..core.errors import ErrorEnvelope
from ..deps.auth import get_app_settings, get_identity_provider
from ..services.identity import IdentityProvider

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth-ui"])


@router.get("/login")
def login_page(redirect: str = "/"):
    target = safe_redirect_path(redirect)
    query = urlencode({"redirect": target}) if target != "/" else ""
    return {
        "page": "login",
        "redirect": target,
        "google_sign_in": f"/auth/google?{query}" if query else "/auth/google",
        "otp_endpoint": "/api/v1/auth/otp",
    }


@router.get("/otp")
def otp_page(request: Request, settings: AppSettings = Depends(get_app_settings)):
    store = OtpChallengeStore(CookieJar.from_request(request), settings)
    email = store.read_challenge()
    if email is None:
        return {
            "page": "otp",
            "pending": False,
            "error": message_for(ErrorKind.SESSION_EXPIRED, settings.MESSAGE_LOCALE),
        }
    return {"page": "otp", "pending": True, "email": email, "verify_endpoint": "/api/v1/auth/otp/verify"}


@router.get("/auth/google")
def google_sign_in(
    request: Request,
    redirect: str | None = None,
    settings: AppSettings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    jar = CookieJar.from_request(request)
    result = start_oauth_sign_in(provider, jar, settings, "google", next_path=redirect)
    if isinstance(result, OAuthFailure):
        return ErrorEnvelope(status_code=status.HTTP_502_BAD_GATEWAY, code="provider_error", message=result.message)
    return jar.commit(RedirectResponse(url=result.url, status_code=status.HTTP_303_SEE_OTHER))


def _public_origin(request: Request, settings: AppSettings) -> str:
    origin = f"{request.url.scheme}://{request.url.netloc}"
    if settings.APP_ENV.lower() in {"dev", "development"}:
        return origin
    forwarded_host = request.headers.get("x-forwarded-host")
    if forwarded_host:
        return f"https://{forwarded_host}"
    return origin


@router.get("/auth/callback")
async def oauth_callback(
    request: Request,
    code: str | None = None,
    next: str = "/",
    settings: AppSettings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    jar = CookieJar.from_request(request)
    origin = _public_origin(request, settings)
    if await complete_oauth_sign_in(provider, jar, settings, code):
        return jar.commit(RedirectResponse(url=f"{origin}{safe_redirect_path(next)}", status_code=status.HTTP_302_FOUND))
    return jar.commit(RedirectResponse(url=f"{origin}{settings.LOGIN_PATH}", status_code=status.HTTP_302_FOUND))


@router.api_route("/logout", methods=["GET", "POST"])
async def logout(
    request: Request,
    settings: AppSettings = Depends(get_app_settings),
    provider: IdentityProvider = Depends(get_identity_provider),
):
    jar = CookieJar.from_request(request)
    jar.stage(await provider.sign_out(jar.snapshot()))
    user = getattr(request.state, "user", None)
    if user is not None:
        logger.info("auth.signed_out", extra={"extra_data": {"user_id": user.id}})
    return jar.commit(RedirectResponse(url=settings.LOGIN_PATH, status_code=status.HTTP_303_SEE_OTHER))
