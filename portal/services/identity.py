"""Client for the Supabase GoTrue REST API.

Session tokens are relayed as two cookies; this module is the only place that
knows their names and shape. Every call that changes the session returns a
list of ``CookieMutation`` values for the caller's ``CookieJar`` instead of
writing to a response.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol
from urllib.parse import urlencode

import httpx

from ..auth.cookies import CookieMutation
from ..auth.errors import ProviderError, ProviderNotConfigured
from ..core.config import AppSettings
from ..core.security import access_token_expired

logger = logging.getLogger(__name__)

# GoTrue answers these for tokens it no longer accepts; anything else is an outage.
_REJECTED = {400, 401, 403, 404}
UNREADABLE_RESPONSE = "Identity provider returned an unreadable response"


@dataclass(frozen=True)
class ProviderUser:
    id: str
    email: Optional[str] = None
    role: Optional[str] = None


@dataclass
class SessionRefresh:
    user: Optional[ProviderUser]
    mutations: List[CookieMutation] = field(default_factory=list)

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None


class IdentityProvider(Protocol):
    async def get_current_user(self, cookies: Mapping[str, str]) -> SessionRefresh: ...

    async def send_otp(self, email: str, *, create_user: bool = False) -> None: ...

    async def verify_otp(self, email: str, token: str) -> List[CookieMutation]: ...

    async def sign_out(self, cookies: Mapping[str, str]) -> List[CookieMutation]: ...

    def authorize_url(
        self,
        provider: str,
        *,
        redirect_to: str,
        code_challenge: str,
        query_params: Optional[Dict[str, str]] = None,
    ) -> str: ...

    async def exchange_code(self, code: str, code_verifier: str) -> List[CookieMutation]: ...

    async def aclose(self) -> None: ...


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("msg", "error_description", "message", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return response.reason_phrase or f"HTTP {response.status_code}"


def _raise_for_status(response: httpx.Response, context: str) -> None:
    if response.status_code < 400:
        return
    message = _error_message(response)
    if response.status_code >= 500:
        logger.error("Identity provider error %s during %s: %s", response.status_code, context, message)
    else:
        logger.info("Identity provider rejected %s (%s): %s", context, response.status_code, message)
    raise ProviderError(message, status_code=response.status_code)


def _json_object(response: httpx.Response, context: str) -> Dict[str, Any]:
    """Decode a successful response body, which must be a JSON object."""

    try:
        data = response.json()
    except ValueError as exc:
        logger.error("Identity provider sent a non-JSON body during %s (%s)", context, response.status_code)
        raise ProviderError(UNREADABLE_RESPONSE, status_code=response.status_code) from exc
    if not isinstance(data, dict):
        logger.error("Identity provider sent a non-object body during %s", context)
        raise ProviderError(UNREADABLE_RESPONSE, status_code=response.status_code)
    return data


def _user_from_payload(payload: Any) -> Optional[ProviderUser]:
    if not isinstance(payload, dict) or not payload.get("id"):
        return None
    return ProviderUser(id=str(payload["id"]), email=payload.get("email"), role=payload.get("role"))


class SupabaseAuthClient:
    """Thin async wrapper around the GoTrue endpoints the portal relies on."""

    def __init__(self, settings: AppSettings, client: Optional[httpx.AsyncClient] = None) -> None:
        self._settings = settings
        self._base_url = settings.SUPABASE_URL.rstrip("/") + "/auth/v1"
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(settings.PROVIDER_TIMEOUT_SECONDS))

    @property
    def access_cookie(self) -> str:
        return f"{self._settings.SESSION_COOKIE_PREFIX}-access-token"

    @property
    def refresh_cookie(self) -> str:
        return f"{self._settings.SESSION_COOKIE_PREFIX}-refresh-token"

    def _ensure_configured(self) -> None:
        if not self._settings.provider_configured:
            raise ProviderNotConfigured("Identity provider is not configured")

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self._settings.SUPABASE_ANON_KEY}
        headers["Authorization"] = f"Bearer {access_token or self._settings.SUPABASE_ANON_KEY}"
        return headers

    async def _send(self, method: str, path: str, context: str, **kwargs: Any) -> httpx.Response:
        self._ensure_configured()
        headers = kwargs.pop("headers", None) or self._headers()
        try:
            return await self._client.request(method, f"{self._base_url}{path}", headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("Identity provider unreachable during %s: %s", context, exc)
            raise ProviderError("Identity provider is unreachable") from exc

    def _session_mutations(self, session: Dict[str, Any]) -> List[CookieMutation]:
        access_token = session.get("access_token")
        refresh_token = session.get("refresh_token")
        if not all(isinstance(token, str) and token for token in (access_token, refresh_token)):
            raise ProviderError("Identity provider returned an incomplete session")
        secure = self._settings.cookie_secure
        max_age = self._settings.SESSION_MAX_AGE
        return [
            CookieMutation(name=self.access_cookie, value=access_token, max_age=max_age, secure=secure),
            CookieMutation(name=self.refresh_cookie, value=refresh_token, max_age=max_age, secure=secure),
        ]

    def _clear_mutations(self) -> List[CookieMutation]:
        secure = self._settings.cookie_secure
        return [
            CookieMutation.delete(self.access_cookie, secure=secure),
            CookieMutation.delete(self.refresh_cookie, secure=secure),
        ]

    async def _fetch_user(self, access_token: str) -> Optional[ProviderUser]:
        response = await self._send("GET", "/user", "get user", headers=self._headers(access_token))
        if response.status_code in _REJECTED:
            return None
        _raise_for_status(response, "get user")
        return _user_from_payload(_json_object(response, "get user"))

    async def _refresh_session(self, refresh_token: str) -> Optional[Dict[str, Any]]:
        response = await self._send(
            "POST",
            "/token",
            "refresh session",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        if response.status_code in _REJECTED:
            logger.info("Refresh token rejected (%s): %s", response.status_code, _error_message(response))
            return None
        _raise_for_status(response, "refresh session")
        return _json_object(response, "refresh session")

    async def get_current_user(self, cookies: Mapping[str, str]) -> SessionRefresh:
        """Validate the session cookies, refreshing them when the access token is stale.

        Returns no mutations when the current tokens are still good, a fresh
        token pair after a refresh, and deletions when the provider no longer
        accepts the session. Outages raise ``ProviderError``.
        """

        access_token = cookies.get(self.access_cookie)
        refresh_token = cookies.get(self.refresh_cookie)
        if not access_token and not refresh_token:
            return SessionRefresh(user=None)

        if access_token and not access_token_expired(
            access_token, leeway_seconds=self._settings.REFRESH_LEEWAY_SECONDS
        ):
            user = await self._fetch_user(access_token)
            if user is not None:
                return SessionRefresh(user=user)

        if not refresh_token:
            return SessionRefresh(user=None, mutations=self._clear_mutations())

        session = await self._refresh_session(refresh_token)
        if session is None:
            return SessionRefresh(user=None, mutations=self._clear_mutations())
        user = _user_from_payload(session.get("user"))
        if user is None:
            user = await self._fetch_user(session.get("access_token") or "")
        return SessionRefresh(user=user, mutations=self._session_mutations(session))

    async def send_otp(self, email: str, *, create_user: bool = False) -> None:
        response = await self._send("POST", "/otp", "send otp", json={"email": email, "create_user": create_user})
        _raise_for_status(response, "send otp")

    async def verify_otp(self, email: str, token: str) -> List[CookieMutation]:
        response = await self._send(
            "POST", "/verify", "verify otp", json={"type": "email", "email": email, "token": token}
        )
        _raise_for_status(response, "verify otp")
        return self._session_mutations(_json_object(response, "verify otp"))

    async def sign_out(self, cookies: Mapping[str, str]) -> List[CookieMutation]:
        """Revoke the session at the provider; the local cookies are cleared regardless."""

        access_token = cookies.get(self.access_cookie)
        if access_token and self._settings.provider_configured:
            try:
                response = await self._send(
                    "POST", "/logout", "sign out", headers=self._headers(access_token)
                )
                if response.status_code not in _REJECTED:
                    _raise_for_status(response, "sign out")
            except ProviderError as exc:
                logger.warning("Sign-out could not be confirmed by the provider: %s", exc)
        return self._clear_mutations()

    def authorize_url(
        self,
        provider: str,
        *,
        redirect_to: str,
        code_challenge: str,
        query_params: Optional[Dict[str, str]] = None,
    ) -> str:
        self._ensure_configured()
        params: Dict[str, str] = {
            "provider": provider,
            "redirect_to": redirect_to,
            "code_challenge": code_challenge,
            "code_challenge_method": "s256",
        }
        params.update(query_params or {})
        return f"{self._base_url}/authorize?{urlencode(params)}"

    async def exchange_code(self, code: str, code_verifier: str) -> List[CookieMutation]:
        response = await self._send(
            "POST",
            "/token",
            "exchange code",
            params={"grant_type": "pkce"},
            json={"auth_code": code, "code_verifier": code_verifier},
        )
        _raise_for_status(response, "exchange code")
        return self._session_mutations(_json_object(response, "exchange code"))

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["IdentityProvider", "ProviderUser", "SessionRefresh", "SupabaseAuthClient"]
