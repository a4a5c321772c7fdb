"""In-memory stand-in for the identity provider plus shared test settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from portal.auth.cookies import CookieMutation
from portal.auth.errors import ProviderError
from portal.core.config import AppSettings
from portal.services.identity import ProviderUser, SessionRefresh

ACCESS_COOKIE = "sb-access-token"
REFRESH_COOKIE = "sb-refresh-token"

ALICE = ProviderUser(id="user-alice", email="alice@example.com")


def make_settings(**overrides) -> AppSettings:
    values = {
        "SUPABASE_URL": "https://project.supabase.co",
        "SUPABASE_ANON_KEY": "anon-key",
        "APP_SECRET": "test-secret",
        "APP_ENV": "test",
    }
    values.update(overrides)
    return AppSettings(_env_file=None, **values)


@dataclass
class FakeIdentityProvider:
    # access token -> user
    sessions: Dict[str, ProviderUser] = field(default_factory=dict)
    # refresh token -> (new access token, new refresh token)
    refreshable: Dict[str, tuple] = field(default_factory=dict)
    unreachable: bool = False
    send_error: Optional[ProviderError] = None
    verify_error: Optional[ProviderError] = None
    calls: List[str] = field(default_factory=list)
    sent_to: List[str] = field(default_factory=list)

    def _session_mutations(self, access: str, refresh: str) -> List[CookieMutation]:
        return [
            CookieMutation(name=ACCESS_COOKIE, value=access, max_age=3600),
            CookieMutation(name=REFRESH_COOKIE, value=refresh, max_age=3600),
        ]

    async def get_current_user(self, cookies: Mapping[str, str]) -> SessionRefresh:
        self.calls.append("get_current_user")
        if self.unreachable:
            raise ProviderError("Identity provider is unreachable")
        user = self.sessions.get(cookies.get(ACCESS_COOKIE, ""))
        if user is not None:
            return SessionRefresh(user=user)
        pair = self.refreshable.get(cookies.get(REFRESH_COOKIE, ""))
        if pair is not None:
            access, refresh = pair
            return SessionRefresh(user=self.sessions[access], mutations=self._session_mutations(access, refresh))
        return SessionRefresh(user=None)

    async def send_otp(self, email: str, *, create_user: bool = False) -> None:
        self.calls.append("send_otp")
        assert create_user is False
        if self.send_error is not None:
            raise self.send_error
        self.sent_to.append(email)

    async def verify_otp(self, email: str, token: str) -> List[CookieMutation]:
        self.calls.append("verify_otp")
        if self.verify_error is not None:
            raise self.verify_error
        self.sessions["verified-access"] = ProviderUser(id=f"user-{email}", email=email)
        return self._session_mutations("verified-access", "verified-refresh")

    async def sign_out(self, cookies: Mapping[str, str]) -> List[CookieMutation]:
        self.calls.append("sign_out")
        return [CookieMutation.delete(ACCESS_COOKIE), CookieMutation.delete(REFRESH_COOKIE)]

    def authorize_url(self, provider, *, redirect_to, code_challenge, query_params=None) -> str:
        self.calls.append("authorize_url")
        if self.unreachable:
            raise ProviderError("Identity provider is not configured")
        return f"https://project.supabase.co/auth/v1/authorize?provider={provider}&code_challenge={code_challenge}"

    async def exchange_code(self, code: str, code_verifier: str) -> List[CookieMutation]:
        self.calls.append("exchange_code")
        if code != "good-code":
            raise ProviderError("invalid flow state")
        self.sessions["oauth-access"] = ALICE
        return self._session_mutations("oauth-access", "oauth-refresh")

    async def aclose(self) -> None:
        self.calls.append("aclose")
