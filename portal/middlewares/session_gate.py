"""Per-request session refresh and route gate.

Every gated request walks ``Init -> Refreshed -> {Allow, RedirectToLogin,
RedirectFromAuth}``. The provider lookup runs on every gated request, whatever
the route, because it is what keeps the token pair fresh; the redirect
decision only happens once it has resolved.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum
from urllib.parse import parse_qsl, urlencode, urlsplit

from starlette.datastructures import URL
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import RedirectResponse, Response

from ..auth.cookies import CookieJar
from ..auth.errors import ProviderError
from ..auth.oauth import safe_redirect_path
from ..auth.routes import RouteClass, RouteRules
from ..core.config import AppSettings
from ..services.identity import ProviderUser, SessionRefresh
from .request_id import gate_outcome_ctx_var, principal_ctx_var

logger = logging.getLogger("portal.gate")

REDIRECT_PARAM = "redirect"


class GateOutcome(str, Enum):
    ALLOW = "allow"
    REDIRECT_TO_LOGIN = "redirect_to_login"
    REDIRECT_FROM_AUTH = "redirect_from_auth"


@dataclass(frozen=True)
class GateDecision:
    outcome: GateOutcome
    location: str | None = None


def _query_without(url: URL, name: str) -> list[tuple[str, str]]:
    return [(key, value) for key, value in parse_qsl(url.query, keep_blank_values=True) if key != name]


def decide(url: URL, route_class: RouteClass, user: ProviderUser | None, login_path: str = "/login") -> GateDecision:
    """Pure redirect decision for a refreshed request."""

    if route_class is RouteClass.PROTECTED and user is None:
        params = _query_without(url, REDIRECT_PARAM)
        params.append((REDIRECT_PARAM, url.path))
        target = url.replace(path=login_path, query=urlencode(params))
        return GateDecision(GateOutcome.REDIRECT_TO_LOGIN, str(target))

    if route_class is RouteClass.AUTH_ONLY and user is not None:
        requested = dict(parse_qsl(url.query, keep_blank_values=True)).get(REDIRECT_PARAM)
        # The redirect target may carry its own query; it merges ahead of the remaining params.
        target = urlsplit(safe_redirect_path(requested))
        params = parse_qsl(target.query, keep_blank_values=True) + _query_without(url, REDIRECT_PARAM)
        location = url.replace(path=target.path, query=urlencode(params), fragment=target.fragment)
        return GateDecision(GateOutcome.REDIRECT_FROM_AUTH, str(location))

    return GateDecision(GateOutcome.ALLOW)


class SessionGateMiddleware(BaseHTTPMiddleware):
    """Refresh the provider session on every request and enforce route rules.

    Provider failures are treated as "no user": protected routes redirect to
    the login page instead of being served.
    """

    def __init__(self, app, settings: AppSettings, rules: RouteRules | None = None) -> None:  # type: ignore[override]
        super().__init__(app)
        self.settings = settings
        self.rules = rules or settings.route_rules
        self._skip = re.compile(settings.GATE_SKIP_PATTERN) if settings.GATE_SKIP_PATTERN else None

    def _should_skip(self, request: Request) -> bool:
        if not self.settings.provider_configured:
            return True
        return bool(self._skip and self._skip.search(request.url.path))

    async def _refresh(self, request: Request, jar: CookieJar) -> SessionRefresh:
        provider = request.app.state.identity_provider
        try:
            return await provider.get_current_user(jar.snapshot())
        except ProviderError as exc:
            logger.warning(
                "gate.provider_failed",
                extra={"extra_data": {"path": request.url.path, "error": exc.message}},
            )
            return SessionRefresh(user=None)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.user = None
        if self._should_skip(request):
            return await call_next(request)

        jar = CookieJar.from_request(request)
        refreshed = await self._refresh(request, jar)
        jar.stage(refreshed.mutations)

        user = refreshed.user
        request.state.user = user
        if refreshed.is_authenticated:
            principal_ctx_var.set(f"user:{user.id}")

        route_class = self.rules.classify(request.url.path)
        decision = decide(request.url, route_class, user, login_path=self.settings.LOGIN_PATH)
        request.state.gate_outcome = decision.outcome.value
        gate_outcome_ctx_var.set(decision.outcome.value)
        if decision.outcome is not GateOutcome.ALLOW:
            logger.info(
                "gate.redirect",
                extra={
                    "extra_data": {
                        "path": request.url.path,
                        "outcome": decision.outcome.value,
                        "location": decision.location,
                    }
                },
            )
            return jar.commit(RedirectResponse(url=decision.location, status_code=307))

        jar.forward(request)
        response = await call_next(request)
        return jar.commit(response)


__all__ = ["GateDecision", "GateOutcome", "SessionGateMiddleware", "decide"]
