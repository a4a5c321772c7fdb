"""Classify request paths into protected, auth-only and public routes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

ROOT = "/"


class RouteClass(str, Enum):
    PROTECTED = "protected"
    AUTH_ONLY = "auth_only"
    PUBLIC = "public"


def _matches_protected(path: str, route: str) -> bool:
    # The landing page must not swallow its siblings.
    if route == ROOT:
        return path == ROOT
    return path.startswith(route)


@dataclass(frozen=True)
class RouteRules:
    """Two disjoint, ordered rule sets evaluated protected-first.

    Protected entries match as plain string prefixes, so ``/account`` covers
    ``/account/billing`` and ``/accountability`` alike; the root entry matches
    only ``/`` itself. Auth-only entries are single pages and match exactly.
    """

    protected: tuple[str, ...]
    auth_only: tuple[str, ...]

    def __post_init__(self) -> None:
        overlap = [route for route in self.auth_only if self.is_protected(route)]
        if overlap:
            raise ValueError(f"auth-only routes overlap protected routes: {', '.join(overlap)}")

    def is_protected(self, path: str) -> bool:
        return any(_matches_protected(path, route) for route in self.protected)

    def is_auth_only(self, path: str) -> bool:
        return path in self.auth_only

    def classify(self, path: str) -> RouteClass:
        if self.is_protected(path):
            return RouteClass.PROTECTED
        if self.is_auth_only(path):
            return RouteClass.AUTH_ONLY
        return RouteClass.PUBLIC


def classify(path: str, rules: RouteRules) -> RouteClass:
    return rules.classify(path)


__all__ = ["RouteClass", "RouteRules", "classify"]
