"""Collect-then-commit cookie writes for the current request/response pair.

Provider calls hand back lists of ``CookieMutation`` values instead of writing
to a response themselves. A ``CookieJar`` accumulates them, keeps a request
view that reflects every staged write (so later reads in the same request see
the refreshed tokens), and writes them all to the outgoing response in a
single ``commit`` step. If a provider call fails nothing is staged, so a
response never carries half of a token set.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Literal, Mapping

from starlette.requests import Request
from starlette.responses import Response

SameSite = Literal["lax", "strict", "none"]


@dataclass(frozen=True)
class CookieMutation:
    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = True
    samesite: SameSite = "lax"

    @property
    def is_deletion(self) -> bool:
        return self.value == "" or self.max_age == 0

    @classmethod
    def delete(cls, name: str, *, path: str = "/", secure: bool = False, domain: str | None = None) -> "CookieMutation":
        return cls(name=name, value="", max_age=0, path=path, secure=secure, domain=domain)


@dataclass
class CookieJar:
    """Request-scoped accumulator for cookie mutations."""

    cookies: dict[str, str] = field(default_factory=dict)
    pending: list[CookieMutation] = field(default_factory=list)

    @classmethod
    def from_request(cls, request: Request) -> "CookieJar":
        return cls(cookies=dict(request.cookies))

    @classmethod
    def from_mapping(cls, cookies: Mapping[str, str]) -> "CookieJar":
        return cls(cookies=dict(cookies))

    def get(self, name: str) -> str | None:
        return self.cookies.get(name)

    def snapshot(self) -> dict[str, str]:
        return dict(self.cookies)

    def stage(self, mutations: Iterable[CookieMutation]) -> None:
        for mutation in mutations:
            if mutation.is_deletion:
                self.cookies.pop(mutation.name, None)
            else:
                self.cookies[mutation.name] = mutation.value
            self.pending.append(mutation)

    def forward(self, request: Request) -> None:
        """Rewrite the downstream request's ``Cookie`` header from the jar view."""

        if not self.pending:
            return
        headers = [(key, value) for key, value in request.scope["headers"] if key != b"cookie"]
        if self.cookies:
            header = "; ".join(f"{name}={value}" for name, value in self.cookies.items())
            headers.append((b"cookie", header.encode("latin-1")))
        request.scope["headers"] = headers

    def commit(self, response: Response) -> Response:
        if not self.pending:
            return response
        for mutation in self.pending:
            if mutation.is_deletion:
                response.delete_cookie(
                    mutation.name,
                    path=mutation.path,
                    domain=mutation.domain,
                    secure=mutation.secure,
                    httponly=mutation.httponly,
                    samesite=mutation.samesite,
                )
            else:
                response.set_cookie(
                    mutation.name,
                    mutation.value,
                    max_age=mutation.max_age,
                    path=mutation.path,
                    domain=mutation.domain,
                    secure=mutation.secure,
                    httponly=mutation.httponly,
                    samesite=mutation.samesite,
                )
        # Responses that rotate credentials must never be cached by a shared proxy.
        response.headers["Cache-Control"] = "private, no-store"
        self.pending.clear()
        return response


__all__ = ["CookieJar", "CookieMutation"]
