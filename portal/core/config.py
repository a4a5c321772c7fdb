from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Iterable

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ..auth.routes import RouteRules

DEFAULT_PROTECTED_ROUTES = ["/", "/account", "/dashboard", "/profile", "/settings"]
DEFAULT_AUTH_ONLY_ROUTES = ["/login", "/otp"]


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "Milestone Portal"
    APP_ENV: str = "dev"

    BASE_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent)
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent / "data")
    DB_URL: str | None = Field(default=None, validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    # Signs the OTP challenge cookie. MUST be long & random in production.
    APP_SECRET: str = "dev-insecure-secret-change-me"

    # ---- Identity provider (Supabase GoTrue)
    # Leaving either value empty disables the session gate entirely.
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: str = ""
    PROVIDER_TIMEOUT_SECONDS: float = 10.0
    REFRESH_LEEWAY_SECONDS: int = 30
    SITE_URL: str = Field(default="http://localhost:8000", validation_alias=AliasChoices("SITE_URL", "PUBLIC_SITE_URL"))

    SESSION_COOKIE_PREFIX: str = "sb"
    SESSION_MAX_AGE: int = 60 * 60 * 24 * 30

    OTP_COOKIE_NAME: str = "otp_session"
    OTP_MAX_AGE: int = 600

    # ---- Route gate
    PROTECTED_ROUTES: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_PROTECTED_ROUTES))
    AUTH_ONLY_ROUTES: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_AUTH_ONLY_ROUTES))
    LOGIN_PATH: str = "/login"
    GATE_SKIP_PATTERN: str = (
        r"^/(static/|favicon\.ico$|health$|metrics$)|\.(svg|png|jpg|jpeg|gif|webp)$"
    )

    MESSAGE_LOCALE: str = "en"

    @property
    def provider_configured(self) -> bool:
        return bool(self.SUPABASE_URL.strip() and self.SUPABASE_ANON_KEY.strip())

    @property
    def cookie_secure(self) -> bool:
        return self.APP_ENV.lower() == "production"

    @property
    def db_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR / 'portal.db'}"

    @property
    def route_rules(self) -> RouteRules:
        return RouteRules(protected=tuple(self.PROTECTED_ROUTES), auth_only=tuple(self.AUTH_ONLY_ROUTES))

    @field_validator("PROTECTED_ROUTES", "AUTH_ONLY_ROUTES", mode="before")
    @classmethod
    def parse_route_list(cls, value: Any) -> list[str]:
        if value in (None, "", []):
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        if isinstance(value, Iterable):
            return [str(item).strip() for item in value if str(item).strip()]
        raise TypeError("route lists must be a comma separated string or list")

    @field_validator("PROTECTED_ROUTES", "AUTH_ONLY_ROUTES")
    @classmethod
    def routes_are_absolute(cls, value: list[str]) -> list[str]:
        for route in value:
            if not route.startswith("/"):
                raise ValueError(f"route {route!r} must start with '/'")
        return value


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    # Building the rules here surfaces overlapping route sets at startup.
    settings.route_rules
    return settings


settings = get_settings()
