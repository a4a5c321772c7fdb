"""Application factory and top-level wiring for the Milestone Portal.

Brings together configuration, the identity provider client, database
tables, middleware (request ids, session gate), routers and error handling.
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth.errors import AuthError
from .core.config import AppSettings, settings
from .core.errors import auth_exception_handler, http_exception_handler, validation_exception_handler
from .db.session import Base, SessionLocal, engine, make_engine, make_session_factory
from .middlewares import RequestIdMiddleware, SecurityHeadersMiddleware, SessionGateMiddleware
from .services.identity import IdentityProvider, SupabaseAuthClient

# Registers the tables with ``Base.metadata``.
from .models import milestone as _milestone  # noqa: F401


def create_app(
    app_settings: AppSettings | None = None,
    identity_provider: IdentityProvider | None = None,
) -> FastAPI:
    config = app_settings or settings
    provider = identity_provider or SupabaseAuthClient(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await provider.aclose()
        if db_engine is not engine:
            db_engine.dispose()

    app = FastAPI(title=config.APP_NAME, lifespan=lifespan)
    app.state.settings = config
    app.state.identity_provider = provider

    if config.db_url == settings.db_url:
        db_engine, session_factory = engine, SessionLocal
    else:
        db_engine = make_engine(config.db_url)
        session_factory = make_session_factory(db_engine)
    app.state.db_engine = db_engine
    app.state.session_factory = session_factory
    Base.metadata.create_all(bind=db_engine)

    # Added innermost first: request ids wrap the gate so gate logs carry them.
    app.add_middleware(SessionGateMiddleware, settings=config)
    app.add_middleware(SecurityHeadersMiddleware, hsts=config.cookie_secure)
    app.add_middleware(RequestIdMiddleware)

    from .routers import api_auth, api_milestones, auth_ui, pages

    app.include_router(auth_ui.router)
    app.include_router(pages.router)
    app.include_router(api_auth.router)
    app.include_router(api_milestones.router)

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(AuthError, auth_exception_handler)
    return app


__all__ = ["create_app"]
