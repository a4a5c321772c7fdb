"""SQLAlchemy engine, session factory and the FastAPI session dependency."""

from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from starlette.requests import Request

from ..core.config import settings


def make_engine(db_url: str) -> Engine:
    # SQLite connections are shared across FastAPI worker threads.
    connect_args = {"check_same_thread": False} if db_url.startswith("sqlite") else {}
    return create_engine(db_url, connect_args=connect_args)


def make_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=bind)


engine = make_engine(settings.db_url)
SessionLocal = make_session_factory(engine)
Base = declarative_base()


def get_db(request: Request):
    """FastAPI dependency that yields a session and guarantees cleanup.

    Uses the session factory bound to the application's own database when
    ``create_app`` was given settings with a different ``db_url``.
    """

    factory = getattr(request.app.state, "session_factory", SessionLocal)
    db = factory()
    try:
        yield db
    finally:
        db.close()
