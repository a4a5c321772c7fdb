from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from ..core.config import AppSettings
from ..crud.milestones import is_admin
from ..db.session import get_db
from ..services.identity import IdentityProvider, ProviderUser


def get_app_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def get_identity_provider(request: Request) -> IdentityProvider:
    return request.app.state.identity_provider


def current_user(request: Request) -> ProviderUser | None:
    """The user resolved by the session gate for this request, if any."""

    return getattr(request.state, "user", None)


def require_user(user: ProviderUser | None = Depends(current_user)) -> ProviderUser:
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Login required")
    return user


def require_admin(user: ProviderUser = Depends(require_user), db: Session = Depends(get_db)) -> ProviderUser:
    if not is_admin(db, user.id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unauthorized. Admin access required.")
    return user
