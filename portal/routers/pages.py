"""Signed-in landing pages, served as JSON view-models."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..crud.milestones import is_admin, list_milestones
from ..db.session import get_db
from ..deps.auth import require_user
from ..schemas.auth import UserOut
from ..schemas.milestone import MilestoneOut
from ..services.identity import ProviderUser

router = APIRouter(tags=["pages"])


@router.get("/")
def home_page(user: ProviderUser = Depends(require_user), db: Session = Depends(get_db)):
    milestones = [MilestoneOut.model_validate(item) for item in list_milestones(db)]
    return {
        "page": "home",
        "user": UserOut(id=user.id, email=user.email, is_admin=is_admin(db, user.id)),
        "milestones": milestones,
    }


@router.get("/account")
def account_page(user: ProviderUser = Depends(require_user), db: Session = Depends(get_db)):
    return {
        "page": "account",
        "user": UserOut(id=user.id, email=user.email, is_admin=is_admin(db, user.id)),
        "sign_out": "/logout",
    }
