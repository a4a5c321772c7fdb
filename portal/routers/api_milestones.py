from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..crud.milestones import (
    create_milestone,
    delete_milestone,
    get_milestone,
    list_milestones,
    update_milestone,
)
from ..db.session import get_db
from ..deps.auth import require_admin, require_user
from ..schemas.milestone import MilestoneCreate, MilestoneOut, MilestoneUpdate
from ..services.identity import ProviderUser

router = APIRouter(prefix="/api/v1/milestones", tags=["milestones"], dependencies=[Depends(require_user)])


def _get_or_404(db: Session, milestone_id: str):
    milestone = get_milestone(db, milestone_id)
    if not milestone:
        raise HTTPException(404, "Milestone not found")
    return milestone


@router.get("", response_model=list[MilestoneOut])
def api_list_milestones(limit: int = 200, offset: int = 0, db: Session = Depends(get_db)):
    return list_milestones(db, limit=limit, offset=offset)


@router.get("/{milestone_id}", response_model=MilestoneOut)
def api_get_milestone(milestone_id: str, db: Session = Depends(get_db)):
    return _get_or_404(db, milestone_id)


@router.post("", response_model=MilestoneOut, status_code=201)
def api_create_milestone(
    payload: MilestoneCreate,
    db: Session = Depends(get_db),
    admin: ProviderUser = Depends(require_admin),
):
    try:
        return create_milestone(db, payload.model_dump(exclude_unset=True), created_by=admin.id)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


@router.patch("/{milestone_id}", response_model=MilestoneOut, dependencies=[Depends(require_admin)])
def api_update_milestone(milestone_id: str, payload: MilestoneUpdate, db: Session = Depends(get_db)):
    milestone = _get_or_404(db, milestone_id)
    return update_milestone(db, milestone, payload.model_dump(exclude_unset=True))


@router.delete("/{milestone_id}", dependencies=[Depends(require_admin)])
def api_delete_milestone(milestone_id: str, db: Session = Depends(get_db)):
    milestone = _get_or_404(db, milestone_id)
    delete_milestone(db, milestone)
    return {"status": "deleted"}
