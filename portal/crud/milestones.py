"""CRUD helpers for milestone records and the admin allow-list."""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import desc, select
from sqlalchemy.orm import Session

from ..models.milestone import Admin, Milestone


def _utcnow() -> str:
    return datetime.now(tz=timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def list_milestones(db: Session, limit: int = 200, offset: int = 0):
    stmt = (
        select(Milestone)
        .order_by(desc(Milestone.event_date), desc(Milestone.created_at))
        .limit(limit)
        .offset(offset)
    )
    return db.execute(stmt).scalars().all()


def get_milestone(db: Session, milestone_id: str) -> Milestone | None:
    return db.get(Milestone, milestone_id)


def create_milestone(db: Session, payload: dict, created_by: str | None = None) -> Milestone:
    title = (payload.get("title") or "").strip()
    if not title:
        raise ValueError("Title is required")
    event_date = (payload.get("event_date") or "").strip()
    if not event_date:
        raise ValueError("Invalid date format")
    now = _utcnow()
    milestone = Milestone(
        id=str(uuid4()),
        title=title,
        description=(payload.get("description") or None),
        event_date=event_date,
        image_url=(payload.get("image_url") or None),
        created_at=now,
        updated_at=now,
        created_by=created_by,
    )
    db.add(milestone)
    db.commit()
    db.refresh(milestone)
    return milestone


def update_milestone(db: Session, milestone: Milestone, payload: dict) -> Milestone:
    """Apply only the provided fields; blank optional text is stored as NULL."""

    if payload.get("title"):
        milestone.title = payload["title"].strip()
    if payload.get("event_date"):
        milestone.event_date = payload["event_date"]
    for field in ("description", "image_url"):
        if field in payload:
            setattr(milestone, field, payload.get(field) or None)
    milestone.updated_at = _utcnow()
    db.commit()
    db.refresh(milestone)
    return milestone


def delete_milestone(db: Session, milestone: Milestone) -> None:
    db.delete(milestone)
    db.commit()


def is_admin(db: Session, user_id: str | None) -> bool:
    if not user_id:
        return False
    stmt = select(Admin.id).where(Admin.user_id == user_id)
    return db.execute(stmt).first() is not None


def grant_admin(db: Session, user_id: str) -> Admin:
    existing = db.execute(select(Admin).where(Admin.user_id == user_id)).scalars().first()
    if existing:
        return existing
    admin = Admin(user_id=user_id, created_at=_utcnow())
    db.add(admin)
    db.commit()
    db.refresh(admin)
    return admin


def revoke_admin(db: Session, user_id: str) -> bool:
    existing = db.execute(select(Admin).where(Admin.user_id == user_id)).scalars().first()
    if not existing:
        return False
    db.delete(existing)
    db.commit()
    return True
