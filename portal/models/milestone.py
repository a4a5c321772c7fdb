"""SQLAlchemy models for milestone records and the admin allow-list."""

from __future__ import annotations

from sqlalchemy import Column, Integer, Text

from ..db.session import Base


class Milestone(Base):
    """A dated event shown to every signed-in user; only admins edit it."""

    __tablename__ = "milestones"

    id = Column(Text, primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(Text, nullable=False, index=True)
    image_url = Column(Text, nullable=True)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)
    created_by = Column(Text, nullable=True)


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Text, nullable=False, unique=True, index=True)
    created_at = Column(Text, nullable=False)


__all__ = ["Admin", "Milestone"]
