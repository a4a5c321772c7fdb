"""Pydantic schemas that describe milestone payloads for the API."""

from __future__ import annotations

from datetime import date
from typing import Optional

from pydantic import AnyHttpUrl, BaseModel, Field, TypeAdapter, field_validator

_url_adapter = TypeAdapter(AnyHttpUrl)
DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"


def _check_event_date(value: Optional[str]) -> Optional[str]:
    if value is None:
        return value
    try:
        date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError("Invalid date format") from exc
    return value


def _check_image_url(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    try:
        _url_adapter.validate_python(value)
    except ValueError as exc:
        raise ValueError("Invalid image URL") from exc
    return value


class MilestoneBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    event_date: str = Field(..., pattern=DATE_PATTERN)
    image_url: Optional[str] = None

    @field_validator("event_date")
    @classmethod
    def validate_event_date(cls, value: Optional[str]) -> Optional[str]:
        return _check_event_date(value)

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, value: Optional[str]) -> Optional[str]:
        return _check_image_url(value)


class MilestoneCreate(MilestoneBase):
    model_config = {
        "json_schema_extra": {
            "example": {
                "title": "Office opening",
                "description": "Ribbon cutting at the new site",
                "event_date": "2024-05-01",
                "image_url": "https://example.com/opening.jpg",
            }
        }
    }


class MilestoneUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    event_date: Optional[str] = Field(default=None, pattern=DATE_PATTERN)
    image_url: Optional[str] = None

    @field_validator("event_date")
    @classmethod
    def validate_event_date(cls, value: Optional[str]) -> Optional[str]:
        return _check_event_date(value)

    @field_validator("image_url")
    @classmethod
    def validate_image_url(cls, value: Optional[str]) -> Optional[str]:
        return _check_image_url(value)


class MilestoneOut(BaseModel):
    id: str
    title: str
    description: Optional[str] = None
    event_date: str
    image_url: Optional[str] = None
    created_at: str
    updated_at: str
    created_by: Optional[str] = None

    model_config = {"from_attributes": True}
