"""Event board schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class EventCreate(BaseModel):
    """Schema for posting an event to a flat."""

    title: str = Field(..., min_length=1, max_length=255)
    time: datetime
    description: str | None = Field(None, max_length=5000)

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("title must not be empty")
        return stripped


class EventRead(BaseModel):
    """Schema for reading an event (response)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    flat_id: UUID
    title: str
    time: datetime = Field(validation_alias=AliasChoices("starts_at", "time"))
    description: str | None = None
    creator_id: int
    created_at: datetime


class EventList(BaseModel):
    """Events of a flat in creation order."""

    items: list[EventRead]
