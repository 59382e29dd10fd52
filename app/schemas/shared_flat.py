"""Shared flat schemas for request/response validation."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class SharedFlatCreate(BaseModel):
    """Schema for creating a flat."""

    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = Field(None, max_length=5000)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("name must not be empty")
        return stripped


class SharedFlatRead(BaseModel):
    """Schema for reading a flat, including its current members."""

    id: UUID
    name: str
    description: str | None
    creator_id: int
    members: list[int]
    created_at: datetime


class SharedFlatList(BaseModel):
    """Flats the caller belongs to."""

    items: list[SharedFlatRead]
