"""Join request schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from app.models.join_request import JoinRequestStatus


class JoinRequestRead(BaseModel):
    """A join request and, once resolved, who resolved it and when."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    flat_id: UUID
    requester_id: int
    status: JoinRequestStatus
    created_at: datetime
    resolved_at: datetime | None = None
    resolved_by: int | None = None


class JoinRequestList(BaseModel):
    """Join requests of a flat, oldest first."""

    items: list[JoinRequestRead]
