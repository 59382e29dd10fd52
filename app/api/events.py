"""Flat event board API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import require_auth, to_http_exception
from app.db.session import get_db
from app.models.user import User
from app.schemas.event import EventCreate, EventList, EventRead
from app.services.errors import FlatShareError
from app.services.event_board import get_event, list_events, post_event

router = APIRouter()


@router.get("/{flat_id}/event", response_model=EventList)
def api_list_events(
    flat_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> EventList:
    """List the flat's events in creation order (members only)."""
    try:
        events = list_events(db, user, flat_id)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return EventList(items=[EventRead.model_validate(e) for e in events])


@router.post("/{flat_id}/event", response_model=EventRead, status_code=201)
def api_post_event(
    flat_id: UUID,
    data: EventCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> EventRead:
    """Post an event to the flat (members only)."""
    try:
        event = post_event(db, user, flat_id, data.title, data.time, data.description)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return EventRead.model_validate(event)


@router.get("/{flat_id}/event/{event_id}", response_model=EventRead)
def api_get_event(
    flat_id: UUID,
    event_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> EventRead:
    try:
        event = get_event(db, user, flat_id, event_id)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return EventRead.model_validate(event)
