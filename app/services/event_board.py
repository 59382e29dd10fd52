"""Event board: per-flat events, readable and writable by members only."""

from __future__ import annotations

import logging
from datetime import datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.event import Event
from app.models.user import User
from app.services.errors import NotFoundError, ValidationError
from app.services.flat_registry import authorize_flat_action, caller_id, membership_snapshot
from app.services.membership_authorizer import FlatAction

logger = logging.getLogger(__name__)


def post_event(
    db: Session,
    caller: User | None,
    flat_id: str | UUID,
    title: str,
    starts_at: datetime,
    description: str | None = None,
) -> Event:
    """Append an event to the flat's board. The caller must be a member."""
    creator_id = caller_id(caller)
    flat = authorize_flat_action(db, caller, flat_id, FlatAction.CREATE_EVENT)
    flat_uuid = flat.id

    normalized_title = (title or "").strip()
    if not normalized_title:
        raise ValidationError("Event title must not be empty")
    if not isinstance(starts_at, datetime):
        raise ValidationError("Event time must be a datetime")

    event = Event(
        flat_id=flat_uuid,
        title=normalized_title,
        starts_at=starts_at,
        description=description.strip() if description and description.strip() else None,
        creator_id=creator_id,
    )
    db.add(event)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        # The flat was deleted after the membership check.
        membership_snapshot(db, flat_uuid)
        raise
    except Exception:
        db.rollback()
        raise
    db.refresh(event)
    logger.info("Event %s posted to flat %s by user %s", event.id, flat_uuid, creator_id)
    return event


def list_events(db: Session, caller: User | None, flat_id: str | UUID) -> list[Event]:
    """Events of the flat in creation order."""
    flat = authorize_flat_action(db, caller, flat_id, FlatAction.VIEW_EVENTS)
    return (
        db.query(Event)
        .filter(Event.flat_id == flat.id)
        .order_by(Event.created_at, Event.id)
        .all()
    )


def get_event(db: Session, caller: User | None, flat_id: str | UUID, event_id: int) -> Event:
    flat = authorize_flat_action(db, caller, flat_id, FlatAction.VIEW_EVENTS)
    event = db.query(Event).filter(Event.id == event_id, Event.flat_id == flat.id).first()
    if event is None:
        raise NotFoundError("Event not found")
    return event
