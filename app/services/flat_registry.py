"""Flat registry: shared flats and their membership sets.

Membership reads here are the authorization primitive used by the join-request
ledger and the event board. Creation inserts the creator as the first member, so
a flat's member set is never empty while the flat exists.
"""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.event import Event
from app.models.flat_member import FlatMember
from app.models.join_request import JoinRequest
from app.models.shared_flat import SharedFlat
from app.models.user import User
from app.services.errors import NotFoundError, UnauthenticatedError, ValidationError
from app.services.membership_authorizer import (
    DeletePolicy,
    FlatAction,
    FlatSnapshot,
    require,
)

logger = logging.getLogger(__name__)


def caller_id(caller: User | None) -> int:
    """Return the caller's user id, or raise UnauthenticatedError."""
    if caller is None or caller.id is None:
        raise UnauthenticatedError("Not authenticated")
    return caller.id


def _coerce_flat_id(flat_id: str | UUID) -> UUID:
    if isinstance(flat_id, UUID):
        return flat_id
    try:
        return UUID(str(flat_id))
    except (ValueError, TypeError):
        raise NotFoundError("Flat not found") from None


def _load_flat(
    db: Session, flat_id: str | UUID, *, for_update: bool = False
) -> tuple[SharedFlat, FlatSnapshot]:
    query = db.query(SharedFlat).filter(SharedFlat.id == _coerce_flat_id(flat_id))
    if for_update:
        # Serializes writers on the same flat (no-op on SQLite).
        query = query.with_for_update()
    flat = query.first()
    if flat is None:
        raise NotFoundError("Flat not found")
    member_ids = frozenset(
        user_id
        for (user_id,) in db.query(FlatMember.user_id).filter(FlatMember.flat_id == flat.id).all()
    )
    return flat, FlatSnapshot(flat_id=flat.id, creator_id=flat.creator_id, member_ids=member_ids)


def membership_snapshot(
    db: Session, flat_id: str | UUID, *, for_update: bool = False
) -> FlatSnapshot:
    """Return the flat's current creator and member set. Raises NotFoundError."""
    _flat, snapshot = _load_flat(db, flat_id, for_update=for_update)
    return snapshot


def authorize_flat_action(
    db: Session,
    caller: User | None,
    flat_id: str | UUID,
    action: FlatAction,
    *,
    delete_policy: DeletePolicy = DeletePolicy.CREATOR,
    for_update: bool = False,
) -> SharedFlat:
    """Load the flat and check that caller may perform action on it.

    Raises UnauthenticatedError, NotFoundError (unknown flat) or ForbiddenError,
    in that order. Membership is read fresh on every call.
    """
    user_id = caller_id(caller)
    flat, snapshot = _load_flat(db, flat_id, for_update=for_update)
    require(user_id, snapshot, action, delete_policy)
    return flat


def create_flat(
    db: Session,
    owner: User | None,
    name: str,
    description: str | None = None,
) -> SharedFlat:
    """Create a flat owned by owner, who becomes its sole initial member."""
    owner_id = caller_id(owner)
    require(owner_id, None, FlatAction.CREATE_FLAT)

    normalized_name = (name or "").strip()
    if not normalized_name:
        raise ValidationError("Flat name must not be empty")
    normalized_description = description.strip() if description else None

    flat = SharedFlat(
        name=normalized_name,
        description=normalized_description or None,
        creator_id=owner_id,
    )
    try:
        db.add(flat)
        db.flush()
        db.add(FlatMember(flat_id=flat.id, user_id=owner_id))
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(flat)
    logger.info("Flat %s (%s) created by user %s", flat.id, flat.name, owner_id)
    return flat


def delete_flat(
    db: Session,
    caller: User | None,
    flat_id: str | UUID,
    policy: DeletePolicy | None = None,
) -> None:
    """Delete a flat together with its events, join requests and memberships.

    policy defaults to the FLAT_DELETE_POLICY setting. All rows go in one
    transaction, so no child ever outlives its flat.
    """
    deleter_id = caller_id(caller)
    if policy is None:
        policy = DeletePolicy.from_setting(get_settings().flat_delete_policy)

    try:
        flat = authorize_flat_action(
            db, caller, flat_id, FlatAction.DELETE_FLAT, delete_policy=policy, for_update=True
        )
        flat_uuid = flat.id
        events_removed = (
            db.query(Event)
            .filter(Event.flat_id == flat_uuid)
            .delete(synchronize_session="fetch")
        )
        requests_removed = (
            db.query(JoinRequest)
            .filter(JoinRequest.flat_id == flat_uuid)
            .delete(synchronize_session="fetch")
        )
        db.query(FlatMember).filter(FlatMember.flat_id == flat_uuid).delete(
            synchronize_session="fetch"
        )
        db.delete(flat)
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Flat %s deleted by user %s (%d join requests, %d events removed)",
        flat_uuid,
        deleter_id,
        requests_removed,
        events_removed,
    )


def get_flat(db: Session, caller: User | None, flat_id: str | UUID) -> SharedFlat:
    """Return a flat the caller is a member of."""
    return authorize_flat_action(db, caller, flat_id, FlatAction.VIEW_FLAT)


def list_flats_for_user(db: Session, user: User | None) -> list[SharedFlat]:
    """Flats the user is currently a member of, oldest first."""
    user_id = caller_id(user)
    return (
        db.query(SharedFlat)
        .join(FlatMember, FlatMember.flat_id == SharedFlat.id)
        .filter(FlatMember.user_id == user_id)
        .order_by(SharedFlat.created_at, SharedFlat.name)
        .all()
    )


def list_membership(db: Session, flat_id: str | UUID) -> list[int]:
    """Member user ids of the flat in join order. Raises NotFoundError for unknown flats."""
    flat, _snapshot = _load_flat(db, flat_id)
    rows = (
        db.query(FlatMember.user_id)
        .filter(FlatMember.flat_id == flat.id)
        .order_by(FlatMember.joined_at, FlatMember.user_id)
        .all()
    )
    return [user_id for (user_id,) in rows]


def is_member(db: Session, flat_id: str | UUID, user_id: int | None) -> bool:
    """Return True if user_id is currently a member of the flat."""
    if user_id is None:
        return False
    try:
        flat_uuid = _coerce_flat_id(flat_id)
    except NotFoundError:
        return False
    return (
        db.query(FlatMember)
        .filter(FlatMember.flat_id == flat_uuid, FlatMember.user_id == user_id)
        .first()
        is not None
    )


def add_member(db: Session, flat_id: UUID, user_id: int) -> bool:
    """Add user_id to the flat's members inside the caller's transaction.

    Idempotent: returns False when the user is already a member. Does not commit.
    """
    if is_member(db, flat_id, user_id):
        return False
    db.add(FlatMember(flat_id=flat_id, user_id=user_id))
    db.flush()
    return True
