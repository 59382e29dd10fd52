"""Join-request ledger: the pending → validated/rejected state machine.

Resolution is a conditional UPDATE on ``status = 'pending'``: when two members
resolve the same request at once, exactly one UPDATE matches a row and the other
caller gets ConflictError(already-resolved). On validation the requester's
membership row is written in the same transaction as the status change.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.join_request import JoinRequest, JoinRequestStatus
from app.models.user import User
from app.services.errors import (
    ConflictError,
    ConflictReason,
    NotFoundError,
    ValidationError,
)
from app.services.flat_registry import (
    add_member,
    authorize_flat_action,
    caller_id,
    membership_snapshot,
)
from app.services.membership_authorizer import FlatAction

logger = logging.getLogger(__name__)


def _coerce_status(status: JoinRequestStatus | str | None) -> JoinRequestStatus | None:
    if status is None or isinstance(status, JoinRequestStatus):
        return status
    try:
        return JoinRequestStatus(status.strip().lower())
    except ValueError:
        raise ValidationError(f"Unknown join request status: {status}") from None


def _load_request(db: Session, flat_id: UUID, request_id: int) -> JoinRequest:
    request = (
        db.query(JoinRequest)
        .filter(JoinRequest.id == request_id, JoinRequest.flat_id == flat_id)
        .first()
    )
    if request is None:
        raise NotFoundError("Join request not found")
    return request


def submit_join_request(
    db: Session,
    requester: User | None,
    flat_id: str | UUID,
) -> JoinRequest:
    """Create a pending join request for requester.

    Raises NotFoundError if the flat does not exist, ConflictError(already-member)
    if requester already belongs to it and ConflictError(duplicate-request) if a
    pending request is already queued.
    """
    requester_id = caller_id(requester)
    try:
        # Row lock queues submission behind resolution and deletion on the same flat.
        snapshot = membership_snapshot(db, flat_id, for_update=True)
        if snapshot.has_member(requester_id):
            raise ConflictError(ConflictReason.ALREADY_MEMBER)

        existing = (
            db.query(JoinRequest.id)
            .filter(
                JoinRequest.flat_id == snapshot.flat_id,
                JoinRequest.requester_id == requester_id,
                JoinRequest.status == JoinRequestStatus.PENDING.value,
            )
            .first()
        )
        if existing is not None:
            raise ConflictError(ConflictReason.DUPLICATE_REQUEST)

        request = JoinRequest(
            flat_id=snapshot.flat_id,
            requester_id=requester_id,
            status=JoinRequestStatus.PENDING.value,
        )
        db.add(request)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # Either a concurrent duplicate hit the partial unique index or the flat vanished.
        membership_snapshot(db, flat_id)
        raise ConflictError(ConflictReason.DUPLICATE_REQUEST) from exc
    except Exception:
        db.rollback()
        raise
    db.refresh(request)
    logger.info(
        "Join request %s submitted by user %s for flat %s",
        request.id,
        requester_id,
        snapshot.flat_id,
    )
    return request


def list_join_requests(
    db: Session,
    caller: User | None,
    flat_id: str | UUID,
    status: JoinRequestStatus | str | None = None,
) -> list[JoinRequest]:
    """Return the flat's join requests, oldest first. Members only.

    All statuses are returned unless status narrows the listing.
    """
    status_filter = _coerce_status(status)
    flat = authorize_flat_action(db, caller, flat_id, FlatAction.VIEW_REQUESTS)
    query = db.query(JoinRequest).filter(JoinRequest.flat_id == flat.id)
    if status_filter is not None:
        query = query.filter(JoinRequest.status == status_filter.value)
    return query.order_by(JoinRequest.created_at, JoinRequest.id).all()


def get_join_request(
    db: Session,
    caller: User | None,
    flat_id: str | UUID,
    request_id: int,
) -> JoinRequest:
    """Return one join request of the flat. Members only."""
    flat = authorize_flat_action(db, caller, flat_id, FlatAction.VIEW_REQUESTS)
    return _load_request(db, flat.id, request_id)


def validate_join_request(
    db: Session,
    caller: User | None,
    flat_id: str | UUID,
    request_id: int,
) -> JoinRequest:
    """Accept a pending request; the requester becomes a member of the flat."""
    return _resolve(db, caller, flat_id, request_id, JoinRequestStatus.VALIDATED)


def reject_join_request(
    db: Session,
    caller: User | None,
    flat_id: str | UUID,
    request_id: int,
) -> JoinRequest:
    """Decline a pending request. Membership is left unchanged."""
    return _resolve(db, caller, flat_id, request_id, JoinRequestStatus.REJECTED)


def _resolve(
    db: Session,
    caller: User | None,
    flat_id: str | UUID,
    request_id: int,
    outcome: JoinRequestStatus,
) -> JoinRequest:
    resolver_id = caller_id(caller)
    try:
        flat = authorize_flat_action(
            db, caller, flat_id, FlatAction.RESOLVE_REQUEST, for_update=True
        )
        request = _load_request(db, flat.id, request_id)
        if JoinRequestStatus(request.status).is_terminal:
            raise ConflictError(ConflictReason.ALREADY_RESOLVED)

        updated = (
            db.query(JoinRequest)
            .filter(
                JoinRequest.id == request.id,
                JoinRequest.status == JoinRequestStatus.PENDING.value,
            )
            .update(
                {
                    JoinRequest.status: outcome.value,
                    JoinRequest.resolved_at: datetime.now(UTC),
                    JoinRequest.resolved_by: resolver_id,
                },
                synchronize_session=False,
            )
        )
        if updated != 1:
            logger.warning(
                "Join request %s was resolved concurrently; %s by user %s discarded",
                request.id,
                outcome.value,
                resolver_id,
            )
            raise ConflictError(ConflictReason.ALREADY_RESOLVED)

        if outcome is JoinRequestStatus.VALIDATED:
            add_member(db, flat.id, request.requester_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(request)
    logger.info(
        "Join request %s for flat %s %s by user %s",
        request.id,
        request.flat_id,
        outcome.value,
        resolver_id,
    )
    return request
