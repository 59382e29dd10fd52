"""Join request API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import require_auth, to_http_exception
from app.db.session import get_db
from app.models.join_request import JoinRequestStatus
from app.models.user import User
from app.schemas.join_request import JoinRequestList, JoinRequestRead
from app.services.errors import FlatShareError
from app.services.join_request_ledger import (
    get_join_request,
    list_join_requests,
    reject_join_request,
    submit_join_request,
    validate_join_request,
)

router = APIRouter()


@router.get("/{flat_id}/join-request", response_model=JoinRequestList)
def api_list_join_requests(
    flat_id: UUID,
    status: JoinRequestStatus | None = Query(
        None, description="Only return requests in this status. Default: all."
    ),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> JoinRequestList:
    """List the flat's join requests, oldest first (members only)."""
    try:
        requests = list_join_requests(db, user, flat_id, status=status)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return JoinRequestList(items=[JoinRequestRead.model_validate(r) for r in requests])


@router.post("/{flat_id}/join-request", response_model=JoinRequestRead, status_code=201)
def api_submit_join_request(
    flat_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> JoinRequestRead:
    """Ask to join a flat."""
    try:
        request = submit_join_request(db, user, flat_id)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return JoinRequestRead.model_validate(request)


@router.get("/{flat_id}/join-request/{request_id}", response_model=JoinRequestRead)
def api_get_join_request(
    flat_id: UUID,
    request_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> JoinRequestRead:
    try:
        request = get_join_request(db, user, flat_id, request_id)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return JoinRequestRead.model_validate(request)


@router.post("/{flat_id}/join-request/{request_id}/validate", response_model=JoinRequestRead)
def api_validate_join_request(
    flat_id: UUID,
    request_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> JoinRequestRead:
    """Accept a pending request; the requester joins the flat."""
    try:
        request = validate_join_request(db, user, flat_id, request_id)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return JoinRequestRead.model_validate(request)


@router.post("/{flat_id}/join-request/{request_id}/reject", response_model=JoinRequestRead)
def api_reject_join_request(
    flat_id: UUID,
    request_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> JoinRequestRead:
    """Decline a pending request."""
    try:
        request = reject_join_request(db, user, flat_id, request_id)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return JoinRequestRead.model_validate(request)
