"""Shared flat API routes."""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import require_auth, to_http_exception
from app.db.session import get_db
from app.models.shared_flat import SharedFlat
from app.models.user import User
from app.schemas.shared_flat import SharedFlatCreate, SharedFlatList, SharedFlatRead
from app.services.errors import FlatShareError
from app.services.flat_registry import (
    create_flat,
    delete_flat,
    get_flat,
    list_flats_for_user,
    list_membership,
)

router = APIRouter()


def _flat_to_read(db: Session, flat: SharedFlat) -> SharedFlatRead:
    return SharedFlatRead(
        id=flat.id,
        name=flat.name,
        description=flat.description,
        creator_id=flat.creator_id,
        members=list_membership(db, flat.id),
        created_at=flat.created_at,
    )


@router.get("", response_model=SharedFlatList)
def api_list_my_flats(
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> SharedFlatList:
    """List the flats the caller is a member of."""
    flats = list_flats_for_user(db, user)
    return SharedFlatList(items=[_flat_to_read(db, flat) for flat in flats])


@router.post("", response_model=SharedFlatRead, status_code=201)
def api_create_flat(
    data: SharedFlatCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> SharedFlatRead:
    """Create a flat; the caller becomes its first member."""
    try:
        flat = create_flat(db, user, data.name, data.description)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return _flat_to_read(db, flat)


@router.get("/{flat_id}", response_model=SharedFlatRead)
def api_get_flat(
    flat_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> SharedFlatRead:
    """Get a flat the caller belongs to."""
    try:
        flat = get_flat(db, user, flat_id)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
    return _flat_to_read(db, flat)


@router.delete("/{flat_id}", status_code=204)
def api_delete_flat(
    flat_id: UUID,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> None:
    """Delete a flat with all of its join requests and events."""
    try:
        delete_flat(db, user, flat_id)
    except FlatShareError as exc:
        raise to_http_exception(exc) from exc
