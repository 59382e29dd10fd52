"""Join request ledger tests: lifecycle, guards and concurrent resolution."""

from __future__ import annotations

import logging
import threading
import uuid
from types import SimpleNamespace
from unittest.mock import patch

import pytest
from sqlalchemy.orm import Session

from app.models import FlatMember, JoinRequest, JoinRequestStatus, User
from app.services.errors import (
    ConflictError,
    ConflictReason,
    ForbiddenError,
    NotFoundError,
    UnauthenticatedError,
    ValidationError,
)
from app.services.flat_registry import create_flat, is_member, list_membership
from app.services.join_request_ledger import (
    get_join_request,
    list_join_requests,
    reject_join_request,
    submit_join_request,
    validate_join_request,
)


@pytest.fixture
def flat(db: Session, alice):
    return create_flat(db, alice, "Rue des Lilas")


class TestSubmit:
    def test_submit_creates_pending_request(self, db: Session, flat, bob) -> None:
        request = submit_join_request(db, bob, flat.id)
        assert request.status == JoinRequestStatus.PENDING.value
        assert request.requester_id == bob.id
        assert request.flat_id == flat.id
        assert request.resolved_at is None
        assert request.resolved_by is None

    def test_member_cannot_request(self, db: Session, flat, alice) -> None:
        with pytest.raises(ConflictError) as exc_info:
            submit_join_request(db, alice, flat.id)
        assert exc_info.value.reason is ConflictReason.ALREADY_MEMBER
        assert exc_info.value.code == "already-member"

    def test_second_pending_request_is_duplicate(self, db: Session, flat, bob) -> None:
        submit_join_request(db, bob, flat.id)
        with pytest.raises(ConflictError) as exc_info:
            submit_join_request(db, bob, flat.id)
        assert exc_info.value.reason is ConflictReason.DUPLICATE_REQUEST
        assert db.query(JoinRequest).count() == 1

    def test_can_request_again_after_rejection(self, db: Session, flat, alice, bob) -> None:
        first = submit_join_request(db, bob, flat.id)
        reject_join_request(db, alice, flat.id, first.id)
        second = submit_join_request(db, bob, flat.id)
        assert second.id != first.id
        assert second.status == JoinRequestStatus.PENDING.value

    def test_unknown_flat(self, db: Session, bob) -> None:
        with pytest.raises(NotFoundError):
            submit_join_request(db, bob, uuid.uuid4())

    def test_anonymous(self, db: Session, flat) -> None:
        with pytest.raises(UnauthenticatedError):
            submit_join_request(db, None, flat.id)


class TestValidate:
    def test_validate_adds_member(self, db: Session, flat, alice, bob) -> None:
        request = submit_join_request(db, bob, flat.id)
        resolved = validate_join_request(db, alice, flat.id, request.id)

        assert resolved.status == JoinRequestStatus.VALIDATED.value
        assert resolved.resolved_by == alice.id
        assert resolved.resolved_at is not None
        assert is_member(db, flat.id, bob.id)
        assert list_membership(db, flat.id) == [alice.id, bob.id]

    def test_new_member_can_resolve_others(self, db: Session, flat, alice, bob, carol) -> None:
        bob_request = submit_join_request(db, bob, flat.id)
        validate_join_request(db, alice, flat.id, bob_request.id)
        carol_request = submit_join_request(db, carol, flat.id)

        resolved = validate_join_request(db, bob, flat.id, carol_request.id)
        assert resolved.resolved_by == bob.id
        assert is_member(db, flat.id, carol.id)

    def test_non_member_cannot_validate(self, db: Session, flat, alice, bob, carol) -> None:
        request = submit_join_request(db, bob, flat.id)
        with pytest.raises(ForbiddenError):
            validate_join_request(db, carol, flat.id, request.id)
        with pytest.raises(ForbiddenError):
            validate_join_request(db, bob, flat.id, request.id)
        assert get_join_request(db, alice, flat.id, request.id).status == "pending"

    def test_resolved_request_cannot_be_validated_again(
        self, db: Session, flat, alice, bob
    ) -> None:
        request = submit_join_request(db, bob, flat.id)
        validate_join_request(db, alice, flat.id, request.id)
        with pytest.raises(ConflictError) as exc_info:
            validate_join_request(db, alice, flat.id, request.id)
        assert exc_info.value.reason is ConflictReason.ALREADY_RESOLVED

    def test_rejected_request_cannot_be_validated(self, db: Session, flat, alice, bob) -> None:
        request = submit_join_request(db, bob, flat.id)
        reject_join_request(db, alice, flat.id, request.id)
        with pytest.raises(ConflictError) as exc_info:
            validate_join_request(db, alice, flat.id, request.id)
        assert exc_info.value.reason is ConflictReason.ALREADY_RESOLVED
        assert not is_member(db, flat.id, bob.id)

    def test_unknown_request(self, db: Session, flat, alice) -> None:
        with pytest.raises(NotFoundError):
            validate_join_request(db, alice, flat.id, 9999)

    def test_request_of_another_flat_is_not_found(self, db: Session, flat, alice, bob) -> None:
        other = create_flat(db, bob, "Bob's place")
        request = submit_join_request(db, alice, other.id)
        with pytest.raises(NotFoundError):
            validate_join_request(db, alice, flat.id, request.id)


class TestReject:
    def test_reject_leaves_membership_unchanged(self, db: Session, flat, alice, bob) -> None:
        request = submit_join_request(db, bob, flat.id)
        resolved = reject_join_request(db, alice, flat.id, request.id)
        assert resolved.status == JoinRequestStatus.REJECTED.value
        assert resolved.resolved_by == alice.id
        assert list_membership(db, flat.id) == [alice.id]

    def test_validated_request_cannot_be_rejected(self, db: Session, flat, alice, bob) -> None:
        request = submit_join_request(db, bob, flat.id)
        validate_join_request(db, alice, flat.id, request.id)
        with pytest.raises(ConflictError):
            reject_join_request(db, alice, flat.id, request.id)
        assert is_member(db, flat.id, bob.id)


class TestListing:
    def test_list_returns_all_statuses_oldest_first(
        self, db: Session, flat, alice, bob, carol
    ) -> None:
        first = submit_join_request(db, bob, flat.id)
        second = submit_join_request(db, carol, flat.id)
        reject_join_request(db, alice, flat.id, first.id)

        requests = list_join_requests(db, alice, flat.id)
        assert [r.id for r in requests] == [first.id, second.id]
        assert [r.status for r in requests] == ["rejected", "pending"]

    def test_status_filter(self, db: Session, flat, alice, bob, carol) -> None:
        first = submit_join_request(db, bob, flat.id)
        second = submit_join_request(db, carol, flat.id)
        reject_join_request(db, alice, flat.id, first.id)

        pending = list_join_requests(db, alice, flat.id, status="pending")
        assert [r.id for r in pending] == [second.id]
        rejected = list_join_requests(db, alice, flat.id, status=JoinRequestStatus.REJECTED)
        assert [r.id for r in rejected] == [first.id]

    def test_unknown_status_filter(self, db: Session, flat, alice) -> None:
        with pytest.raises(ValidationError):
            list_join_requests(db, alice, flat.id, status="archived")

    def test_requester_cannot_list(self, db: Session, flat, bob) -> None:
        submit_join_request(db, bob, flat.id)
        with pytest.raises(ForbiddenError):
            list_join_requests(db, bob, flat.id)

    def test_get_join_request(self, db: Session, flat, alice, bob) -> None:
        request = submit_join_request(db, bob, flat.id)
        fetched = get_join_request(db, alice, flat.id, request.id)
        assert fetched.id == request.id


def test_partial_unique_index_rejects_second_pending_row(db: Session, flat, bob) -> None:
    """The database itself refuses two pending rows for the same requester."""
    from sqlalchemy.exc import IntegrityError

    db.add(JoinRequest(flat_id=flat.id, requester_id=bob.id))
    db.commit()
    db.add(JoinRequest(flat_id=flat.id, requester_id=bob.id))
    with pytest.raises(IntegrityError):
        db.commit()
    db.rollback()


def _resolve_in_thread(action, user_id, flat_id, request_id, barrier, results) -> None:
    from app.db.session import SessionLocal

    session = SessionLocal()
    try:
        user = session.get(User, user_id)
        session.commit()
        barrier.wait(timeout=10)
        try:
            action(session, user, flat_id, request_id)
            results.append("ok")
        except ConflictError as exc:
            results.append(exc.code)
    finally:
        session.close()


@pytest.mark.parametrize(
    ("first", "second"),
    [
        (validate_join_request, validate_join_request),
        (validate_join_request, reject_join_request),
        (reject_join_request, reject_join_request),
    ],
)
def test_concurrent_resolution_has_exactly_one_winner(
    db: Session, flat, alice, bob, carol, first, second
) -> None:
    request = submit_join_request(db, carol, flat.id)
    validate_join_request(db, alice, flat.id, submit_join_request(db, bob, flat.id).id)
    flat_id, request_id = flat.id, request.id
    alice_id, bob_id, carol_id = alice.id, bob.id, carol.id
    db.close()

    barrier = threading.Barrier(2)
    results: list[str] = []
    threads = [
        threading.Thread(
            target=_resolve_in_thread,
            args=(first, alice_id, flat_id, request_id, barrier, results),
        ),
        threading.Thread(
            target=_resolve_in_thread,
            args=(second, bob_id, flat_id, request_id, barrier, results),
        ),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert sorted(results) == ["already-resolved", "ok"]
    stored = db.get(JoinRequest, request_id)
    assert stored.status in ("validated", "rejected")
    assert stored.resolved_by in (alice_id, bob_id)
    member_rows = (
        db.query(FlatMember)
        .filter(FlatMember.flat_id == flat_id, FlatMember.user_id == carol_id)
        .count()
    )
    assert member_rows == (1 if stored.status == "validated" else 0)


def test_rue_pasteur_validated_member_cannot_request_again(
    db: Session, alice, bob
) -> None:
    """Create, request, validate; the new member's second request is already-member."""
    flat = create_flat(db, alice, "Rue Pasteur")
    assert list_membership(db, flat.id) == [alice.id]

    request = submit_join_request(db, bob, flat.id)
    assert request.status == "pending"

    resolved = validate_join_request(db, alice, flat.id, request.id)
    assert resolved.status == "validated"
    assert resolved.resolved_by == alice.id
    assert list_membership(db, flat.id) == [alice.id, bob.id]

    with pytest.raises(ConflictError) as exc_info:
        submit_join_request(db, bob, flat.id)
    assert exc_info.value.reason is ConflictReason.ALREADY_MEMBER
    assert db.query(JoinRequest).count() == 1


def test_rejected_requester_cannot_validate_own_request(db: Session, make_user) -> None:
    """Reject leaves members unchanged; a later validate is already-resolved or forbidden."""
    dave = make_user("dave")
    chris = make_user("chris")
    flat = create_flat(db, dave, "Dave's flat")
    request = submit_join_request(db, chris, flat.id)

    resolved = reject_join_request(db, dave, flat.id, request.id)
    assert resolved.status == "rejected"
    assert list_membership(db, flat.id) == [dave.id]

    with pytest.raises(ConflictError) as exc_info:
        validate_join_request(db, dave, flat.id, request.id)
    assert exc_info.value.reason is ConflictReason.ALREADY_RESOLVED
    with pytest.raises(ForbiddenError):
        validate_join_request(db, chris, flat.id, request.id)


def test_submit_locks_the_flat_row(db: Session, flat, bob) -> None:
    """Submission reads membership under the same row lock as validate and reject."""
    from app.services import flat_registry

    with patch.object(flat_registry, "_load_flat", wraps=flat_registry._load_flat) as load_flat:
        submit_join_request(db, bob, flat.id)

    assert load_flat.call_count == 1
    assert load_flat.call_args.kwargs["for_update"] is True


def test_rejected_submission_releases_the_transaction(db: Session, flat, alice) -> None:
    with pytest.raises(ConflictError):
        submit_join_request(db, alice, flat.id)
    assert not db.in_transaction()


def test_update_matching_no_pending_row_is_already_resolved(
    db: Session, flat, alice, bob, caplog: pytest.LogCaptureFixture
) -> None:
    """A request that turned terminal after it was read loses at the UPDATE."""
    request = submit_join_request(db, bob, flat.id)
    request_id, requester_id, flat_id = request.id, bob.id, flat.id
    validate_join_request(db, alice, flat_id, request_id)

    stale = SimpleNamespace(
        id=request_id,
        flat_id=flat_id,
        requester_id=requester_id,
        status=JoinRequestStatus.PENDING.value,
    )
    with (
        patch("app.services.join_request_ledger._load_request", return_value=stale),
        caplog.at_level(logging.WARNING, logger="app.services.join_request_ledger"),
    ):
        with pytest.raises(ConflictError) as exc_info:
            reject_join_request(db, alice, flat_id, request_id)

    assert exc_info.value.reason is ConflictReason.ALREADY_RESOLVED
    assert "resolved concurrently" in caplog.text
    assert not db.in_transaction()
    stored = db.get(JoinRequest, request_id)
    assert stored.status == "validated"
    assert stored.resolved_by == alice.id
