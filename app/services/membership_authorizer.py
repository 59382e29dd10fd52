"""Membership authorizer: decides whether a user may act on a flat.

Pure functions over a membership snapshot. Callers read the snapshot inside the
same transaction as the mutation it guards and never cache it across calls.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass

from app.services.errors import ForbiddenError, UnauthenticatedError

logger = logging.getLogger(__name__)


class FlatAction(str, enum.Enum):
    CREATE_FLAT = "create-flat"
    VIEW_FLAT = "view-flat"
    VIEW_REQUESTS = "view-requests"
    RESOLVE_REQUEST = "resolve-request"
    CREATE_EVENT = "create-event"
    VIEW_EVENTS = "view-events"
    DELETE_FLAT = "delete-flat"


class DeletePolicy(str, enum.Enum):
    """Who may delete a flat."""

    CREATOR = "creator"
    MEMBER = "member"

    @classmethod
    def from_setting(cls, value: str | None) -> "DeletePolicy":
        """Parse the FLAT_DELETE_POLICY setting; unknown values fall back to CREATOR."""
        if not value:
            return cls.CREATOR
        try:
            return cls(value.strip().lower())
        except ValueError:
            logger.warning(
                "Unknown FLAT_DELETE_POLICY %r; expected one of %s. Using %r.",
                value,
                ", ".join(p.value for p in cls),
                cls.CREATOR.value,
            )
            return cls.CREATOR


@dataclass(frozen=True)
class FlatSnapshot:
    """Point-in-time view of a flat's creator and members."""

    flat_id: uuid.UUID
    creator_id: int
    member_ids: frozenset[int]

    def has_member(self, user_id: int | None) -> bool:
        return user_id is not None and user_id in self.member_ids


_DENIAL_MESSAGES = {
    FlatAction.VIEW_FLAT: "Only members can view this flat",
    FlatAction.VIEW_REQUESTS: "Only members can view join requests for this flat",
    FlatAction.RESOLVE_REQUEST: "Only members can resolve join requests for this flat",
    FlatAction.CREATE_EVENT: "Only members can post events to this flat",
    FlatAction.VIEW_EVENTS: "Only members can view events of this flat",
}


def can_act(
    user_id: int | None,
    snapshot: FlatSnapshot | None,
    action: FlatAction,
    delete_policy: DeletePolicy = DeletePolicy.CREATOR,
) -> bool:
    """Return True if user_id may perform action on the flat described by snapshot.

    create-flat needs only an identity. delete-flat follows delete_policy.
    Every other action requires current membership.
    """
    if user_id is None:
        return False
    if action is FlatAction.CREATE_FLAT:
        return True
    if snapshot is None:
        return False
    if action is FlatAction.DELETE_FLAT:
        if delete_policy is DeletePolicy.MEMBER:
            return snapshot.has_member(user_id)
        return snapshot.has_member(user_id) and snapshot.creator_id == user_id
    return snapshot.has_member(user_id)


def require(
    user_id: int | None,
    snapshot: FlatSnapshot | None,
    action: FlatAction,
    delete_policy: DeletePolicy = DeletePolicy.CREATOR,
) -> None:
    """Raise UnauthenticatedError or ForbiddenError unless can_act allows the action."""
    if user_id is None:
        raise UnauthenticatedError("Not authenticated")
    if can_act(user_id, snapshot, action, delete_policy):
        return
    if action is FlatAction.DELETE_FLAT:
        if delete_policy is DeletePolicy.CREATOR:
            raise ForbiddenError("Only the flat creator can delete this flat")
        raise ForbiddenError("Only members can delete this flat")
    raise ForbiddenError(_DENIAL_MESSAGES.get(action, "Action not permitted"))
