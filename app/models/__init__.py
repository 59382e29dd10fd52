"""SQLAlchemy models."""

from app.models.event import Event
from app.models.flat_member import FlatMember
from app.models.join_request import JoinRequest, JoinRequestStatus
from app.models.shared_flat import SharedFlat
from app.models.user import User

__all__ = [
    "Event",
    "FlatMember",
    "JoinRequest",
    "JoinRequestStatus",
    "SharedFlat",
    "User",
]
