"""Pydantic schemas for request/response validation."""

from app.schemas.auth import LoginRequest, SignupRequest, TokenResponse, UserRead
from app.schemas.event import EventCreate, EventList, EventRead
from app.schemas.join_request import JoinRequestList, JoinRequestRead
from app.schemas.shared_flat import SharedFlatCreate, SharedFlatList, SharedFlatRead

__all__ = [
    "EventCreate",
    "EventList",
    "EventRead",
    "JoinRequestList",
    "JoinRequestRead",
    "LoginRequest",
    "SharedFlatCreate",
    "SharedFlatList",
    "SharedFlatRead",
    "SignupRequest",
    "TokenResponse",
    "UserRead",
]
