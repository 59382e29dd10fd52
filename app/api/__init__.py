"""API routes."""

from app.api.auth import router as auth_router
from app.api.events import router as events_router
from app.api.join_requests import router as join_requests_router
from app.api.shared_flats import router as shared_flats_router

__all__ = ["auth_router", "events_router", "join_requests_router", "shared_flats_router"]
