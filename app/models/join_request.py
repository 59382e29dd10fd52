"""JoinRequest model: a user's application to join a shared flat."""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base


class JoinRequestStatus(str, enum.Enum):
    """Lifecycle states. VALIDATED and REJECTED are terminal."""

    PENDING = "pending"
    VALIDATED = "validated"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not JoinRequestStatus.PENDING


class JoinRequest(Base):
    """Join request for a flat; at most one pending request per (flat, requester)."""

    __tablename__ = "join_requests"

    __table_args__ = (
        Index(
            "uq_join_requests_flat_requester_pending",
            "flat_id",
            "requester_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
        Index("ix_join_requests_flat_created", "flat_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    flat_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("shared_flats.id", ondelete="CASCADE"),
        nullable=False,
    )
    requester_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(16),
        default=JoinRequestStatus.PENDING.value,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        nullable=False,
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolved_by: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
