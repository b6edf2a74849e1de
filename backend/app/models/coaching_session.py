"""
Confirmed coaching session model.

A paid booking request produces exactly one session row, written in the
same transaction that moves the request to ``paid_confirmed``.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

import ulid
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.booking_request import BookingRequest
    from app.models.payment import Payment

SESSION_STATUS_CONFIRMED = "confirmed"


class CoachingSession(Base):
    """A scheduled session between a client and a coach."""

    __tablename__ = "sessions"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_request_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    client_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    coach_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    payment_id: Mapped[Optional[str]] = mapped_column(String(26), ForeignKey("payments.id"), nullable=True)

    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    ends_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    session_type: Mapped[str] = mapped_column(String(20), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    area_of_focus: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=SESSION_STATUS_CONFIRMED)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    booking_request: Mapped["BookingRequest"] = relationship("BookingRequest")
    payment: Mapped[Optional["Payment"]] = relationship("Payment")

    __table_args__ = (
        CheckConstraint("ends_at > scheduled_at", name="ck_sessions_ends_after_start"),
        Index("ix_sessions_coach_schedule", "coach_id", "scheduled_at"),
        Index("ix_sessions_client_schedule", "client_id", "scheduled_at"),
    )

    def __repr__(self) -> str:
        return f"<CoachingSession({self.id}, booking_request={self.booking_request_id}, at={self.scheduled_at})>"
