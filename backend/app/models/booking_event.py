"""Audit trail of booking request lifecycle events."""

from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

import ulid
from sqlalchemy import JSON, DateTime, ForeignKey, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.booking_request import BookingRequest


class BookingEventType(str, Enum):
    REQUEST_CREATED = "request_created"
    COACH_ACCEPTED = "coach_accepted"
    COACH_REJECTED = "coach_rejected"
    PAYMENT_COMPLETED = "payment_completed"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_EXPIRED = "booking_expired"


class BookingEvent(Base):
    """One immutable entry in a booking request's history."""

    __tablename__ = "booking_events"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_request_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    event_type: Mapped[str] = mapped_column(String(32), nullable=False)
    actor_type: Mapped[str] = mapped_column(String(16), nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(26), nullable=True)
    details: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    # microsecond resolution keeps same-second events in order
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), server_default=func.now(), nullable=False
    )

    booking_request: Mapped["BookingRequest"] = relationship("BookingRequest", back_populates="events")

    def __repr__(self) -> str:
        return f"<BookingEvent({self.event_type} on {self.booking_request_id} by {self.actor_type})>"
