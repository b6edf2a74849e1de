# backend/app/models/booking_request.py
"""
Booking request model for the coaching platform.

A booking request is a client's proposal for a session with a coach. The
coach prices and accepts it (or rejects it), then the client pays through
a Stripe manual-capture authorization. Status moves are validated by
``app.domain.booking_state``; the helpers on this model only apply an
already-validated move and stamp the matching timestamp.
"""

from datetime import datetime, timezone
import logging
from typing import Optional

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.constants import ALLOWED_DURATIONS
from ..database import Base
from ..domain.booking_state import (
    PAYABLE_STATUSES,
    BookingRequestStatus,
    SessionType,
    validate_transition,
)

logger = logging.getLogger(__name__)

_STATUS_VALUES = ", ".join(f"'{s.value}'" for s in BookingRequestStatus)
_SESSION_TYPE_VALUES = ", ".join(f"'{s.value}'" for s in SessionType)
_DURATION_VALUES = ", ".join(str(d) for d in ALLOWED_DURATIONS)


class BookingRequest(Base):
    """
    Client-initiated request for a coaching session.

    Attributes:
        client_id: User who asked for the session (owner)
        coach_id: Coach the request is addressed to
        session_type: individual, group, or package
        duration_minutes: One of ALLOWED_DURATIONS
        preferred_date / preferred_time: Free-form hints; None means flexible
        status: BookingRequestStatus value
        final_price_cents: Set by the coach on accept, never before
        expires_at: Deadline for the coach to respond
        payment_deadline: Deadline for the client to pay after acceptance
    """

    __tablename__ = "booking_requests"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    client_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    coach_id = Column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    coach_rate_id = Column(
        String(26), ForeignKey("coach_rates.id", ondelete="SET NULL"), nullable=True
    )

    session_type = Column(String(20), nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    preferred_date = Column(String(32), nullable=True)
    preferred_time = Column(String(32), nullable=True)
    area_of_focus = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=BookingRequestStatus.PENDING.value)
    final_price_cents = Column(Integer, nullable=True)
    coach_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_by_id = Column(String(26), ForeignKey("users.id"), nullable=True)
    payment_intent_id = Column(String(255), nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        nullable=False,
    )
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    expires_at = Column(DateTime(timezone=True), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    payment_deadline = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    expired_at = Column(DateTime(timezone=True), nullable=True)

    client = relationship("User", foreign_keys=[client_id])
    coach = relationship("User", foreign_keys=[coach_id])
    coach_rate = relationship("CoachRate")
    events = relationship(
        "BookingEvent",
        back_populates="booking_request",
        cascade="all, delete-orphan",
        order_by="BookingEvent.created_at",
    )
    payments = relationship("Payment", back_populates="booking_request")

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_booking_requests_status"),
        CheckConstraint(
            f"session_type IN ({_SESSION_TYPE_VALUES})", name="ck_booking_requests_session_type"
        ),
        CheckConstraint(
            f"duration_minutes IN ({_DURATION_VALUES})", name="ck_booking_requests_duration"
        ),
        CheckConstraint(
            "final_price_cents IS NULL OR final_price_cents > 0",
            name="ck_booking_requests_price_positive",
        ),
        Index("ix_booking_requests_coach_status", "coach_id", "status"),
        Index("ix_booking_requests_client_status", "client_id", "status"),
    )

    def transition_to(self, target: BookingRequestStatus) -> None:
        """Move to ``target`` after checking the lifecycle table."""
        previous = self.status
        self.status = validate_transition(self.status, target).value
        logger.info(f"Booking request {self.id} moved {previous} -> {self.status}")

    def accept(
        self,
        final_price_cents: int,
        payment_deadline: datetime,
        coach_notes: Optional[str] = None,
        coach_rate_id: Optional[str] = None,
    ) -> None:
        """Record the coach's price and open the payment window."""
        now = datetime.now(timezone.utc)
        self.final_price_cents = final_price_cents
        self.coach_notes = coach_notes
        self.coach_rate_id = coach_rate_id
        self.transition_to(BookingRequestStatus.COACH_ACCEPTED)
        self.accepted_at = now
        self.transition_to(BookingRequestStatus.PAYMENT_REQUIRED)
        self.payment_deadline = payment_deadline

    def reject(self, reason: Optional[str] = None) -> None:
        self.transition_to(BookingRequestStatus.REJECTED)
        self.rejection_reason = reason
        self.rejected_at = datetime.now(timezone.utc)

    def cancel(self, cancelled_by_user_id: str, reason: Optional[str] = None) -> None:
        self.transition_to(BookingRequestStatus.CANCELLED)
        self.cancelled_by_id = cancelled_by_user_id
        self.cancellation_reason = reason
        self.cancelled_at = datetime.now(timezone.utc)

    def confirm_payment(self, payment_intent_id: str) -> None:
        self.transition_to(BookingRequestStatus.PAID_CONFIRMED)
        self.payment_intent_id = payment_intent_id
        self.paid_at = datetime.now(timezone.utc)

    def expire(self) -> None:
        self.transition_to(BookingRequestStatus.EXPIRED)
        self.expired_at = datetime.now(timezone.utc)

    @property
    def is_payable(self) -> bool:
        return BookingRequestStatus(self.status) in PAYABLE_STATUSES

    def involves(self, user_id: str) -> bool:
        return user_id in (self.client_id, self.coach_id)

    def __repr__(self) -> str:
        return f"<BookingRequest {self.id} {self.status}>"
