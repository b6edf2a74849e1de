"""
Payment model for Stripe authorize/capture.

Each row mirrors one Stripe PaymentIntent created with manual capture for a
booking request. Amounts are integer cents; the fee split is fixed when the
intent is created.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

import ulid
from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.constants.payment_status import PaymentStatus
from app.database import Base

if TYPE_CHECKING:
    from app.models.booking_request import BookingRequest


class Payment(Base):
    """Stripe payment intent tracking for a booking request."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    booking_request_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("booking_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    client_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    coach_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id"), nullable=False)
    stripe_payment_intent_id: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    platform_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    coach_earnings_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="usd")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=PaymentStatus.PENDING.value)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Timestamps
    authorized_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    captured_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    booking_request: Mapped["BookingRequest"] = relationship("BookingRequest", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "platform_fee_cents + coach_earnings_cents = amount_cents", name="ck_payments_fee_split"
        ),
    )

    @property
    def is_open(self) -> bool:
        """Funds are held or about to be held and can still be released."""
        return self.status in (PaymentStatus.PENDING.value, PaymentStatus.AUTHORIZED.value)

    def __repr__(self) -> str:
        return f"<Payment(booking_request_id={self.booking_request_id}, status={self.status}, amount={self.amount_cents})>"
