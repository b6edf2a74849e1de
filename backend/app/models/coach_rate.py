"""
Coach rate catalog model.

A coach keeps a price list keyed by (session_type, duration_minutes). Rates
only pre-fill the price a coach sets when accepting a booking request; a
request keeps its own ``final_price_cents`` once accepted.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

import ulid
from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base

if TYPE_CHECKING:
    from app.models.user import User


class CoachRate(Base):
    """One priced offering in a coach's catalog."""

    __tablename__ = "coach_rates"

    id: Mapped[str] = mapped_column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    coach_id: Mapped[str] = mapped_column(String(26), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    session_type: Mapped[str] = mapped_column(String(20), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    rate_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Package-only terms
    max_sessions: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    validity_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    discount_percentage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    stripe_price_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    coach: Mapped["User"] = relationship("User", back_populates="coach_rates")

    __table_args__ = (
        CheckConstraint("rate_cents > 0", name="ck_coach_rates_rate_positive"),
        CheckConstraint(
            "discount_percentage IS NULL OR (discount_percentage >= 0 AND discount_percentage <= 100)",
            name="ck_coach_rates_discount_range",
        ),
        CheckConstraint("max_sessions IS NULL OR max_sessions > 0", name="ck_coach_rates_max_sessions"),
        Index("ix_coach_rates_coach_lookup", "coach_id", "session_type", "duration_minutes"),
    )

    def copy_fields(self) -> dict[str, Any]:
        """Column values a duplicate starts from (identity and Stripe link excluded)."""
        return {
            "coach_id": self.coach_id,
            "session_type": self.session_type,
            "duration_minutes": self.duration_minutes,
            "rate_cents": self.rate_cents,
            "title": self.title,
            "description": self.description,
            "is_active": self.is_active,
            "max_sessions": self.max_sessions,
            "validity_days": self.validity_days,
            "discount_percentage": self.discount_percentage,
        }

    def __repr__(self) -> str:
        return f"<CoachRate(coach_id={self.coach_id}, {self.session_type}/{self.duration_minutes}m={self.rate_cents})>"
