# backend/app/schemas/booking_request.py
"""
Booking request schemas.

Request bodies for the create/accept/reject/cancel/pay actions and the
response shapes for booking requests and their audit trail.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from ..core.constants import ALLOWED_DURATIONS, MAX_NOTES_LENGTH, MAX_REASON_LENGTH
from ..domain.booking_state import BookingRequestStatus, SessionType
from ._strict_base import ORMResponseModel, StrictRequestModel


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


class BookingRequestCreate(StrictRequestModel):
    """Client-submitted session request. Missing date/time means flexible."""

    coach_id: str = Field(..., min_length=26, max_length=26, description="Coach being asked")
    session_type: SessionType
    duration_minutes: int = Field(..., description="One of 15, 30, 45, 60, 90, 120")
    preferred_date: Optional[str] = Field(None, max_length=32)
    preferred_time: Optional[str] = Field(None, max_length=32)
    area_of_focus: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator("duration_minutes")
    @classmethod
    def _duration_allowed(cls, v: int) -> int:
        if v not in ALLOWED_DURATIONS:
            raise ValueError(
                f"duration_minutes must be one of {', '.join(str(d) for d in ALLOWED_DURATIONS)}"
            )
        return v

    @field_validator("preferred_date", "preferred_time", "area_of_focus", "notes")
    @classmethod
    def _strip_optional(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class BookingRequestAccept(StrictRequestModel):
    """Coach acceptance. The price may come from ``coach_rate_id`` when omitted."""

    final_price_cents: Optional[int] = Field(None, gt=0)
    coach_rate_id: Optional[str] = Field(None, min_length=26, max_length=26)
    coach_notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @field_validator("coach_notes")
    @classmethod
    def _strip_notes(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class BookingRequestReject(StrictRequestModel):
    reason: Optional[str] = Field(None, max_length=MAX_REASON_LENGTH)

    @field_validator("reason")
    @classmethod
    def _strip_reason(cls, v: Optional[str]) -> Optional[str]:
        return _blank_to_none(v)


class BookingRequestCancel(BookingRequestReject):
    pass


class BookingRequestPay(StrictRequestModel):
    """Client confirmation that the Stripe authorization succeeded."""

    payment_intent_id: str = Field(..., min_length=3, max_length=255)


class BookingRequestResponse(ORMResponseModel):
    id: str
    client_id: str
    coach_id: str
    coach_rate_id: Optional[str] = None
    session_type: SessionType
    duration_minutes: int
    preferred_date: Optional[str] = None
    preferred_time: Optional[str] = None
    area_of_focus: Optional[str] = None
    notes: Optional[str] = None
    status: BookingRequestStatus
    final_price_cents: Optional[int] = None
    coach_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    cancelled_by_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    payment_deadline: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None


class BookingRequestListResponse(ORMResponseModel):
    items: List[BookingRequestResponse]
    total: int


class BookingEventResponse(ORMResponseModel):
    id: str
    booking_request_id: str
    event_type: str
    actor_type: str
    actor_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class CoachingSessionResponse(ORMResponseModel):
    """The session a paid request was confirmed as."""

    id: str
    booking_request_id: str
    client_id: str
    coach_id: str
    payment_id: Optional[str] = None
    scheduled_at: datetime
    ends_at: datetime
    session_type: str
    duration_minutes: int
    notes: Optional[str] = None
    area_of_focus: Optional[str] = None
    status: str
    created_at: datetime


class BookingOverviewResponse(ORMResponseModel):
    """Per-status counts for the caller, plus how many wait on them."""

    role: str
    counts: Dict[str, int]
    total: int
    awaiting_action: int


class ExpirySweepResponse(ORMResponseModel):
    expired: List[str]
    failed: List[str]
    dry_run: bool = False
