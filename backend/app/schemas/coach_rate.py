"""Coach rate catalog schemas."""

from datetime import datetime
from typing import List, Optional

from pydantic import Field, field_validator, model_validator

from ..core.constants import ALLOWED_DURATIONS, MAX_TITLE_LENGTH
from ..domain.booking_state import SessionType
from ._strict_base import ORMResponseModel, StrictRequestModel


def _check_duration(v: Optional[int]) -> Optional[int]:
    if v is not None and v not in ALLOWED_DURATIONS:
        raise ValueError(
            f"duration_minutes must be one of {', '.join(str(d) for d in ALLOWED_DURATIONS)}"
        )
    return v


class CoachRateBase(StrictRequestModel):
    session_type: SessionType
    duration_minutes: int
    rate_cents: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=2000)
    max_sessions: Optional[int] = Field(None, gt=0)
    validity_days: Optional[int] = Field(None, gt=0)
    discount_percentage: Optional[int] = Field(None, ge=0, le=100)

    @field_validator("duration_minutes")
    @classmethod
    def _duration_allowed(cls, v: Optional[int]) -> Optional[int]:
        return _check_duration(v)


class CoachRateCreate(CoachRateBase):
    @model_validator(mode="after")
    def _package_terms_only_for_packages(self) -> "CoachRateCreate":
        if self.session_type != SessionType.PACKAGE and self.max_sessions is not None:
            raise ValueError("max_sessions only applies to package rates")
        return self


class CoachRateUpdate(StrictRequestModel):
    """Partial update; only fields that were sent are applied."""

    session_type: Optional[SessionType] = None
    duration_minutes: Optional[int] = None
    rate_cents: Optional[int] = Field(None, gt=0)
    title: Optional[str] = Field(None, min_length=1, max_length=MAX_TITLE_LENGTH)
    description: Optional[str] = Field(None, max_length=2000)
    is_active: Optional[bool] = None
    max_sessions: Optional[int] = Field(None, gt=0)
    validity_days: Optional[int] = Field(None, gt=0)
    discount_percentage: Optional[int] = Field(None, ge=0, le=100)

    @field_validator("duration_minutes")
    @classmethod
    def _duration_allowed(cls, v: Optional[int]) -> Optional[int]:
        return _check_duration(v)


class CoachRateBulkItem(CoachRateUpdate):
    id: str = Field(..., min_length=26, max_length=26)


class CoachRateBulkUpdate(StrictRequestModel):
    rates: List[CoachRateBulkItem] = Field(..., min_length=1, max_length=100)

    @model_validator(mode="after")
    def _unique_ids(self) -> "CoachRateBulkUpdate":
        ids = [item.id for item in self.rates]
        if len(ids) != len(set(ids)):
            raise ValueError("Each rate may appear only once in a bulk update")
        return self


class CoachRateResponse(ORMResponseModel):
    id: str
    coach_id: str
    session_type: SessionType
    duration_minutes: int
    rate_cents: int
    title: str
    description: Optional[str] = None
    is_active: bool
    max_sessions: Optional[int] = None
    validity_days: Optional[int] = None
    discount_percentage: Optional[int] = None
    stripe_price_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None


class CoachRateListResponse(ORMResponseModel):
    coach_id: str
    rates: List[CoachRateResponse]


class SuggestedRateResponse(ORMResponseModel):
    rate: Optional[CoachRateResponse] = None


class PackageDiscountRequest(StrictRequestModel):
    rate_cents: int = Field(..., gt=0)
    sessions: int = Field(..., gt=0, le=100)
    discount_percentage: int = Field(0, ge=0, le=100)


class PackageDiscountResponse(ORMResponseModel):
    subtotal_cents: int
    discount_cents: int
    total_cents: int
    per_session_cents: int
