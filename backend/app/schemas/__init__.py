# backend/app/schemas/__init__.py
"""
Pydantic schemas for the coaching platform.

Request models forbid unknown fields; response models read from ORM rows.
"""

from .booking_request import (
    BookingEventResponse,
    BookingOverviewResponse,
    BookingRequestAccept,
    BookingRequestCancel,
    BookingRequestCreate,
    BookingRequestListResponse,
    BookingRequestPay,
    BookingRequestReject,
    BookingRequestResponse,
    CoachingSessionResponse,
    ExpirySweepResponse,
)
from .coach_rate import (
    CoachRateBulkUpdate,
    CoachRateCreate,
    CoachRateListResponse,
    CoachRateResponse,
    CoachRateUpdate,
    PackageDiscountRequest,
    PackageDiscountResponse,
    SuggestedRateResponse,
)
from .payment import (
    AuthorizePaymentRequest,
    AuthorizePaymentResponse,
    PaymentActionRequest,
    PaymentResponse,
    WebhookResponse,
)

__all__ = [
    "AuthorizePaymentRequest",
    "AuthorizePaymentResponse",
    "BookingEventResponse",
    "BookingOverviewResponse",
    "BookingRequestAccept",
    "BookingRequestCancel",
    "BookingRequestCreate",
    "BookingRequestListResponse",
    "BookingRequestPay",
    "BookingRequestReject",
    "BookingRequestResponse",
    "CoachingSessionResponse",
    "CoachRateBulkUpdate",
    "CoachRateCreate",
    "CoachRateListResponse",
    "CoachRateResponse",
    "CoachRateUpdate",
    "ExpirySweepResponse",
    "PackageDiscountRequest",
    "PackageDiscountResponse",
    "PaymentActionRequest",
    "PaymentResponse",
    "SuggestedRateResponse",
    "WebhookResponse",
]
