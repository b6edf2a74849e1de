"""Payment authorize/capture schemas."""

from datetime import datetime
from typing import Optional

from pydantic import Field

from ._strict_base import ORMResponseModel, StrictRequestModel


class AuthorizePaymentRequest(StrictRequestModel):
    booking_request_id: str = Field(..., min_length=26, max_length=26)


class PaymentActionRequest(StrictRequestModel):
    payment_id: str = Field(..., min_length=26, max_length=26)


class PaymentResponse(ORMResponseModel):
    id: str
    booking_request_id: str
    client_id: str
    coach_id: str
    stripe_payment_intent_id: str
    amount_cents: int
    platform_fee_cents: int
    coach_earnings_cents: int
    currency: str
    status: str
    failure_reason: Optional[str] = None
    authorized_at: Optional[datetime] = None
    captured_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    created_at: datetime


class AuthorizePaymentResponse(ORMResponseModel):
    """What the client needs to confirm the intent with Stripe Elements."""

    payment: PaymentResponse
    client_secret: Optional[str] = None


class WebhookResponse(ORMResponseModel):
    status: str
    event_type: Optional[str] = None
    message: Optional[str] = None
