"""Conftest for service tests - services bound to the per-test session."""

from typing import Any

import pytest
from sqlalchemy.orm import Session

from app.domain.booking_state import SessionType
from app.models.booking_request import BookingRequest
from app.models.coach_rate import CoachRate
from app.models.user import User
from app.schemas.booking_request import BookingRequestCreate
from app.services.booking_request_service import BookingRequestService
from app.services.coach_rate_service import CoachRateService
from app.services.payment_service import PaymentService
from app.services.stripe_service import StripeService


@pytest.fixture
def stripe_service(db: Session) -> StripeService:
    return StripeService(db)


@pytest.fixture
def rate_service(db: Session, stripe_service: StripeService) -> CoachRateService:
    return CoachRateService(db, stripe_service=stripe_service)


@pytest.fixture
def booking_service(
    db: Session, stripe_service: StripeService, rate_service: CoachRateService
) -> BookingRequestService:
    return BookingRequestService(db, stripe_service=stripe_service, coach_rate_service=rate_service)


@pytest.fixture
def payment_service(
    db: Session, stripe_service: StripeService, booking_service: BookingRequestService
) -> PaymentService:
    return PaymentService(db, stripe_service=stripe_service, booking_request_service=booking_service)


@pytest.fixture
def make_request(booking_service: BookingRequestService):
    """Factory creating a pending request through the service."""

    def _make(client: User, coach: User, **overrides: Any) -> BookingRequest:
        fields = {
            "coach_id": coach.id,
            "session_type": SessionType.INDIVIDUAL,
            "duration_minutes": 60,
            "area_of_focus": "Career change",
        }
        fields.update(overrides)
        return booking_service.create_request(client, BookingRequestCreate(**fields))

    return _make


@pytest.fixture
def accepted_request(make_request, booking_service, test_client_user, test_coach) -> BookingRequest:
    booking_request = make_request(test_client_user, test_coach)
    return booking_service.accept_request(test_coach, booking_request.id, final_price_cents=12000)


@pytest.fixture
def coach_rate(db: Session, test_coach: User) -> CoachRate:
    rate = CoachRate(
        coach_id=test_coach.id,
        session_type=SessionType.INDIVIDUAL.value,
        duration_minutes=60,
        rate_cents=9000,
        title="One hour session",
        is_active=True,
    )
    db.add(rate)
    db.commit()
    return rate
