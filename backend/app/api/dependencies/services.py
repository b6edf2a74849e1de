# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected. Services built for one
request share a single StripeService and database session.
"""

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.booking_request_service import BookingRequestService
from ...services.coach_rate_service import CoachRateService
from ...services.payment_service import PaymentService
from ...services.stripe_service import StripeService
from .database import get_db

logger = logging.getLogger(__name__)


def get_stripe_service(db: Session = Depends(get_db)) -> StripeService:
    """Provide the Stripe wrapper for dependency injection."""
    return StripeService(db)


def get_coach_rate_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
) -> CoachRateService:
    """Provide coach rate service instance for dependency injection."""
    return CoachRateService(db, stripe_service=stripe_service)


def get_booking_request_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
    coach_rate_service: CoachRateService = Depends(get_coach_rate_service),
) -> BookingRequestService:
    """
    Get booking request service instance with all dependencies.

    Args:
        db: Database session
        stripe_service: Stripe wrapper used to release held funds
        coach_rate_service: Rate catalog used to price accepted requests

    Returns:
        BookingRequestService instance
    """
    return BookingRequestService(
        db, stripe_service=stripe_service, coach_rate_service=coach_rate_service
    )


def get_payment_service(
    db: Session = Depends(get_db),
    stripe_service: StripeService = Depends(get_stripe_service),
    booking_request_service: BookingRequestService = Depends(get_booking_request_service),
) -> PaymentService:
    """Get payment service instance sharing the request's Stripe wrapper."""
    return PaymentService(
        db, stripe_service=stripe_service, booking_request_service=booking_request_service
    )
