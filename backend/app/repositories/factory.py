# backend/app/repositories/factory.py
"""
Repository Factory for the coaching platform

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from typing import TYPE_CHECKING

from sqlalchemy.orm import Session

from .base_repository import BaseRepository

# Avoid circular imports
if TYPE_CHECKING:
    from .booking_event_repository import BookingEventRepository
    from .booking_request_repository import BookingRequestRepository
    from .coach_rate_repository import CoachRateRepository
    from .coaching_session_repository import CoachingSessionRepository
    from .payment_repository import PaymentRepository
    from .user_repository import UserRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Services ask the factory instead of constructing repositories so tests
    can patch a single seam.
    """

    @staticmethod
    def create_base_repository(db: Session, model) -> BaseRepository:
        """Create a generic base repository for any model."""
        return BaseRepository(db, model)

    @staticmethod
    def create_booking_request_repository(db: Session) -> "BookingRequestRepository":
        from .booking_request_repository import BookingRequestRepository

        return BookingRequestRepository(db)

    @staticmethod
    def create_booking_event_repository(db: Session) -> "BookingEventRepository":
        from .booking_event_repository import BookingEventRepository

        return BookingEventRepository(db)

    @staticmethod
    def create_coach_rate_repository(db: Session) -> "CoachRateRepository":
        from .coach_rate_repository import CoachRateRepository

        return CoachRateRepository(db)

    @staticmethod
    def create_coaching_session_repository(db: Session) -> "CoachingSessionRepository":
        from .coaching_session_repository import CoachingSessionRepository

        return CoachingSessionRepository(db)

    @staticmethod
    def create_payment_repository(db: Session) -> "PaymentRepository":
        from .payment_repository import PaymentRepository

        return PaymentRepository(db)

    @staticmethod
    def create_user_repository(db: Session) -> "UserRepository":
        from .user_repository import UserRepository

        return UserRepository(db)
