# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the coaching platform

Key Components:
- BaseRepository: generic CRUD with flush-only writes
- RepositoryFactory: factory used by services to build repositories
- BookingRequestRepository, BookingEventRepository
- CoachRateRepository, CoachingSessionRepository
- PaymentRepository, UserRepository

Usage:
    from app.repositories import RepositoryFactory

    repository = RepositoryFactory.create_booking_request_repository(db)
    pending = repository.list_for_coach(coach_id, BookingRequestStatus.PENDING)
"""

from .base_repository import BaseRepository
from .booking_event_repository import BookingEventRepository
from .booking_request_repository import BookingRequestRepository
from .coach_rate_repository import CoachRateRepository
from .coaching_session_repository import CoachingSessionRepository
from .factory import RepositoryFactory
from .payment_repository import PaymentRepository
from .user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "BookingEventRepository",
    "BookingRequestRepository",
    "CoachRateRepository",
    "CoachingSessionRepository",
    "PaymentRepository",
    "RepositoryFactory",
    "UserRepository",
]
