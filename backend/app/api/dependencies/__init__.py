# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import get_current_client, get_current_coach, get_current_user, require_admin
from .database import get_db
from .services import (
    get_booking_request_service,
    get_coach_rate_service,
    get_payment_service,
    get_stripe_service,
)

__all__ = [
    # Auth
    "get_current_user",
    "get_current_coach",
    "get_current_client",
    "require_admin",
    # Database
    "get_db",
    # Services
    "get_stripe_service",
    "get_coach_rate_service",
    "get_booking_request_service",
    "get_payment_service",
]
