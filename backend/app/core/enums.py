# backend/app/core/enums.py
"""
Core enums for the coaching platform.

Role names are stored on the user row; the booking lifecycle enums live
with the booking domain in ``app.domain.booking_state``.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles a platform user can hold."""

    ADMIN = "admin"
    COACH = "coach"
    CLIENT = "client"


class ActorType(str, Enum):
    """Who performed a booking lifecycle action."""

    CLIENT = "client"
    COACH = "coach"
    SYSTEM = "system"
