"""
Database models for the coaching platform.

- User: clients, coaches, and admins
- BookingRequest: the client -> coach -> payment lifecycle
- BookingEvent: audit trail for every lifecycle move
- CoachRate: coach price catalog
- Payment: Stripe manual-capture payment intents
- CoachingSession: the session a paid request turns into
"""

from .booking_event import BookingEvent, BookingEventType
from .booking_request import BookingRequest
from .coach_rate import CoachRate
from .coaching_session import CoachingSession
from .payment import Payment
from .user import User

__all__ = [
    "BookingEvent",
    "BookingEventType",
    "BookingRequest",
    "CoachRate",
    "CoachingSession",
    "Payment",
    "User",
]
