"""Booking request lifecycle rules shared by services, models, and schemas.

Everything here is pure: no session, no clock lookups. Callers pass ``now``
so the same checks run identically in the API, the expiry sweep, and tests.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import ROUND_FLOOR, Decimal
from enum import Enum
from typing import Optional, Union

from app.core.constants import ALLOWED_DURATIONS, DEFAULT_SESSION_LEAD_MINUTES
from app.core.exceptions import BookingTransitionException, ValidationException


class BookingRequestStatus(str, Enum):
    """Lifecycle states of a client booking request."""

    PENDING = "pending"
    COACH_ACCEPTED = "coach_accepted"
    PAYMENT_REQUIRED = "payment_required"
    PAID_CONFIRMED = "paid_confirmed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SessionType(str, Enum):
    INDIVIDUAL = "individual"
    GROUP = "group"
    PACKAGE = "package"


_S = BookingRequestStatus

_ALLOWED_TRANSITIONS: dict[BookingRequestStatus, frozenset[BookingRequestStatus]] = {
    _S.PENDING: frozenset({_S.COACH_ACCEPTED, _S.REJECTED, _S.CANCELLED, _S.EXPIRED}),
    _S.COACH_ACCEPTED: frozenset(
        {_S.PAYMENT_REQUIRED, _S.PAID_CONFIRMED, _S.CANCELLED, _S.EXPIRED}
    ),
    _S.PAYMENT_REQUIRED: frozenset({_S.PAID_CONFIRMED, _S.CANCELLED, _S.EXPIRED}),
    _S.PAID_CONFIRMED: frozenset(),
    _S.REJECTED: frozenset(),
    _S.CANCELLED: frozenset(),
    _S.EXPIRED: frozenset(),
}

TERMINAL_STATUSES: frozenset[BookingRequestStatus] = frozenset(
    status for status, targets in _ALLOWED_TRANSITIONS.items() if not targets
)
CANCELLABLE_STATUSES: frozenset[BookingRequestStatus] = frozenset(
    {_S.PENDING, _S.COACH_ACCEPTED, _S.PAYMENT_REQUIRED}
)
PAYABLE_STATUSES: frozenset[BookingRequestStatus] = frozenset(
    {_S.COACH_ACCEPTED, _S.PAYMENT_REQUIRED}
)
# States only reachable through a coach accepting the request.
PRICED_STATUSES: frozenset[BookingRequestStatus] = frozenset(
    {_S.COACH_ACCEPTED, _S.PAYMENT_REQUIRED, _S.PAID_CONFIRMED}
)


def _coerce(status: BookingRequestStatus | str) -> BookingRequestStatus:
    try:
        return BookingRequestStatus(status)
    except ValueError:
        raise ValidationException(
            f"Unknown booking request status: {status}",
            code="INVALID_STATUS",
            details={"status": str(status)},
        )


def allowed_transitions(current: BookingRequestStatus | str) -> frozenset[BookingRequestStatus]:
    return _ALLOWED_TRANSITIONS[_coerce(current)]


def can_transition(current: BookingRequestStatus | str, target: BookingRequestStatus | str) -> bool:
    return _coerce(target) in allowed_transitions(current)


def is_terminal(status: BookingRequestStatus | str) -> bool:
    return _coerce(status) in TERMINAL_STATUSES


def validate_transition(
    current: BookingRequestStatus | str, target: BookingRequestStatus | str
) -> BookingRequestStatus:
    """
    Check that ``current -> target`` is a legal lifecycle move.

    Returns the target as an enum member so callers can assign it directly.

    Raises:
        BookingTransitionException: if the move is not allowed
    """
    current_status = _coerce(current)
    target_status = _coerce(target)
    if target_status in _ALLOWED_TRANSITIONS[current_status]:
        return target_status
    if current_status in TERMINAL_STATUSES:
        raise BookingTransitionException(
            current_status.value,
            target_status.value,
            message=f"Booking request is already {current_status.value}",
        )
    raise BookingTransitionException(current_status.value, target_status.value)


def validate_price_invariant(
    status: BookingRequestStatus | str, final_price_cents: Optional[int]
) -> None:
    """Price is unset while pending and positive once a coach has accepted."""
    current = _coerce(status)
    if current == _S.PENDING and final_price_cents is not None:
        raise ValidationException(
            "A pending booking request cannot carry a final price",
            code="PRICE_BEFORE_ACCEPT",
        )
    if current in PRICED_STATUSES and (final_price_cents is None or final_price_cents <= 0):
        raise ValidationException(
            "Accepted booking requests need a positive final price",
            code="INVALID_FINAL_PRICE",
            details={"final_price_cents": final_price_cents},
        )


def validate_final_price(final_price_cents: Optional[int]) -> int:
    if final_price_cents is None or final_price_cents <= 0:
        raise ValidationException(
            "final_price_cents must be greater than zero",
            code="INVALID_FINAL_PRICE",
            details={"final_price_cents": final_price_cents},
        )
    return final_price_cents


def validate_duration(duration_minutes: int) -> int:
    if duration_minutes not in ALLOWED_DURATIONS:
        raise ValidationException(
            f"Duration must be one of {', '.join(str(d) for d in ALLOWED_DURATIONS)} minutes",
            code="INVALID_DURATION",
            details={"duration_minutes": duration_minutes},
        )
    return duration_minutes


def validate_session_type(session_type: SessionType | str) -> SessionType:
    try:
        return SessionType(session_type)
    except ValueError:
        raise ValidationException(
            f"Unknown session type: {session_type}",
            code="INVALID_SESSION_TYPE",
            details={"session_type": str(session_type)},
        )


def _aware(value: datetime) -> datetime:
    # sqlite hands back naive datetimes for timezone-aware columns
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def is_expired(expires_at: Optional[datetime], now: datetime) -> bool:
    return expires_at is not None and _aware(now) >= _aware(expires_at)


def payment_window_elapsed(payment_deadline: Optional[datetime], now: datetime) -> bool:
    return payment_deadline is not None and _aware(now) >= _aware(payment_deadline)


def resolve_session_start(
    preferred_date: Optional[str], preferred_time: Optional[str], now: datetime
) -> datetime:
    """
    Start time for the session a paid request turns into.

    Uses the client's ISO date and time hints when both are present and
    parse; otherwise the session starts ``DEFAULT_SESSION_LEAD_MINUTES``
    from ``now``. Naive values are read as UTC.
    """
    if preferred_date and preferred_time:
        try:
            return _aware(datetime.fromisoformat(f"{preferred_date.strip()}T{preferred_time.strip()}"))
        except ValueError:
            pass
    return _aware(now) + timedelta(minutes=DEFAULT_SESSION_LEAD_MINUTES)


def calculate_fee_split(
    amount_cents: int, platform_fee_percentage: Union[Decimal, float, int]
) -> tuple[int, int]:
    """Return ``(platform_fee_cents, coach_earnings_cents)``; the coach share rounds down."""
    if amount_cents <= 0:
        raise ValidationException("Payment amount must be greater than zero", code="INVALID_AMOUNT")
    # str() keeps 14.3 as 14.3 instead of its binary approximation
    pct = Decimal(str(platform_fee_percentage))
    coach_share = Decimal(amount_cents) * (Decimal(100) - pct) / Decimal(100)
    coach_earnings = int(coach_share.to_integral_value(rounding=ROUND_FLOOR))
    return amount_cents - coach_earnings, coach_earnings
