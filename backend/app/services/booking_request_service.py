# backend/app/services/booking_request_service.py
"""
Booking Request Service for the coaching platform

Drives the booking request lifecycle:

    pending -> coach_accepted -> payment_required -> paid_confirmed
    pending -> rejected
    pending | coach_accepted | payment_required -> cancelled | expired

Every move runs in one transaction together with its audit event, so the
event log never disagrees with the stored status. Expiry is enforced when
someone acts on a stale request and by ``expire_stale_requests`` sweeps.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..constants.payment_status import FUNDED_STRIPE_STATUSES, PaymentStatus, map_payment_status
from ..core.config import settings
from ..core.enums import ActorType, RoleName
from ..core.exceptions import (
    BookingExpiredException,
    ForbiddenException,
    NotFoundException,
    PaymentVerificationException,
    ValidationException,
)
from ..domain.booking_state import (
    BookingRequestStatus,
    is_expired,
    payment_window_elapsed,
    resolve_session_start,
    validate_final_price,
    validate_price_invariant,
    validate_transition,
)
from ..models.booking_event import BookingEvent, BookingEventType
from ..models.booking_request import BookingRequest
from ..models.coaching_session import SESSION_STATUS_CONFIRMED, CoachingSession
from ..models.payment import Payment
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from ..schemas.booking_request import BookingRequestCreate
from .base import BaseService
from .coach_rate_service import CoachRateService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)


@dataclass
class ExpirySweepResult:
    expired: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    dry_run: bool = False


class BookingRequestService(BaseService):
    """
    Service layer for booking requests.

    Ownership checks report someone else's request as not found so callers
    cannot probe for ids they do not own.
    """

    def __init__(
        self,
        db: Session,
        stripe_service: Optional[StripeService] = None,
        coach_rate_service: Optional[CoachRateService] = None,
    ):
        super().__init__(db)
        self.repository = RepositoryFactory.create_booking_request_repository(db)
        self.event_repository = RepositoryFactory.create_booking_event_repository(db)
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.session_repository = RepositoryFactory.create_coaching_session_repository(db)
        self.stripe_service = stripe_service or StripeService(db)
        self.coach_rate_service = coach_rate_service or CoachRateService(
            db, stripe_service=self.stripe_service
        )

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _record_event(
        self,
        booking_request: BookingRequest,
        event_type: BookingEventType,
        actor_type: ActorType,
        actor_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> BookingEvent:
        return self.event_repository.record(
            booking_request.id, event_type, actor_type, actor_id, details
        )

    def _load(self, booking_request_id: str, for_update: bool = False) -> BookingRequest:
        booking_request = self.repository.get_by_id(booking_request_id, for_update=for_update)
        if booking_request is None:
            raise NotFoundException("Booking request not found", code="BOOKING_REQUEST_NOT_FOUND")
        return booking_request

    def _load_for_client(self, client: User, booking_request_id: str, for_update: bool = False) -> BookingRequest:
        booking_request = self._load(booking_request_id, for_update)
        if booking_request.client_id != client.id:
            raise NotFoundException("Booking request not found", code="BOOKING_REQUEST_NOT_FOUND")
        return booking_request

    def _load_for_coach(self, coach: User, booking_request_id: str, for_update: bool = False) -> BookingRequest:
        booking_request = self._load(booking_request_id, for_update)
        if booking_request.coach_id != coach.id:
            raise NotFoundException("Booking request not found", code="BOOKING_REQUEST_NOT_FOUND")
        return booking_request

    def _load_for_participant(self, user: User, booking_request_id: str, for_update: bool = False) -> BookingRequest:
        booking_request = self._load(booking_request_id, for_update)
        if not user.is_admin and not booking_request.involves(user.id):
            raise NotFoundException("Booking request not found", code="BOOKING_REQUEST_NOT_FOUND")
        return booking_request

    def _expire(self, booking_request: BookingRequest, reason: str) -> None:
        """Move to expired and release held funds. Caller owns the transaction."""
        previous = booking_request.status
        booking_request.expire()
        self.release_open_payment(booking_request, reason="expired")
        self._record_event(
            booking_request,
            BookingEventType.BOOKING_EXPIRED,
            ActorType.SYSTEM,
            details={"reason": reason, "previous_status": previous},
        )
        prometheus_metrics.record_booking_transition(previous, booking_request.status)

    def expire_and_raise(self, booking_request: BookingRequest, reason: str, message: str) -> None:
        with self.transaction():
            self._expire(booking_request, reason)
        self.logger.info(f"Booking request {booking_request.id} expired ({reason})")
        raise BookingExpiredException(message, booking_request_id=booking_request.id)

    def release_open_payment(self, booking_request: BookingRequest, reason: str) -> Optional[Payment]:
        """Cancel a still-open Stripe authorization for this request."""
        payment = self.payment_repository.get_open_for_booking(booking_request.id)
        if payment is None:
            return None
        self.stripe_service.cancel_payment_intent(
            payment.stripe_payment_intent_id,
            idempotency_key=f"cancel-{payment.id}",
        )
        payment.status = PaymentStatus.CANCELED.value
        payment.canceled_at = self._now()
        payment.failure_reason = reason
        self.payment_repository.flush()
        self.logger.info(f"Released payment {payment.id} for booking request {booking_request.id}")
        return payment

    # ------------------------------------------------------------------ #
    # Client actions
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("create_request")
    def create_request(self, client: User, data: BookingRequestCreate) -> BookingRequest:
        """
        Create a pending request addressed to an active coach.

        Raises:
            ValidationException: client addressed themselves
            NotFoundException: coach missing, inactive, or not a coach
        """
        if data.coach_id == client.id:
            raise ValidationException("You cannot book a session with yourself", code="SELF_BOOKING")
        coach = self.user_repository.get_active_coach(data.coach_id)
        if coach is None:
            raise NotFoundException("Coach not found or inactive", code="COACH_NOT_FOUND")

        with self.transaction():
            booking_request = self.repository.create(
                client_id=client.id,
                coach_id=coach.id,
                session_type=data.session_type.value,
                duration_minutes=data.duration_minutes,
                preferred_date=data.preferred_date,
                preferred_time=data.preferred_time,
                area_of_focus=data.area_of_focus,
                notes=data.notes,
                status=BookingRequestStatus.PENDING.value,
                expires_at=self._now() + timedelta(hours=settings.booking_request_ttl_hours),
            )
            self._record_event(
                booking_request,
                BookingEventType.REQUEST_CREATED,
                ActorType.CLIENT,
                client.id,
                {"session_type": booking_request.session_type, "duration_minutes": booking_request.duration_minutes},
            )
        self.logger.info(
            f"Booking request {booking_request.id} created by client {client.id} for coach {coach.id}"
        )
        return booking_request

    @BaseService.measure_operation("confirm_payment")
    def confirm_payment(
        self, client: User, booking_request_id: str, payment_intent_id: str
    ) -> BookingRequest:
        """
        Confirm a request once Stripe reports the authorization succeeded.

        Raises:
            BookingTransitionException: request is not awaiting payment
            BookingExpiredException: payment deadline passed
            PaymentVerificationException: intent does not back this request
        """
        booking_request = self._load_for_client(client, booking_request_id, for_update=True)
        validate_transition(booking_request.status, BookingRequestStatus.PAID_CONFIRMED)
        if payment_window_elapsed(booking_request.payment_deadline, self._now()):
            self.expire_and_raise(
                booking_request, "payment_deadline", "Payment deadline has passed"
            )

        payment = self.payment_repository.get_by_intent_id(payment_intent_id)
        if payment is None or payment.booking_request_id != booking_request.id:
            raise PaymentVerificationException(
                "Payment does not belong to this booking request",
                payment_intent_id=payment_intent_id,
            )
        intent = self.stripe_service.retrieve_payment_intent(payment_intent_id)
        if intent.status not in FUNDED_STRIPE_STATUSES:
            raise PaymentVerificationException(
                f"Payment has not been authorized (status: {intent.status})",
                payment_intent_id=payment_intent_id,
            )
        if int(intent.amount) != booking_request.final_price_cents:
            raise PaymentVerificationException(
                "Payment amount does not match the accepted price",
                payment_intent_id=payment_intent_id,
            )

        with self.transaction():
            self._mark_paid(booking_request, payment, intent.status, ActorType.CLIENT, client.id)
        return booking_request

    def _mark_paid(
        self,
        booking_request: BookingRequest,
        payment: Payment,
        stripe_status: str,
        actor_type: ActorType,
        actor_id: Optional[str],
    ) -> None:
        previous = booking_request.status
        payment.status = map_payment_status(stripe_status)
        payment.authorized_at = payment.authorized_at or self._now()
        booking_request.confirm_payment(payment.stripe_payment_intent_id)
        validate_price_invariant(booking_request.status, booking_request.final_price_cents)
        self.repository.flush()
        session = self._create_session(booking_request, payment)
        self._record_event(
            booking_request,
            BookingEventType.PAYMENT_COMPLETED,
            actor_type,
            actor_id,
            {"payment_id": payment.id, "amount_cents": payment.amount_cents},
        )
        self._record_event(
            booking_request,
            BookingEventType.BOOKING_CONFIRMED,
            ActorType.SYSTEM,
            details={"session_id": session.id, "scheduled_at": session.scheduled_at.isoformat()},
        )
        prometheus_metrics.record_booking_transition(previous, booking_request.status)
        self.logger.info(
            f"Booking request {booking_request.id} paid and confirmed as session {session.id}"
        )

    def _create_session(self, booking_request: BookingRequest, payment: Payment) -> CoachingSession:
        scheduled_at = resolve_session_start(
            booking_request.preferred_date, booking_request.preferred_time, self._now()
        )
        return self.session_repository.create(
            booking_request_id=booking_request.id,
            client_id=booking_request.client_id,
            coach_id=booking_request.coach_id,
            payment_id=payment.id,
            scheduled_at=scheduled_at,
            ends_at=scheduled_at + timedelta(minutes=booking_request.duration_minutes),
            session_type=booking_request.session_type,
            duration_minutes=booking_request.duration_minutes,
            notes=booking_request.notes,
            area_of_focus=booking_request.area_of_focus,
            status=SESSION_STATUS_CONFIRMED,
        )

    def mark_paid_from_webhook(
        self, payment: Payment, stripe_status: str, amount_cents: int
    ) -> Optional[BookingRequest]:
        """
        Confirm the request behind ``payment`` from a Stripe webhook.

        Repeated deliveries are no-ops. Returns None when the request can no
        longer be paid (cancelled or expired meanwhile) or the authorized
        amount differs from the accepted price; the caller decides what to do
        with the held funds.
        """
        booking_request = self._load(payment.booking_request_id, for_update=True)
        if booking_request.status == BookingRequestStatus.PAID_CONFIRMED.value:
            return booking_request
        if not booking_request.is_payable:
            self.logger.warning(
                f"Webhook payment {payment.id} arrived for booking request "
                f"{booking_request.id} in status {booking_request.status}"
            )
            return None
        if int(amount_cents) != booking_request.final_price_cents:
            self.logger.warning(
                f"Webhook payment {payment.id} authorized {amount_cents} cents but booking request "
                f"{booking_request.id} was accepted at {booking_request.final_price_cents}"
            )
            return None
        self._mark_paid(booking_request, payment, stripe_status, ActorType.SYSTEM, None)
        return booking_request

    @BaseService.measure_operation("get_session")
    def get_session(self, user: User, booking_request_id: str) -> CoachingSession:
        """Session created when the request was paid; participants and admins only."""
        booking_request = self._load_for_participant(user, booking_request_id)
        session = self.session_repository.get_for_booking(booking_request.id)
        if session is None:
            raise NotFoundException("No session has been scheduled for this request", code="SESSION_NOT_FOUND")
        return session

    # ------------------------------------------------------------------ #
    # Coach actions
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("accept_request")
    def accept_request(
        self,
        coach: User,
        booking_request_id: str,
        final_price_cents: Optional[int] = None,
        coach_rate_id: Optional[str] = None,
        coach_notes: Optional[str] = None,
    ) -> BookingRequest:
        """
        Price and accept a pending request, opening the payment window.

        ``final_price_cents`` falls back to the referenced rate's price.

        Raises:
            BookingTransitionException: request is not pending
            BookingExpiredException: request passed ``expires_at``
            ValidationException: no usable price, or a foreign/inactive rate
        """
        booking_request = self._load_for_coach(coach, booking_request_id, for_update=True)
        validate_transition(booking_request.status, BookingRequestStatus.COACH_ACCEPTED)
        if is_expired(booking_request.expires_at, self._now()):
            self.expire_and_raise(booking_request, "coach_response_window", "Booking request has expired")

        if coach_rate_id is not None:
            rate = self.coach_rate_service.validate_rate_for_booking(coach_rate_id, coach.id)
            if final_price_cents is None:
                final_price_cents = rate.rate_cents
        price = validate_final_price(final_price_cents)

        previous = booking_request.status
        with self.transaction():
            booking_request.accept(
                final_price_cents=price,
                payment_deadline=self._now() + timedelta(hours=settings.payment_window_hours),
                coach_notes=coach_notes,
                coach_rate_id=coach_rate_id,
            )
            validate_price_invariant(booking_request.status, booking_request.final_price_cents)
            self.repository.flush()
            self._record_event(
                booking_request,
                BookingEventType.COACH_ACCEPTED,
                ActorType.COACH,
                coach.id,
                {"final_price_cents": price, "coach_rate_id": coach_rate_id},
            )
        prometheus_metrics.record_booking_transition(previous, BookingRequestStatus.COACH_ACCEPTED.value)
        prometheus_metrics.record_booking_transition(
            BookingRequestStatus.COACH_ACCEPTED.value, booking_request.status
        )
        self.logger.info(
            f"Coach {coach.id} accepted booking request {booking_request.id} at {price} cents"
        )
        return booking_request

    @BaseService.measure_operation("reject_request")
    def reject_request(
        self, coach: User, booking_request_id: str, reason: Optional[str] = None
    ) -> BookingRequest:
        booking_request = self._load_for_coach(coach, booking_request_id, for_update=True)
        previous = booking_request.status
        with self.transaction():
            booking_request.reject(reason)
            self.repository.flush()
            self._record_event(
                booking_request,
                BookingEventType.COACH_REJECTED,
                ActorType.COACH,
                coach.id,
                {"reason": reason} if reason else None,
            )
        prometheus_metrics.record_booking_transition(previous, booking_request.status)
        self.logger.info(f"Coach {coach.id} rejected booking request {booking_request.id}")
        return booking_request

    # ------------------------------------------------------------------ #
    # Either party
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("cancel_request")
    def cancel_request(
        self, user: User, booking_request_id: str, reason: Optional[str] = None
    ) -> BookingRequest:
        """
        Cancel before payment. Held Stripe funds are released first so a
        Stripe failure leaves the request untouched.
        """
        booking_request = self._load(booking_request_id, for_update=True)
        if not booking_request.involves(user.id):
            if user.is_admin:
                raise ForbiddenException(
                    "Only the client or coach can cancel a booking request",
                    code="CANCEL_NOT_ALLOWED",
                )
            raise NotFoundException("Booking request not found", code="BOOKING_REQUEST_NOT_FOUND")
        validate_transition(booking_request.status, BookingRequestStatus.CANCELLED)

        actor_type = ActorType.CLIENT if user.id == booking_request.client_id else ActorType.COACH
        previous = booking_request.status
        with self.transaction():
            self.release_open_payment(booking_request, reason="booking_cancelled")
            booking_request.cancel(user.id, reason)
            self.repository.flush()
            self._record_event(
                booking_request,
                BookingEventType.BOOKING_CANCELLED,
                actor_type,
                user.id,
                {"reason": reason, "previous_status": previous},
            )
        prometheus_metrics.record_booking_transition(previous, booking_request.status)
        self.logger.info(f"Booking request {booking_request.id} cancelled by {actor_type.value} {user.id}")
        return booking_request

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("list_coach_pending")
    def list_coach_pending(self, coach: User) -> List[BookingRequest]:
        """Pending requests for the coach, newest first."""
        return self.repository.list_for_coach(coach.id, BookingRequestStatus.PENDING)

    @BaseService.measure_operation("list_coach_requests")
    def list_coach_requests(
        self, coach: User, status: Optional[BookingRequestStatus] = None
    ) -> List[BookingRequest]:
        return self.repository.list_for_coach(coach.id, status)

    @BaseService.measure_operation("list_client_requests")
    def list_client_requests(
        self, client: User, status: Optional[BookingRequestStatus] = None
    ) -> List[BookingRequest]:
        return self.repository.list_for_client(client.id, status)

    def get_for_client(self, client: User, booking_request_id: str) -> BookingRequest:
        return self._load_for_client(client, booking_request_id)

    def get_for_coach(self, coach: User, booking_request_id: str) -> BookingRequest:
        return self._load_for_coach(coach, booking_request_id)

    @BaseService.measure_operation("list_events")
    def list_events(self, user: User, booking_request_id: str) -> List[BookingEvent]:
        self._load_for_participant(user, booking_request_id)
        return self.event_repository.list_for_booking(booking_request_id)

    @BaseService.measure_operation("get_overview")
    def get_overview(self, user: User) -> Dict[str, Any]:
        """Status counts for the caller and how many requests wait on them."""
        if user.role == RoleName.COACH.value:
            counts = self.repository.count_by_status(coach_id=user.id)
            awaiting = counts[BookingRequestStatus.PENDING.value]
        elif user.role == RoleName.CLIENT.value:
            counts = self.repository.count_by_status(client_id=user.id)
            awaiting = (
                counts[BookingRequestStatus.COACH_ACCEPTED.value]
                + counts[BookingRequestStatus.PAYMENT_REQUIRED.value]
            )
        else:
            counts = self.repository.count_by_status()
            awaiting = 0
        return {
            "role": user.role,
            "counts": counts,
            "total": sum(counts.values()),
            "awaiting_action": awaiting,
        }

    # ------------------------------------------------------------------ #
    # Maintenance
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("expire_stale_requests")
    def expire_stale_requests(
        self, now: Optional[datetime] = None, dry_run: bool = False
    ) -> ExpirySweepResult:
        """
        Expire pending requests past ``expires_at`` and unpaid ones past
        ``payment_deadline``. Each request commits on its own; one failure
        is reported and the sweep moves on.
        """
        now = now or self._now()
        result = ExpirySweepResult(dry_run=dry_run)
        for booking_request in self.repository.find_stale(now):
            if dry_run:
                result.expired.append(booking_request.id)
                continue
            reason = (
                "coach_response_window"
                if booking_request.status == BookingRequestStatus.PENDING.value
                else "payment_deadline"
            )
            try:
                with self.transaction():
                    self._expire(booking_request, reason)
            except Exception as e:
                self.logger.error(f"Failed to expire booking request {booking_request.id}: {str(e)}")
                result.failed.append(booking_request.id)
                continue
            result.expired.append(booking_request.id)
        self.logger.info(
            f"Expiry sweep finished: expired={len(result.expired)} failed={len(result.failed)} dry_run={dry_run}"
        )
        return result
