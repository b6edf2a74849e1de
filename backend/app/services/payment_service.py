"""
Payment Service for the coaching platform

Authorize/capture flow for accepted booking requests:

1. ``authorize`` creates a manual-capture PaymentIntent for the accepted
   price and hands the client secret to the frontend.
2. The client confirms with Stripe; the booking request is then confirmed
   either by the client calling the pay endpoint or by the
   ``payment_intent.amount_capturable_updated`` webhook.
3. ``capture`` collects the funds after the session; ``cancel_authorization``
   releases them.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..constants.payment_status import PaymentStatus, map_payment_status
from ..core.config import settings
from ..core.exceptions import BusinessRuleException, NotFoundException
from ..domain.booking_state import BookingRequestStatus, calculate_fee_split, payment_window_elapsed
from ..models.payment import Payment
from ..models.user import User
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .booking_request_service import BookingRequestService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)

CAPTURABLE_EVENTS = frozenset(
    {"payment_intent.amount_capturable_updated", "payment_intent.succeeded"}
)


@dataclass
class AuthorizationResult:
    payment: Payment
    client_secret: Optional[str]


class PaymentService(BaseService):
    """Stripe authorize/capture bookkeeping for booking requests."""

    def __init__(
        self,
        db: Session,
        stripe_service: Optional[StripeService] = None,
        booking_request_service: Optional[BookingRequestService] = None,
    ):
        super().__init__(db)
        self.stripe_service = stripe_service or StripeService(db)
        self.booking_request_service = booking_request_service or BookingRequestService(
            db, stripe_service=self.stripe_service
        )
        self.payment_repository = RepositoryFactory.create_payment_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_request_repository(db)

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _load_payment(self, user: User, payment_id: str) -> Payment:
        payment = self.payment_repository.get_by_id(payment_id, for_update=True)
        if payment is None or not (
            user.is_admin or user.id in (payment.client_id, payment.coach_id)
        ):
            raise NotFoundException("Payment not found", code="PAYMENT_NOT_FOUND")
        return payment

    # ------------------------------------------------------------------ #
    # Authorize
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("authorize_payment")
    def authorize(self, client: User, booking_request_id: str) -> AuthorizationResult:
        """
        Create (or reuse) the manual-capture intent for an accepted request.

        Raises:
            NotFoundException: request missing or owned by someone else
            BusinessRuleException: request is not awaiting payment
            BookingExpiredException: payment deadline passed
        """
        booking_request = self.booking_request_service.get_for_client(client, booking_request_id)
        if not booking_request.is_payable:
            raise BusinessRuleException(
                f"Booking request is not awaiting payment (status: {booking_request.status})",
                code="BOOKING_NOT_PAYABLE",
                details={"status": booking_request.status},
            )
        if payment_window_elapsed(booking_request.payment_deadline, self._now()):
            self.booking_request_service.expire_and_raise(
                booking_request, "payment_deadline", "Payment deadline has passed"
            )

        amount = booking_request.final_price_cents
        # the accepted price is fixed once set, so an open intent always matches it
        existing = self.payment_repository.get_open_for_booking(booking_request.id)
        if existing is not None:
            intent = self.stripe_service.retrieve_payment_intent(existing.stripe_payment_intent_id)
            self.logger.info(f"Reusing payment {existing.id} for booking request {booking_request.id}")
            return AuthorizationResult(payment=existing, client_secret=intent.client_secret)

        attempt = len(self.payment_repository.list_for_booking(booking_request.id))
        platform_fee, coach_earnings = calculate_fee_split(
            amount, settings.stripe_platform_fee_percentage
        )
        with self.transaction():
            intent = self.stripe_service.create_authorization(
                amount_cents=amount,
                metadata={
                    "booking_request_id": booking_request.id,
                    "client_id": booking_request.client_id,
                    "coach_id": booking_request.coach_id,
                },
                idempotency_key=f"authorize-{booking_request.id}-{attempt}",
                description=f"Coaching session ({booking_request.session_type}, {booking_request.duration_minutes} min)",
            )
            status = map_payment_status(intent.status)
            payment = self.payment_repository.create(
                booking_request_id=booking_request.id,
                client_id=booking_request.client_id,
                coach_id=booking_request.coach_id,
                stripe_payment_intent_id=intent.id,
                amount_cents=amount,
                platform_fee_cents=platform_fee,
                coach_earnings_cents=coach_earnings,
                currency=settings.stripe_currency,
                status=status,
                authorized_at=self._now() if status == PaymentStatus.AUTHORIZED.value else None,
            )
        self.logger.info(
            f"Authorized payment {payment.id} ({amount} cents) for booking request {booking_request.id}"
        )
        return AuthorizationResult(payment=payment, client_secret=intent.client_secret)

    # ------------------------------------------------------------------ #
    # Capture / cancel / status
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("capture_payment")
    def capture(self, user: User, payment_id: str) -> Payment:
        """Collect authorized funds. Only the coach or an admin may capture."""
        payment = self._load_payment(user, payment_id)
        if not (user.is_admin or user.id == payment.coach_id):
            raise NotFoundException("Payment not found", code="PAYMENT_NOT_FOUND")
        if payment.status != PaymentStatus.AUTHORIZED.value:
            raise BusinessRuleException(
                f"Only authorized payments can be captured (status: {payment.status})",
                code="PAYMENT_NOT_CAPTURABLE",
            )
        with self.transaction():
            intent = self.stripe_service.capture_payment_intent(
                payment.stripe_payment_intent_id, idempotency_key=f"capture-{payment.id}"
            )
            payment.status = map_payment_status(intent.status)
            payment.captured_at = self._now()
            self.payment_repository.flush()
        self.logger.info(f"Captured payment {payment.id}")
        return payment

    @BaseService.measure_operation("cancel_authorization")
    def cancel_authorization(self, user: User, payment_id: str) -> Payment:
        """Release a held or not-yet-confirmed authorization."""
        payment = self._load_payment(user, payment_id)
        if not payment.is_open:
            raise BusinessRuleException(
                f"Payment cannot be canceled (status: {payment.status})",
                code="PAYMENT_NOT_CANCELABLE",
            )
        booking_request = self.booking_repository.get_by_id(payment.booking_request_id)
        if booking_request is not None and booking_request.status == BookingRequestStatus.PAID_CONFIRMED.value:
            raise BusinessRuleException(
                "The booking is already confirmed; its payment cannot be released",
                code="PAYMENT_NOT_CANCELABLE",
            )
        with self.transaction():
            self.stripe_service.cancel_payment_intent(
                payment.stripe_payment_intent_id, idempotency_key=f"cancel-{payment.id}"
            )
            payment.status = PaymentStatus.CANCELED.value
            payment.canceled_at = self._now()
            self.payment_repository.flush()
        self.logger.info(f"Canceled authorization for payment {payment.id}")
        return payment

    @BaseService.measure_operation("get_payment_status")
    def get_status(self, user: User, payment_id: str) -> Payment:
        return self._load_payment(user, payment_id)

    # ------------------------------------------------------------------ #
    # Webhooks
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("handle_webhook")
    def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify and apply a Stripe webhook.

        Unknown event types and intents we never created are acknowledged
        so Stripe stops retrying them.
        """
        event = self.stripe_service.construct_webhook_event(payload, signature)
        event_type = event.type
        intent = event.data.object
        self.logger.info(f"Processing webhook event: {event_type}")

        if not event_type.startswith("payment_intent."):
            prometheus_metrics.record_webhook_event(event_type, "ignored")
            return {"status": "ignored", "event_type": event_type, "message": "Unhandled event type"}

        payment = self.payment_repository.get_by_intent_id(intent.id)
        if payment is None:
            prometheus_metrics.record_webhook_event(event_type, "unknown_intent")
            self.logger.warning(f"Webhook for unknown payment intent {intent.id}")
            return {"status": "ignored", "event_type": event_type, "message": "Unknown payment intent"}

        if not payment.is_open:
            # canceled, failed and captured payments are final here
            prometheus_metrics.record_webhook_event(event_type, "stale")
            self.logger.info(
                f"Ignoring {event_type} for payment {payment.id} already in status {payment.status}"
            )
            return {
                "status": "ignored",
                "event_type": event_type,
                "message": f"Payment is already {payment.status}",
            }

        with self.transaction():
            message = self._apply_intent_event(payment, event_type, intent)
        prometheus_metrics.record_webhook_event(event_type, "processed")
        return {"status": "success", "event_type": event_type, "message": message}

    def _apply_intent_event(self, payment: Payment, event_type: str, intent: Any) -> str:
        if event_type in CAPTURABLE_EVENTS:
            payment.status = map_payment_status(intent.status)
            if payment.status == PaymentStatus.SUCCEEDED.value:
                payment.captured_at = payment.captured_at or self._now()
            booking_request = self.booking_request_service.mark_paid_from_webhook(
                payment, intent.status, intent.amount
            )
            if booking_request is None and payment.status == PaymentStatus.AUTHORIZED.value:
                # request left the payable states, or the intent amount is not the accepted price
                self.stripe_service.cancel_payment_intent(
                    payment.stripe_payment_intent_id, idempotency_key=f"cancel-{payment.id}"
                )
                payment.status = PaymentStatus.CANCELED.value
                payment.canceled_at = self._now()
                payment.failure_reason = "booking_no_longer_payable"
                self.payment_repository.flush()
                return "Authorization released; booking request cannot be confirmed with this payment"
            self.payment_repository.flush()
            return "Booking request confirmed" if booking_request else "Payment recorded"

        if event_type == "payment_intent.payment_failed":
            payment.status = PaymentStatus.FAILED.value
            last_error = getattr(intent, "last_payment_error", None)
            payment.failure_reason = getattr(last_error, "message", None) or "payment_failed"
            self.payment_repository.flush()
            self.logger.warning(f"Payment {payment.id} failed: {payment.failure_reason}")
            return "Payment failure recorded"

        if event_type == "payment_intent.canceled":
            payment.status = PaymentStatus.CANCELED.value
            payment.canceled_at = payment.canceled_at or self._now()
            self.payment_repository.flush()
            return "Payment cancellation recorded"

        return "Event acknowledged"
