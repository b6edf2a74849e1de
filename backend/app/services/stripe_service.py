"""
Stripe Service for the coaching platform

Every call the platform makes to Stripe goes through this class:
manual-capture PaymentIntents for booking requests, Prices for the coach
rate catalog, and webhook signature verification.

Stripe errors are logged and re-raised as ServiceException so routes can
turn them into problem responses; callers run these calls inside their
own transaction so a failed Stripe call rolls the local change back.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session
import stripe

from ..core.config import settings
from ..core.exceptions import ServiceException, ValidationException
from ..monitoring.prometheus_metrics import prometheus_metrics
from .base import BaseService

logger: logging.Logger = logging.getLogger(__name__)


class StripeService(BaseService):
    """Thin, instrumented wrapper around the Stripe SDK."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.currency = settings.stripe_currency
        self.stripe_configured = False
        secret = settings.stripe_secret_key.get_secret_value()
        if secret:
            stripe.api_key = secret
            stripe.max_network_retries = 1
            self.stripe_configured = True
            self.logger.debug("Stripe service configured")
        else:
            self.logger.warning("Stripe secret key not configured - Stripe calls will fail")

    def _check_stripe_configured(self) -> None:
        """Check if Stripe is properly configured before making API calls."""
        if not self.stripe_configured:
            raise ServiceException(
                "Stripe is not configured. Please check STRIPE_SECRET_KEY environment variable.",
                code="STRIPE_NOT_CONFIGURED",
            )

    def _fail(self, operation: str, error: Exception, action: str) -> ServiceException:
        prometheus_metrics.record_stripe_call(operation, "error")
        self.logger.error(f"Stripe error during {operation}: {str(error)}")
        return ServiceException(f"Failed to {action}: {str(error)}", code="STRIPE_ERROR")

    # ------------------------------------------------------------------ #
    # Payment intents
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("stripe_create_authorization")
    def create_authorization(
        self,
        *,
        amount_cents: int,
        metadata: Dict[str, str],
        idempotency_key: str,
        description: Optional[str] = None,
    ) -> Any:
        """
        Create a PaymentIntent that only authorizes ``amount_cents``.

        Funds are captured later with ``capture_payment_intent``.
        """
        self._check_stripe_configured()
        params: Dict[str, Any] = {
            "amount": amount_cents,
            "currency": self.currency,
            "capture_method": "manual",
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata,
        }
        if description:
            params["description"] = description
        try:
            intent = stripe.PaymentIntent.create(**params, idempotency_key=idempotency_key)
        except stripe.StripeError as e:
            raise self._fail("create_authorization", e, "authorize payment")
        prometheus_metrics.record_stripe_call("create_authorization", "success")
        self.logger.info(
            f"Created payment intent {intent.id} for {amount_cents} {self.currency} "
            f"(booking {metadata.get('booking_request_id')})"
        )
        return intent

    @BaseService.measure_operation("stripe_retrieve_payment_intent")
    def retrieve_payment_intent(self, payment_intent_id: str) -> Any:
        self._check_stripe_configured()
        try:
            intent = stripe.PaymentIntent.retrieve(payment_intent_id)
        except stripe.StripeError as e:
            raise self._fail("retrieve_payment_intent", e, "retrieve payment")
        prometheus_metrics.record_stripe_call("retrieve_payment_intent", "success")
        return intent

    @BaseService.measure_operation("stripe_capture_payment_intent")
    def capture_payment_intent(self, payment_intent_id: str, *, idempotency_key: str) -> Any:
        self._check_stripe_configured()
        try:
            intent = stripe.PaymentIntent.capture(payment_intent_id, idempotency_key=idempotency_key)
        except stripe.StripeError as e:
            raise self._fail("capture_payment_intent", e, "capture payment")
        prometheus_metrics.record_stripe_call("capture_payment_intent", "success")
        self.logger.info(f"Captured payment intent {payment_intent_id}")
        return intent

    @BaseService.measure_operation("stripe_cancel_payment_intent")
    def cancel_payment_intent(self, payment_intent_id: str, *, idempotency_key: str) -> Any:
        """Cancel a PaymentIntent to release the authorization."""
        self._check_stripe_configured()
        try:
            intent = stripe.PaymentIntent.cancel(payment_intent_id, idempotency_key=idempotency_key)
        except stripe.StripeError as e:
            raise self._fail("cancel_payment_intent", e, "cancel payment intent")
        prometheus_metrics.record_stripe_call("cancel_payment_intent", "success")
        self.logger.info(f"Canceled payment intent {payment_intent_id}")
        return intent

    # ------------------------------------------------------------------ #
    # Prices for the coach rate catalog
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("stripe_create_price")
    def create_price(
        self, *, unit_amount_cents: int, product_name: str, metadata: Dict[str, str]
    ) -> str:
        """Create a one-off Price and return its id."""
        self._check_stripe_configured()
        try:
            price = stripe.Price.create(
                unit_amount=unit_amount_cents,
                currency=self.currency,
                product_data={"name": product_name},
                metadata=metadata,
            )
        except stripe.StripeError as e:
            raise self._fail("create_price", e, "create price")
        prometheus_metrics.record_stripe_call("create_price", "success")
        return str(price.id)

    @BaseService.measure_operation("stripe_deactivate_price")
    def deactivate_price(self, price_id: str) -> None:
        self._check_stripe_configured()
        try:
            stripe.Price.modify(price_id, active=False)
        except stripe.StripeError as e:
            raise self._fail("deactivate_price", e, "deactivate price")
        prometheus_metrics.record_stripe_call("deactivate_price", "success")

    # ------------------------------------------------------------------ #
    # Webhooks
    # ------------------------------------------------------------------ #

    def construct_webhook_event(self, payload: bytes, signature: Optional[str]) -> Any:
        """
        Verify a webhook payload against the signing secret and parse it.

        Raises:
            ServiceException: if no signing secret is configured
            ValidationException: if the signature is missing or invalid
        """
        secret = settings.stripe_webhook_secret.get_secret_value()
        if not secret:
            raise ServiceException("Webhook secret not configured", code="WEBHOOK_NOT_CONFIGURED")
        if not signature:
            raise ValidationException("Missing Stripe-Signature header", code="INVALID_SIGNATURE")
        try:
            return stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError:
            self.logger.warning("Invalid webhook signature")
            raise ValidationException("Invalid webhook signature", code="INVALID_SIGNATURE")
        except ValueError:
            self.logger.warning("Malformed webhook payload")
            raise ValidationException("Invalid webhook payload", code="INVALID_PAYLOAD")
