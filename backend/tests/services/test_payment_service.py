"""
Tests for PaymentService.

Authorize/capture bookkeeping and webhook handling with the Stripe SDK
faked by the autouse ``stripe_mock`` fixture.
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from app.core.exceptions import (
    BookingExpiredException,
    BusinessRuleException,
    NotFoundException,
    ServiceException,
    ValidationException,
)
from app.domain.booking_state import BookingRequestStatus
from app.models.booking_event import BookingEvent
from app.models.coaching_session import CoachingSession


def _webhook_event(
    event_type: str, intent_id: str, status: str, amount: int = 12000, **extra
) -> SimpleNamespace:
    intent = SimpleNamespace(id=intent_id, status=status, amount=amount, last_payment_error=None, **extra)
    return SimpleNamespace(type=event_type, data=SimpleNamespace(object=intent))


class TestAuthorize:
    def test_creates_manual_capture_intent(self, payment_service, accepted_request, test_client_user, stripe_mock):
        result = payment_service.authorize(test_client_user, accepted_request.id)

        payment = result.payment
        assert payment.amount_cents == 12000
        assert payment.platform_fee_cents == 1800
        assert payment.coach_earnings_cents == 10200
        assert payment.status == "pending"
        assert payment.currency == "usd"
        intent = stripe_mock.intents[payment.stripe_payment_intent_id]
        assert intent.capture_method == "manual"
        assert intent.metadata["booking_request_id"] == accepted_request.id
        assert result.client_secret == intent.client_secret
        assert stripe_mock.idempotency_keys == [f"authorize-{accepted_request.id}-0"]

    def test_second_call_reuses_open_payment(self, payment_service, accepted_request, test_client_user, stripe_mock):
        first = payment_service.authorize(test_client_user, accepted_request.id)
        second = payment_service.authorize(test_client_user, accepted_request.id)

        assert second.payment.id == first.payment.id
        assert second.client_secret == first.client_secret
        assert len(stripe_mock.intents) == 1

    def test_pending_request_is_not_payable(self, payment_service, make_request, test_client_user, test_coach):
        booking_request = make_request(test_client_user, test_coach)
        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.authorize(test_client_user, booking_request.id)
        assert exc_info.value.code == "BOOKING_NOT_PAYABLE"

    def test_other_client_gets_not_found(self, payment_service, accepted_request, test_other_client):
        with pytest.raises(NotFoundException):
            payment_service.authorize(test_other_client, accepted_request.id)

    def test_deadline_passed(self, db, payment_service, accepted_request, test_client_user, stripe_mock):
        accepted_request.payment_deadline = datetime.now(timezone.utc) - timedelta(minutes=1)
        db.commit()

        with pytest.raises(BookingExpiredException):
            payment_service.authorize(test_client_user, accepted_request.id)

        db.refresh(accepted_request)
        assert accepted_request.status == BookingRequestStatus.EXPIRED.value
        assert stripe_mock.intents == {}

    def test_stripe_failure_leaves_no_payment(self, db, payment_service, accepted_request, test_client_user):
        with patch.object(
            stripe.PaymentIntent, "create", side_effect=stripe.APIConnectionError("network down")
        ):
            with pytest.raises(ServiceException) as exc_info:
                payment_service.authorize(test_client_user, accepted_request.id)
        assert exc_info.value.code == "STRIPE_ERROR"
        assert payment_service.payment_repository.list_for_booking(accepted_request.id) == []


class TestCaptureAndCancel:
    @pytest.fixture
    def paid_request(self, booking_service, payment_service, accepted_request, test_client_user, stripe_mock):
        result = payment_service.authorize(test_client_user, accepted_request.id)
        stripe_mock.client_confirms(result.payment.stripe_payment_intent_id)
        booking_service.confirm_payment(
            test_client_user, accepted_request.id, result.payment.stripe_payment_intent_id
        )
        return result.payment

    def test_coach_captures(self, payment_service, paid_request, test_coach):
        payment = payment_service.capture(test_coach, paid_request.id)
        assert payment.status == "succeeded"
        assert payment.captured_at is not None

    def test_admin_captures(self, payment_service, paid_request, test_admin):
        assert payment_service.capture(test_admin, paid_request.id).status == "succeeded"

    def test_client_cannot_capture(self, payment_service, paid_request, test_client_user):
        with pytest.raises(NotFoundException):
            payment_service.capture(test_client_user, paid_request.id)

    def test_capture_requires_authorization(self, payment_service, accepted_request, test_client_user, test_coach):
        result = payment_service.authorize(test_client_user, accepted_request.id)
        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.capture(test_coach, result.payment.id)
        assert exc_info.value.code == "PAYMENT_NOT_CAPTURABLE"

    def test_cancel_open_authorization(self, payment_service, accepted_request, test_client_user, stripe_mock):
        result = payment_service.authorize(test_client_user, accepted_request.id)

        payment = payment_service.cancel_authorization(test_client_user, result.payment.id)

        assert payment.status == "canceled"
        assert payment.canceled_at is not None
        assert stripe_mock.intents[payment.stripe_payment_intent_id].status == "canceled"

    def test_new_authorization_after_cancel(self, payment_service, accepted_request, test_client_user, stripe_mock):
        first = payment_service.authorize(test_client_user, accepted_request.id)
        payment_service.cancel_authorization(test_client_user, first.payment.id)

        second = payment_service.authorize(test_client_user, accepted_request.id)

        assert second.payment.id != first.payment.id
        assert stripe_mock.idempotency_keys[-1] == f"authorize-{accepted_request.id}-1"

    def test_confirmed_booking_payment_cannot_be_released(self, payment_service, paid_request, test_client_user):
        with pytest.raises(BusinessRuleException) as exc_info:
            payment_service.cancel_authorization(test_client_user, paid_request.id)
        assert exc_info.value.code == "PAYMENT_NOT_CANCELABLE"

    def test_status_visibility(self, payment_service, paid_request, test_client_user, test_coach, test_other_client):
        assert payment_service.get_status(test_client_user, paid_request.id).id == paid_request.id
        assert payment_service.get_status(test_coach, paid_request.id).status == "authorized"
        with pytest.raises(NotFoundException):
            payment_service.get_status(test_other_client, paid_request.id)


class TestWebhooks:
    def _deliver(self, payment_service, event):
        with patch.object(stripe.Webhook, "construct_event", return_value=event) as construct:
            result = payment_service.handle_webhook(b"{}", "t=1,v1=signature")
        construct.assert_called_once_with(b"{}", "t=1,v1=signature", "whsec_test_coaching")
        return result

    def test_capturable_update_confirms_booking(
        self, db, payment_service, accepted_request, test_client_user
    ):
        result = payment_service.authorize(test_client_user, accepted_request.id)
        event = _webhook_event(
            "payment_intent.amount_capturable_updated",
            result.payment.stripe_payment_intent_id,
            "requires_capture",
        )

        response = self._deliver(payment_service, event)

        assert response["status"] == "success"
        db.refresh(accepted_request)
        db.refresh(result.payment)
        assert accepted_request.status == BookingRequestStatus.PAID_CONFIRMED.value
        assert result.payment.status == "authorized"

        # Stripe retries must not duplicate anything
        events_before = db.query(BookingEvent).filter_by(booking_request_id=accepted_request.id).count()
        self._deliver(payment_service, event)
        events_after = db.query(BookingEvent).filter_by(booking_request_id=accepted_request.id).count()
        assert events_after == events_before

    def test_capture_succeeded_event_marks_payment(
        self, db, payment_service, accepted_request, test_client_user
    ):
        result = payment_service.authorize(test_client_user, accepted_request.id)
        event = _webhook_event(
            "payment_intent.succeeded", result.payment.stripe_payment_intent_id, "succeeded"
        )
        self._deliver(payment_service, event)

        db.refresh(result.payment)
        assert result.payment.status == "succeeded"
        assert result.payment.captured_at is not None

    def test_late_authorization_for_cancelled_booking_is_released(
        self, db, payment_service, accepted_request, test_client_user, stripe_mock
    ):
        result = payment_service.authorize(test_client_user, accepted_request.id)
        # booking left the payable states while its payment was still open
        accepted_request.status = BookingRequestStatus.CANCELLED.value
        db.commit()
        event = _webhook_event(
            "payment_intent.amount_capturable_updated",
            result.payment.stripe_payment_intent_id,
            "requires_capture",
        )

        response = self._deliver(payment_service, event)

        assert response["status"] == "success"
        assert "cannot be confirmed" in response["message"]
        db.refresh(accepted_request)
        db.refresh(result.payment)
        assert accepted_request.status == BookingRequestStatus.CANCELLED.value
        assert result.payment.status == "canceled"
        assert result.payment.failure_reason == "booking_no_longer_payable"
        assert stripe_mock.intents[result.payment.stripe_payment_intent_id].status == "canceled"

    def test_stale_authorization_for_cancelled_payment_is_ignored(
        self, db, payment_service, accepted_request, test_client_user, stripe_mock
    ):
        result = payment_service.authorize(test_client_user, accepted_request.id)
        payment_service.cancel_authorization(test_client_user, result.payment.id)
        event = _webhook_event(
            "payment_intent.amount_capturable_updated",
            result.payment.stripe_payment_intent_id,
            "requires_capture",
        )

        response = self._deliver(payment_service, event)

        assert response["status"] == "ignored"
        assert response["message"] == "Payment is already canceled"
        db.refresh(accepted_request)
        db.refresh(result.payment)
        assert accepted_request.status == BookingRequestStatus.PAYMENT_REQUIRED.value
        assert accepted_request.payment_intent_id is None
        assert result.payment.status == "canceled"
        assert db.query(CoachingSession).filter_by(booking_request_id=accepted_request.id).count() == 0

    def test_failed_payment_is_not_revived(self, db, payment_service, accepted_request, test_client_user):
        result = payment_service.authorize(test_client_user, accepted_request.id)
        intent_id = result.payment.stripe_payment_intent_id
        self._deliver(
            payment_service,
            _webhook_event("payment_intent.payment_failed", intent_id, "requires_payment_method"),
        )

        response = self._deliver(
            payment_service, _webhook_event("payment_intent.succeeded", intent_id, "succeeded")
        )

        assert response["status"] == "ignored"
        db.refresh(result.payment)
        db.refresh(accepted_request)
        assert result.payment.status == "failed"
        assert result.payment.captured_at is None
        assert accepted_request.status == BookingRequestStatus.PAYMENT_REQUIRED.value

    def test_authorization_for_wrong_amount_is_released(
        self, db, payment_service, accepted_request, test_client_user, stripe_mock
    ):
        result = payment_service.authorize(test_client_user, accepted_request.id)
        event = _webhook_event(
            "payment_intent.amount_capturable_updated",
            result.payment.stripe_payment_intent_id,
            "requires_capture",
            amount=500,
        )

        response = self._deliver(payment_service, event)

        assert "cannot be confirmed" in response["message"]
        db.refresh(accepted_request)
        db.refresh(result.payment)
        assert accepted_request.status == BookingRequestStatus.PAYMENT_REQUIRED.value
        assert result.payment.status == "canceled"
        assert stripe_mock.intents[result.payment.stripe_payment_intent_id].status == "canceled"

    def test_payment_failed(self, db, payment_service, accepted_request, test_client_user):
        result = payment_service.authorize(test_client_user, accepted_request.id)
        event = _webhook_event(
            "payment_intent.payment_failed", result.payment.stripe_payment_intent_id, "requires_payment_method"
        )
        event.data.object.last_payment_error = SimpleNamespace(message="Your card was declined.")

        self._deliver(payment_service, event)

        db.refresh(result.payment)
        db.refresh(accepted_request)
        assert result.payment.status == "failed"
        assert result.payment.failure_reason == "Your card was declined."
        assert accepted_request.status == BookingRequestStatus.PAYMENT_REQUIRED.value

    def test_unknown_intent_is_acknowledged(self, payment_service):
        event = _webhook_event("payment_intent.succeeded", "pi_not_ours", "succeeded")
        response = self._deliver(payment_service, event)
        assert response["status"] == "ignored"

    def test_unrelated_event_type_is_acknowledged(self, payment_service):
        event = SimpleNamespace(type="customer.created", data=SimpleNamespace(object=SimpleNamespace(id="cus_1")))
        response = self._deliver(payment_service, event)
        assert response == {
            "status": "ignored",
            "event_type": "customer.created",
            "message": "Unhandled event type",
        }

    def test_invalid_signature(self, payment_service):
        with patch.object(
            stripe.Webhook,
            "construct_event",
            side_effect=stripe.SignatureVerificationError("bad signature", "t=1,v1=bad"),
        ):
            with pytest.raises(ValidationException) as exc_info:
                payment_service.handle_webhook(b"{}", "t=1,v1=bad")
        assert exc_info.value.code == "INVALID_SIGNATURE"

    def test_missing_signature(self, payment_service):
        with pytest.raises(ValidationException):
            payment_service.handle_webhook(b"{}", None)
