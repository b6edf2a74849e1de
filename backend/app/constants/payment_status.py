"""Payment status values and their mapping from Stripe PaymentIntent statuses."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class PaymentStatus(str, Enum):
    PENDING = "pending"
    AUTHORIZED = "authorized"
    SUCCEEDED = "succeeded"
    CANCELED = "canceled"
    FAILED = "failed"


STRIPE_TO_PAYMENT_STATUS = {
    "requires_payment_method": PaymentStatus.PENDING,
    "requires_confirmation": PaymentStatus.PENDING,
    "requires_action": PaymentStatus.PENDING,
    "processing": PaymentStatus.PENDING,
    "requires_capture": PaymentStatus.AUTHORIZED,
    "succeeded": PaymentStatus.SUCCEEDED,
    "canceled": PaymentStatus.CANCELED,
}

# Intent statuses that prove the client's funds are held or collected.
FUNDED_STRIPE_STATUSES = frozenset({"requires_capture", "succeeded"})


def map_payment_status(stripe_status: Optional[str]) -> str:
    """Map a Stripe PaymentIntent status onto our payment status."""
    if not stripe_status:
        return PaymentStatus.PENDING.value
    mapped = STRIPE_TO_PAYMENT_STATUS.get(stripe_status)
    if mapped is None:
        return PaymentStatus.FAILED.value
    return mapped.value
