"""
Payment Repository for the coaching platform

Tracks the Stripe payment intents that back booking requests.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..constants.payment_status import PaymentStatus
from ..core.exceptions import RepositoryException
from ..models.payment import Payment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class PaymentRepository(BaseRepository[Payment]):
    """Payment intent records keyed by our ULID and by Stripe's intent id."""

    def __init__(self, db: Session):
        super().__init__(db, Payment)
        self.logger = logging.getLogger(__name__)

    def get_by_intent_id(self, payment_intent_id: str) -> Optional[Payment]:
        """
        Get payment record by Stripe payment intent ID.

        Returns:
            Payment if found, None otherwise
        """
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.stripe_payment_intent_id == payment_intent_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to get payment by intent ID: {str(e)}")
            raise RepositoryException(f"Failed to get payment by intent ID: {str(e)}")

    def get_open_for_booking(self, booking_request_id: str) -> Optional[Payment]:
        """The newest payment still holding (or about to hold) the client's funds."""
        try:
            return (
                self.db.query(Payment)
                .filter(
                    Payment.booking_request_id == booking_request_id,
                    Payment.status.in_(
                        [PaymentStatus.PENDING.value, PaymentStatus.AUTHORIZED.value]
                    ),
                )
                .order_by(Payment.created_at.desc(), Payment.id.desc())
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to get open payment for {booking_request_id}: {str(e)}")
            raise RepositoryException(f"Failed to get payment for booking: {str(e)}")

    def list_for_booking(self, booking_request_id: str) -> List[Payment]:
        try:
            return (
                self.db.query(Payment)
                .filter(Payment.booking_request_id == booking_request_id)
                .order_by(Payment.created_at.asc(), Payment.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to list payments for {booking_request_id}: {str(e)}")
            raise RepositoryException(f"Failed to list payments: {str(e)}")
