# backend/app/repositories/booking_request_repository.py
"""
Booking Request Repository for the coaching platform

Handles:
- Client and coach scoped listings
- Status counts for dashboards
- Stale request lookups for the expiry sweep
"""

from datetime import datetime
import logging
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..domain.booking_state import BookingRequestStatus
from ..models.booking_request import BookingRequest
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingRequestRepository(BaseRepository[BookingRequest]):
    """Data access for booking requests."""

    def __init__(self, db: Session):
        super().__init__(db, BookingRequest)
        self.logger = logging.getLogger(__name__)

    def _newest_first(self, query):
        # ULIDs sort by creation time, which breaks ties in second-resolution timestamps
        return query.order_by(BookingRequest.created_at.desc(), BookingRequest.id.desc())

    def list_for_coach(
        self, coach_id: str, status: Optional[BookingRequestStatus] = None
    ) -> List[BookingRequest]:
        try:
            query = self.db.query(BookingRequest).filter(BookingRequest.coach_id == coach_id)
            if status is not None:
                query = query.filter(BookingRequest.status == status.value)
            return self._newest_first(query).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to list requests for coach {coach_id}: {str(e)}")
            raise RepositoryException(f"Failed to list coach booking requests: {str(e)}")

    def list_for_client(
        self, client_id: str, status: Optional[BookingRequestStatus] = None
    ) -> List[BookingRequest]:
        try:
            query = self.db.query(BookingRequest).filter(BookingRequest.client_id == client_id)
            if status is not None:
                query = query.filter(BookingRequest.status == status.value)
            return self._newest_first(query).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to list requests for client {client_id}: {str(e)}")
            raise RepositoryException(f"Failed to list client booking requests: {str(e)}")

    def count_by_status(self, *, client_id: Optional[str] = None, coach_id: Optional[str] = None) -> Dict[str, int]:
        """Return ``{status: count}`` for one participant; missing statuses count as zero."""
        try:
            query = self.db.query(BookingRequest.status, func.count(BookingRequest.id))
            if client_id is not None:
                query = query.filter(BookingRequest.client_id == client_id)
            if coach_id is not None:
                query = query.filter(BookingRequest.coach_id == coach_id)
            rows = query.group_by(BookingRequest.status).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to count booking requests: {str(e)}")
            raise RepositoryException(f"Failed to count booking requests: {str(e)}")
        counts = {status.value: 0 for status in BookingRequestStatus}
        for status, total in rows:
            counts[status] = total
        return counts

    def find_stale(self, now: datetime) -> List[BookingRequest]:
        """Pending requests past ``expires_at`` and unpaid ones past ``payment_deadline``."""
        try:
            pending = (
                self.db.query(BookingRequest)
                .filter(
                    BookingRequest.status == BookingRequestStatus.PENDING.value,
                    BookingRequest.expires_at.isnot(None),
                    BookingRequest.expires_at <= now,
                )
                .all()
            )
            unpaid = (
                self.db.query(BookingRequest)
                .filter(
                    BookingRequest.status.in_(
                        [
                            BookingRequestStatus.COACH_ACCEPTED.value,
                            BookingRequestStatus.PAYMENT_REQUIRED.value,
                        ]
                    ),
                    BookingRequest.payment_deadline.isnot(None),
                    BookingRequest.payment_deadline <= now,
                )
                .all()
            )
            return pending + unpaid
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to find stale booking requests: {str(e)}")
            raise RepositoryException(f"Failed to find stale booking requests: {str(e)}")
