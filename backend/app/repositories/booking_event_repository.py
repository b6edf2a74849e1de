"""Append-only access to the booking event audit trail."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import ActorType
from ..core.exceptions import RepositoryException
from ..models.booking_event import BookingEvent, BookingEventType
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class BookingEventRepository(BaseRepository[BookingEvent]):
    def __init__(self, db: Session):
        super().__init__(db, BookingEvent)

    def record(
        self,
        booking_request_id: str,
        event_type: BookingEventType,
        actor_type: ActorType,
        actor_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> BookingEvent:
        return self.create(
            booking_request_id=booking_request_id,
            event_type=event_type.value,
            actor_type=actor_type.value,
            actor_id=actor_id,
            details=details or {},
        )

    def list_for_booking(self, booking_request_id: str) -> List[BookingEvent]:
        try:
            return (
                self.db.query(BookingEvent)
                .filter(BookingEvent.booking_request_id == booking_request_id)
                .order_by(BookingEvent.created_at.asc(), BookingEvent.id.asc())
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to list events for {booking_request_id}: {str(e)}")
            raise RepositoryException(f"Failed to list booking events: {str(e)}")
