"""Data access for confirmed coaching sessions."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.coaching_session import CoachingSession
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CoachingSessionRepository(BaseRepository[CoachingSession]):
    def __init__(self, db: Session):
        super().__init__(db, CoachingSession)

    def get_for_booking(self, booking_request_id: str) -> Optional[CoachingSession]:
        try:
            return (
                self.db.query(CoachingSession)
                .filter(CoachingSession.booking_request_id == booking_request_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to load session for {booking_request_id}: {str(e)}")
            raise RepositoryException(f"Failed to load session: {str(e)}")
