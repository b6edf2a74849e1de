"""
Coach Rate Repository for the coaching platform

Price catalog queries: listing a coach's rates, finding the rate that
matches a (session_type, duration) pair, and ownership-scoped lookups.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.coach_rate import CoachRate
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class CoachRateRepository(BaseRepository[CoachRate]):
    def __init__(self, db: Session):
        super().__init__(db, CoachRate)

    def list_for_coach(self, coach_id: str, include_inactive: bool = False) -> List[CoachRate]:
        """Rates ordered by session type, then duration, then price."""
        try:
            query = self.db.query(CoachRate).filter(CoachRate.coach_id == coach_id)
            if not include_inactive:
                query = query.filter(CoachRate.is_active.is_(True))
            return query.order_by(
                CoachRate.session_type.asc(),
                CoachRate.duration_minutes.asc(),
                CoachRate.rate_cents.asc(),
            ).all()
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to list rates for coach {coach_id}: {str(e)}")
            raise RepositoryException(f"Failed to list coach rates: {str(e)}")

    def find_active_match(
        self, coach_id: str, session_type: str, duration_minutes: int
    ) -> Optional[CoachRate]:
        """Cheapest active rate for the pair, used to pre-fill an accept price."""
        try:
            return (
                self.db.query(CoachRate)
                .filter(
                    CoachRate.coach_id == coach_id,
                    CoachRate.session_type == session_type,
                    CoachRate.duration_minutes == duration_minutes,
                    CoachRate.is_active.is_(True),
                )
                .order_by(CoachRate.rate_cents.asc(), CoachRate.id.asc())
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to match rate for coach {coach_id}: {str(e)}")
            raise RepositoryException(f"Failed to match coach rate: {str(e)}")

    def get_for_coach(self, rate_id: str, coach_id: str) -> Optional[CoachRate]:
        try:
            return (
                self.db.query(CoachRate)
                .filter(CoachRate.id == rate_id, CoachRate.coach_id == coach_id)
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to load rate {rate_id}: {str(e)}")
            raise RepositoryException(f"Failed to load coach rate: {str(e)}")

    def get_many_for_coach(self, rate_ids: List[str], coach_id: str) -> List[CoachRate]:
        if not rate_ids:
            return []
        try:
            return (
                self.db.query(CoachRate)
                .filter(CoachRate.id.in_(rate_ids), CoachRate.coach_id == coach_id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to load rates for bulk update: {str(e)}")
            raise RepositoryException(f"Failed to load coach rates: {str(e)}")
