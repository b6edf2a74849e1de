"""User lookups needed by authentication and booking validation."""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.enums import RoleName
from ..core.exceptions import RepositoryException
from ..models.user import User
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class UserRepository(BaseRepository[User]):
    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_active_user(self, user_id: str) -> Optional[User]:
        try:
            return (
                self.db.query(User)
                .filter(User.id == user_id, User.is_active.is_(True))
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to load user {user_id}: {str(e)}")
            raise RepositoryException(f"Failed to load user: {str(e)}")

    def get_active_coach(self, coach_id: str) -> Optional[User]:
        try:
            return (
                self.db.query(User)
                .filter(
                    User.id == coach_id,
                    User.role == RoleName.COACH.value,
                    User.is_active.is_(True),
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to load coach {coach_id}: {str(e)}")
            raise RepositoryException(f"Failed to load coach: {str(e)}")
