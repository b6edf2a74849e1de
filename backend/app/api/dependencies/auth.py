# backend/app/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

The bearer token names a user; these dependencies load that user and
enforce the role a route needs.
"""

import asyncio
import logging

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...auth import get_current_user_id
from ...core.enums import RoleName
from ...models.user import User
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)


async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> User:
    """
    Load the user named by the token.

    Raises:
        HTTPException: 401 if the user no longer exists or is inactive
    """
    repository = RepositoryFactory.create_user_repository(db)
    user = await asyncio.to_thread(repository.get_active_user, user_id)
    if user is None:
        logger.warning(f"Token for unknown or inactive user {user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def get_current_coach(current_user: User = Depends(get_current_user)) -> User:
    """Current user, required to be a coach."""
    if current_user.role != RoleName.COACH.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a coach")
    return current_user


async def get_current_client(current_user: User = Depends(get_current_user)) -> User:
    """Current user, required to be a client."""
    if current_user.role != RoleName.CLIENT.value:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not a client")
    return current_user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Dependency that ensures the caller has administrator privileges."""
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user
