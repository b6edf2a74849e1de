# backend/app/models/user.py
"""
User model for the coaching platform.

Clients, coaches, and admins share one table and are told apart by
``role``. Credentials and sessions are handled by the identity provider;
this row only carries what the booking flow needs.
"""

import logging

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import RoleName
from ..database import Base

logger = logging.getLogger(__name__)


class User(Base):
    """
    Platform account.

    Attributes:
        id: ULID primary key
        email: Unique contact address
        first_name: Given name
        last_name: Family name
        role: One of RoleName (client, coach, admin)
        is_active: Inactive users cannot authenticate or be booked
    """

    __tablename__ = "users"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    email = Column(String(255), unique=True, index=True, nullable=False)
    first_name = Column(String(50), nullable=False)
    last_name = Column(String(50), nullable=False)
    role = Column(String(20), nullable=False, default=RoleName.CLIENT.value)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    coach_rates = relationship("CoachRate", back_populates="coach", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("role IN ('admin', 'coach', 'client')", name="ck_users_role"),
    )

    @property
    def is_coach(self) -> bool:
        return self.role == RoleName.COACH.value

    @property
    def is_admin(self) -> bool:
        return self.role == RoleName.ADMIN.value

    def __repr__(self) -> str:
        return f"<User {self.email} ({self.role})>"
