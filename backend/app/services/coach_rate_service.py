"""
Coach Rate Service for the coaching platform

Manages a coach's price catalog. Rates are defaults only: editing one never
touches booking requests that already carry a final price. When Stripe is
configured every rate is mirrored by a Stripe Price; a price change creates
a new Price and deactivates the old one because Stripe prices are immutable.
"""

from dataclasses import dataclass
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.constants import DUPLICATE_RATE_SUFFIX, MAX_TITLE_LENGTH
from ..core.exceptions import ForbiddenException, NotFoundException, ValidationException
from ..domain.booking_state import SessionType, validate_duration, validate_session_type
from ..models.coach_rate import CoachRate
from ..models.user import User
from ..repositories.factory import RepositoryFactory
from ..schemas.coach_rate import CoachRateBulkItem, CoachRateCreate, CoachRateUpdate
from .base import BaseService
from .stripe_service import StripeService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PackageQuote:
    subtotal_cents: int
    discount_cents: int
    total_cents: int
    per_session_cents: int


def calculate_package_discount(rate_cents: int, sessions: int, discount_percentage: int) -> PackageQuote:
    """
    Price a package of ``sessions`` at ``rate_cents`` each.

    The discount rounds down so the client never pays less than the
    advertised percentage implies.
    """
    if rate_cents <= 0 or sessions <= 0:
        raise ValidationException("rate_cents and sessions must be positive", code="INVALID_PACKAGE")
    if not 0 <= discount_percentage <= 100:
        raise ValidationException(
            "discount_percentage must be between 0 and 100", code="INVALID_PACKAGE"
        )
    subtotal = rate_cents * sessions
    discount = subtotal * discount_percentage // 100
    total = subtotal - discount
    return PackageQuote(
        subtotal_cents=subtotal,
        discount_cents=discount,
        total_cents=total,
        per_session_cents=total // sessions,
    )


class CoachRateService(BaseService):
    """Coach price catalog operations."""

    def __init__(self, db: Session, stripe_service: Optional[StripeService] = None):
        super().__init__(db)
        self.rate_repository = RepositoryFactory.create_coach_rate_repository(db)
        self.user_repository = RepositoryFactory.create_user_repository(db)
        self.stripe_service = stripe_service or StripeService(db)

    # ------------------------------------------------------------------ #
    # Guards
    # ------------------------------------------------------------------ #

    def _require_coach(self, coach_id: str) -> User:
        coach = self.user_repository.get_active_coach(coach_id)
        if coach is None:
            raise NotFoundException("Coach not found", code="COACH_NOT_FOUND")
        return coach

    def _ensure_can_manage(self, user: User, coach_id: str) -> None:
        if user.is_admin:
            return
        if not user.is_coach or user.id != coach_id:
            raise ForbiddenException(
                "You can only manage your own rates", code="RATE_ACCESS_DENIED"
            )

    def _get_managed_rate(self, user: User, rate_id: str) -> CoachRate:
        rate = self.get_rate(rate_id)
        self._ensure_can_manage(user, rate.coach_id)
        return rate

    # ------------------------------------------------------------------ #
    # Stripe mirroring
    # ------------------------------------------------------------------ #

    def _sync_new_price(self, rate: CoachRate) -> None:
        if not self.stripe_service.stripe_configured:
            return
        rate.stripe_price_id = self.stripe_service.create_price(
            unit_amount_cents=rate.rate_cents,
            product_name=rate.title,
            metadata={
                "coach_rate_id": rate.id,
                "coach_id": rate.coach_id,
                "session_type": rate.session_type,
                "duration_minutes": str(rate.duration_minutes),
            },
        )

    def _retire_price(self, price_id: Optional[str]) -> None:
        if price_id and self.stripe_service.stripe_configured:
            self.stripe_service.deactivate_price(price_id)

    def _apply_update(self, rate: CoachRate, changes: Dict[str, Any]) -> None:
        if "session_type" in changes and changes["session_type"] is not None:
            changes["session_type"] = validate_session_type(changes["session_type"]).value
        if "duration_minutes" in changes and changes["duration_minutes"] is not None:
            validate_duration(changes["duration_minutes"])
        for field in ("session_type", "duration_minutes", "rate_cents", "title", "is_active"):
            if field in changes and changes[field] is None:
                raise ValidationException(f"{field} cannot be null", code="INVALID_RATE_UPDATE")

        session_type = changes.get("session_type", rate.session_type)
        max_sessions = changes.get("max_sessions", rate.max_sessions)
        if session_type != SessionType.PACKAGE.value and max_sessions is not None:
            raise ValidationException(
                "max_sessions only applies to package rates", code="INVALID_RATE_UPDATE"
            )

        price_changed = "rate_cents" in changes and changes["rate_cents"] != rate.rate_cents
        old_price_id = rate.stripe_price_id
        self.rate_repository.update(rate, **changes)
        if price_changed and self.stripe_service.stripe_configured:
            self._sync_new_price(rate)
            self._retire_price(old_price_id)
            self.logger.info(
                f"Rate {rate.id} repriced to {rate.rate_cents}; Stripe price {old_price_id} retired"
            )
        if changes.get("is_active") is False:
            self._retire_price(rate.stripe_price_id)

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("list_rates")
    def list_rates(self, coach_id: str, include_inactive: bool = False) -> List[CoachRate]:
        """Coach's rates ordered by session type, then duration."""
        self._require_coach(coach_id)
        return self.rate_repository.list_for_coach(coach_id, include_inactive=include_inactive)

    @BaseService.measure_operation("list_managed_rates")
    def list_managed_rates(self, user: User, coach_id: str) -> List[CoachRate]:
        """Every rate of the coach, inactive ones included, for the rate editor."""
        self._ensure_can_manage(user, coach_id)
        return self.list_rates(coach_id, include_inactive=True)

    @BaseService.measure_operation("get_rate")
    def get_rate(self, rate_id: str) -> CoachRate:
        rate = self.rate_repository.get_by_id(rate_id)
        if rate is None:
            raise NotFoundException("Rate not found", code="RATE_NOT_FOUND")
        return rate

    @BaseService.measure_operation("find_suggested_rate")
    def find_suggested_rate(
        self, coach_id: str, session_type: SessionType | str, duration_minutes: int
    ) -> Optional[CoachRate]:
        """Active rate matching the pair, used to pre-fill the accept price."""
        session = validate_session_type(session_type)
        validate_duration(duration_minutes)
        return self.rate_repository.find_active_match(coach_id, session.value, duration_minutes)

    def validate_rate_for_booking(self, rate_id: str, coach_id: str) -> CoachRate:
        """The rate must belong to ``coach_id`` and be active."""
        rate = self.rate_repository.get_for_coach(rate_id, coach_id)
        if rate is None:
            raise ValidationException(
                "Rate does not belong to this coach", code="INVALID_COACH_RATE",
                details={"coach_rate_id": rate_id},
            )
        if not rate.is_active:
            raise ValidationException(
                "Rate is no longer active", code="INACTIVE_COACH_RATE",
                details={"coach_rate_id": rate_id},
            )
        return rate

    # ------------------------------------------------------------------ #
    # Mutations
    # ------------------------------------------------------------------ #

    @BaseService.measure_operation("create_rate")
    def create_rate(self, user: User, coach_id: str, data: CoachRateCreate) -> CoachRate:
        self._ensure_can_manage(user, coach_id)
        self._require_coach(coach_id)
        with self.transaction():
            rate = self.rate_repository.create(
                coach_id=coach_id,
                session_type=data.session_type.value,
                duration_minutes=data.duration_minutes,
                rate_cents=data.rate_cents,
                title=data.title,
                description=data.description,
                max_sessions=data.max_sessions,
                validity_days=data.validity_days,
                discount_percentage=data.discount_percentage,
                is_active=True,
            )
            self._sync_new_price(rate)
        self.logger.info(f"Coach {coach_id} created rate {rate.id} ({rate.rate_cents} cents)")
        return rate

    @BaseService.measure_operation("update_rate")
    def update_rate(self, user: User, rate_id: str, data: CoachRateUpdate) -> CoachRate:
        rate = self._get_managed_rate(user, rate_id)
        changes = data.model_dump(exclude_unset=True)
        with self.transaction():
            self._apply_update(rate, changes)
        self.logger.info(f"Rate {rate_id} updated: {sorted(changes)}")
        return rate

    @BaseService.measure_operation("deactivate_rate")
    def deactivate_rate(self, user: User, rate_id: str) -> CoachRate:
        """Soft delete; the row stays for requests that referenced it."""
        rate = self._get_managed_rate(user, rate_id)
        if not rate.is_active:
            return rate
        with self.transaction():
            rate.is_active = False
            self.rate_repository.flush()
            self._retire_price(rate.stripe_price_id)
        self.logger.info(f"Rate {rate_id} deactivated")
        return rate

    @BaseService.measure_operation("duplicate_rate")
    def duplicate_rate(self, user: User, rate_id: str) -> CoachRate:
        source = self._get_managed_rate(user, rate_id)
        fields = source.copy_fields()
        fields["title"] = (source.title + DUPLICATE_RATE_SUFFIX)[:MAX_TITLE_LENGTH]
        fields["is_active"] = True
        with self.transaction():
            copy = self.rate_repository.create(**fields)
            self._sync_new_price(copy)
        self.logger.info(f"Rate {rate_id} duplicated as {copy.id}")
        return copy

    @BaseService.measure_operation("bulk_update_rates")
    def bulk_update_rates(
        self, user: User, coach_id: str, updates: List[CoachRateBulkItem]
    ) -> List[CoachRate]:
        """Apply every update or none of them."""
        self._ensure_can_manage(user, coach_id)
        ids = [item.id for item in updates]
        rates = {rate.id: rate for rate in self.rate_repository.get_many_for_coach(ids, coach_id)}
        missing = [rate_id for rate_id in ids if rate_id not in rates]
        if missing:
            raise NotFoundException(
                "Some rates were not found for this coach",
                code="RATE_NOT_FOUND",
                details={"missing_rate_ids": missing},
            )
        with self.transaction():
            for item in updates:
                changes = item.model_dump(exclude_unset=True, exclude={"id"})
                self._apply_update(rates[item.id], changes)
        self.logger.info(f"Bulk updated {len(updates)} rates for coach {coach_id}")
        return [rates[rate_id] for rate_id in ids]
