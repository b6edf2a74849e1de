"""
Tests for CoachRateService.

Covers catalog ownership, Stripe price mirroring, soft deletes, duplicates
and all-or-nothing bulk edits.
"""

import pytest

from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.domain.booking_state import SessionType
from app.schemas.coach_rate import CoachRateBulkItem, CoachRateCreate, CoachRateUpdate


def _rate_payload(**overrides) -> CoachRateCreate:
    fields = {
        "session_type": SessionType.INDIVIDUAL,
        "duration_minutes": 60,
        "rate_cents": 10000,
        "title": "Deep dive",
    }
    fields.update(overrides)
    return CoachRateCreate(**fields)


class TestCreateAndList:
    def test_coach_creates_rate_with_stripe_price(self, rate_service, test_coach, stripe_mock):
        rate = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())

        assert rate.coach_id == test_coach.id
        assert rate.is_active is True
        assert rate.stripe_price_id in stripe_mock.prices
        price = stripe_mock.prices[rate.stripe_price_id]
        assert price.unit_amount == 10000
        assert price.metadata["coach_rate_id"] == rate.id

    def test_coach_cannot_edit_someone_elses_catalog(self, rate_service, test_coach, test_other_coach):
        with pytest.raises(ForbiddenException) as exc_info:
            rate_service.create_rate(test_coach, test_other_coach.id, _rate_payload())
        assert exc_info.value.code == "RATE_ACCESS_DENIED"

    def test_clients_cannot_create_rates(self, rate_service, test_client_user):
        with pytest.raises(ForbiddenException):
            rate_service.create_rate(test_client_user, test_client_user.id, _rate_payload())

    def test_admin_manages_any_coach(self, rate_service, test_admin, test_coach):
        rate = rate_service.create_rate(test_admin, test_coach.id, _rate_payload())
        assert rate.coach_id == test_coach.id

    def test_admin_cannot_create_for_non_coach(self, rate_service, test_admin, test_client_user):
        with pytest.raises(NotFoundException):
            rate_service.create_rate(test_admin, test_client_user.id, _rate_payload())

    def test_package_rate_terms(self, rate_service, test_coach):
        rate = rate_service.create_rate(
            test_coach,
            test_coach.id,
            _rate_payload(
                session_type=SessionType.PACKAGE,
                max_sessions=5,
                validity_days=90,
                discount_percentage=10,
            ),
        )
        assert rate.max_sessions == 5
        assert rate.discount_percentage == 10

    def test_list_orders_and_hides_inactive(self, rate_service, test_coach):
        long_group = rate_service.create_rate(
            test_coach, test_coach.id, _rate_payload(session_type=SessionType.GROUP, duration_minutes=90)
        )
        short_individual = rate_service.create_rate(
            test_coach, test_coach.id, _rate_payload(duration_minutes=30, rate_cents=5000)
        )
        long_individual = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        rate_service.deactivate_rate(test_coach, long_individual.id)

        public = rate_service.list_rates(test_coach.id)
        assert [r.id for r in public] == [long_group.id, short_individual.id]

        managed = rate_service.list_managed_rates(test_coach, test_coach.id)
        assert {r.id for r in managed} == {long_group.id, short_individual.id, long_individual.id}

    def test_list_for_unknown_coach(self, rate_service, test_client_user):
        with pytest.raises(NotFoundException):
            rate_service.list_rates(test_client_user.id)


class TestUpdate:
    def test_price_change_replaces_stripe_price(self, rate_service, test_coach, stripe_mock):
        rate = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        old_price_id = rate.stripe_price_id

        updated = rate_service.update_rate(test_coach, rate.id, CoachRateUpdate(rate_cents=12500))

        assert updated.rate_cents == 12500
        assert updated.stripe_price_id != old_price_id
        assert stripe_mock.prices[old_price_id].active is False
        assert stripe_mock.prices[updated.stripe_price_id].unit_amount == 12500

    def test_title_change_keeps_price(self, rate_service, test_coach):
        rate = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        price_id = rate.stripe_price_id
        updated = rate_service.update_rate(test_coach, rate.id, CoachRateUpdate(title="Renamed"))
        assert updated.title == "Renamed"
        assert updated.stripe_price_id == price_id

    def test_package_terms_rejected_on_individual_rate(self, rate_service, test_coach):
        rate = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        with pytest.raises(ValidationException):
            rate_service.update_rate(test_coach, rate.id, CoachRateUpdate(max_sessions=3))

    def test_explicit_null_is_rejected(self, rate_service, test_coach):
        rate = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        with pytest.raises(ValidationException) as exc_info:
            rate_service.update_rate(test_coach, rate.id, CoachRateUpdate(title=None))
        assert exc_info.value.code == "INVALID_RATE_UPDATE"

    def test_other_coach_cannot_update(self, rate_service, test_coach, test_other_coach):
        rate = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        with pytest.raises(ForbiddenException):
            rate_service.update_rate(test_other_coach, rate.id, CoachRateUpdate(rate_cents=1))

    def test_repricing_leaves_accepted_requests_alone(
        self, rate_service, booking_service, make_request, coach_rate, test_client_user, test_coach
    ):
        booking_request = make_request(test_client_user, test_coach)
        booking_service.accept_request(test_coach, booking_request.id, coach_rate_id=coach_rate.id)

        rate_service.update_rate(test_coach, coach_rate.id, CoachRateUpdate(rate_cents=20000))

        assert booking_request.final_price_cents == 9000


class TestDeactivateAndDuplicate:
    def test_deactivate_is_soft_and_idempotent(self, rate_service, test_coach, stripe_mock):
        rate = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())

        deactivated = rate_service.deactivate_rate(test_coach, rate.id)
        again = rate_service.deactivate_rate(test_coach, rate.id)

        assert deactivated.is_active is False
        assert again.id == rate.id
        assert rate_service.get_rate(rate.id).is_active is False
        assert stripe_mock.prices[rate.stripe_price_id].active is False

    def test_duplicate_copies_terms(self, rate_service, test_coach):
        rate = rate_service.create_rate(
            test_coach, test_coach.id, _rate_payload(description="Bring notes")
        )
        copy = rate_service.duplicate_rate(test_coach, rate.id)

        assert copy.id != rate.id
        assert copy.title == "Deep dive (Copy)"
        assert copy.description == "Bring notes"
        assert copy.rate_cents == rate.rate_cents
        assert copy.is_active is True
        assert copy.stripe_price_id and copy.stripe_price_id != rate.stripe_price_id

    def test_missing_rate(self, rate_service, test_coach):
        with pytest.raises(NotFoundException) as exc_info:
            rate_service.duplicate_rate(test_coach, "01ARZ3NDEKTSV4RRFFQ69G5FAV")
        assert exc_info.value.code == "RATE_NOT_FOUND"


class TestBulkUpdate:
    def test_applies_every_update(self, rate_service, test_coach):
        first = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        second = rate_service.create_rate(test_coach, test_coach.id, _rate_payload(duration_minutes=30))

        updated = rate_service.bulk_update_rates(
            test_coach,
            test_coach.id,
            [
                CoachRateBulkItem(id=first.id, rate_cents=11000),
                CoachRateBulkItem(id=second.id, is_active=False),
            ],
        )

        assert [r.id for r in updated] == [first.id, second.id]
        assert first.rate_cents == 11000
        assert second.is_active is False

    def test_unknown_id_changes_nothing(self, rate_service, test_coach, test_other_coach):
        mine = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        theirs = rate_service.create_rate(test_other_coach, test_other_coach.id, _rate_payload())

        with pytest.raises(NotFoundException) as exc_info:
            rate_service.bulk_update_rates(
                test_coach,
                test_coach.id,
                [
                    CoachRateBulkItem(id=mine.id, rate_cents=1),
                    CoachRateBulkItem(id=theirs.id, rate_cents=1),
                ],
            )

        assert exc_info.value.details["missing_rate_ids"] == [theirs.id]
        assert rate_service.get_rate(mine.id).rate_cents == 10000
        assert rate_service.get_rate(theirs.id).rate_cents == 10000

    def test_invalid_item_rolls_back_earlier_items(self, db, rate_service, test_coach):
        first = rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        second = rate_service.create_rate(test_coach, test_coach.id, _rate_payload(duration_minutes=30))

        with pytest.raises(ValidationException):
            rate_service.bulk_update_rates(
                test_coach,
                test_coach.id,
                [
                    CoachRateBulkItem(id=first.id, title="Changed"),
                    CoachRateBulkItem(id=second.id, max_sessions=4),
                ],
            )

        db.refresh(first)
        assert first.title == "Deep dive"


class TestSuggestions:
    def test_suggests_cheapest_active_match(self, rate_service, test_coach):
        rate_service.create_rate(test_coach, test_coach.id, _rate_payload(rate_cents=15000))
        cheaper = rate_service.create_rate(test_coach, test_coach.id, _rate_payload(rate_cents=8000))

        suggestion = rate_service.find_suggested_rate(test_coach.id, "individual", 60)
        assert suggestion.id == cheaper.id

    def test_no_match(self, rate_service, test_coach):
        rate_service.create_rate(test_coach, test_coach.id, _rate_payload())
        assert rate_service.find_suggested_rate(test_coach.id, SessionType.GROUP, 60) is None

    def test_invalid_duration(self, rate_service, test_coach):
        with pytest.raises(ValidationException):
            rate_service.find_suggested_rate(test_coach.id, SessionType.GROUP, 50)

    def test_validate_rate_for_booking(self, rate_service, coach_rate, test_coach, test_other_coach):
        assert rate_service.validate_rate_for_booking(coach_rate.id, test_coach.id).id == coach_rate.id
        with pytest.raises(ValidationException):
            rate_service.validate_rate_for_booking(coach_rate.id, test_other_coach.id)
