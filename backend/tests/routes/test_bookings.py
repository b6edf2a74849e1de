"""HTTP contract tests for the booking request routes."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.core.ulid_helper import generate_ulid
from app.models.booking_request import BookingRequest

PROBLEM_JSON = "application/problem+json"


def _create(client, headers, coach_id: str, **overrides) -> dict:
    payload = {
        "coach_id": coach_id,
        "session_type": "individual",
        "duration_minutes": 60,
        "area_of_focus": "Leadership",
    }
    payload.update(overrides)
    response = client.post("/api/bookings/request", json=payload, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateRequest:
    def test_client_creates_pending_request(self, client, auth_headers_client, test_coach, test_client_user):
        body = _create(client, auth_headers_client, test_coach.id, notes="  ")

        assert body["status"] == "pending"
        assert body["client_id"] == test_client_user.id
        assert body["coach_id"] == test_coach.id
        assert body["final_price_cents"] is None
        assert body["notes"] is None
        assert body["expires_at"] is not None

    def test_requires_authentication(self, client, test_coach):
        response = client.post(
            "/api/bookings/request",
            json={"coach_id": test_coach.id, "session_type": "individual", "duration_minutes": 60},
        )
        assert response.status_code == 401
        assert response.headers["content-type"].startswith(PROBLEM_JSON)

    def test_coach_cannot_create(self, client, auth_headers_coach, test_other_coach):
        response = client.post(
            "/api/bookings/request",
            json={"coach_id": test_other_coach.id, "session_type": "individual", "duration_minutes": 60},
            headers=auth_headers_coach,
        )
        assert response.status_code == 403

    def test_rejects_unknown_duration(self, client, auth_headers_client, test_coach):
        response = client.post(
            "/api/bookings/request",
            json={"coach_id": test_coach.id, "session_type": "individual", "duration_minutes": 50},
            headers=auth_headers_client,
        )
        assert response.status_code == 422
        body = response.json()
        assert body["code"] == "validation_error"
        assert body["errors"]

    def test_rejects_unknown_fields(self, client, auth_headers_client, test_coach):
        response = client.post(
            "/api/bookings/request",
            json={
                "coach_id": test_coach.id,
                "session_type": "individual",
                "duration_minutes": 60,
                "final_price_cents": 100,
            },
            headers=auth_headers_client,
        )
        assert response.status_code == 422

    def test_unknown_coach(self, client, auth_headers_client):
        response = client.post(
            "/api/bookings/request",
            json={"coach_id": generate_ulid(), "session_type": "group", "duration_minutes": 30},
            headers=auth_headers_client,
        )
        assert response.status_code == 404
        assert response.headers["content-type"].startswith(PROBLEM_JSON)
        assert response.json()["code"] == "COACH_NOT_FOUND"


class TestCoachDecisions:
    def test_accept_moves_to_payment_required(self, client, auth_headers_client, auth_headers_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)

        response = client.post(
            f"/api/bookings/coach/requests/{created['id']}/accept",
            json={"final_price_cents": 12000, "coach_notes": "Looking forward to it"},
            headers=auth_headers_coach,
        )

        assert response.status_code == 200, response.text
        body = response.json()
        assert body["status"] == "payment_required"
        assert body["final_price_cents"] == 12000
        assert body["payment_deadline"] is not None

    def test_accept_without_price_or_rate(self, client, auth_headers_client, auth_headers_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)
        response = client.post(
            f"/api/bookings/coach/requests/{created['id']}/accept",
            json={},
            headers=auth_headers_coach,
        )
        assert response.status_code == 400

    def test_accept_zero_price_is_invalid(self, client, auth_headers_client, auth_headers_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)
        response = client.post(
            f"/api/bookings/coach/requests/{created['id']}/accept",
            json={"final_price_cents": 0},
            headers=auth_headers_coach,
        )
        assert response.status_code == 422

    def test_other_coach_gets_not_found(self, client, auth_headers_client, auth_headers_other_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)
        response = client.post(
            f"/api/bookings/coach/requests/{created['id']}/accept",
            json={"final_price_cents": 5000},
            headers=auth_headers_other_coach,
        )
        assert response.status_code == 404

    def test_reject_then_accept_conflicts(self, client, auth_headers_client, auth_headers_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)

        rejected = client.post(
            f"/api/bookings/coach/requests/{created['id']}/reject",
            json={"reason": "Fully booked this month"},
            headers=auth_headers_coach,
        )
        assert rejected.status_code == 200
        assert rejected.json()["status"] == "rejected"
        assert rejected.json()["rejection_reason"] == "Fully booked this month"

        again = client.post(
            f"/api/bookings/coach/requests/{created['id']}/accept",
            json={"final_price_cents": 5000},
            headers=auth_headers_coach,
        )
        assert again.status_code == 422
        assert again.json()["code"] == "INVALID_BOOKING_TRANSITION"

    def test_reject_without_body(self, client, auth_headers_client, auth_headers_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)
        response = client.post(
            f"/api/bookings/coach/requests/{created['id']}/reject", headers=auth_headers_coach
        )
        assert response.status_code == 200
        assert response.json()["rejection_reason"] is None

    def test_accept_after_response_window(self, client, db, auth_headers_client, auth_headers_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)
        booking_request = db.get(BookingRequest, created["id"])
        booking_request.expires_at = datetime.now(timezone.utc) - timedelta(minutes=5)
        db.commit()

        response = client.post(
            f"/api/bookings/coach/requests/{created['id']}/accept",
            json={"final_price_cents": 5000},
            headers=auth_headers_coach,
        )

        assert response.status_code == 422
        assert response.json()["code"] == "BOOKING_EXPIRED"
        db.refresh(booking_request)
        assert booking_request.status == "expired"


class TestCancellation:
    def test_client_cancels(self, client, auth_headers_client, test_coach, test_client_user):
        created = _create(client, auth_headers_client, test_coach.id)
        response = client.post(
            f"/api/bookings/requests/{created['id']}/cancel",
            json={"reason": "Schedule changed"},
            headers=auth_headers_client,
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "cancelled"
        assert body["cancelled_by_id"] == test_client_user.id
        assert body["cancellation_reason"] == "Schedule changed"

    def test_coach_cancels_without_body(self, client, auth_headers_client, auth_headers_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)
        response = client.post(
            f"/api/bookings/requests/{created['id']}/cancel", headers=auth_headers_coach
        )
        assert response.status_code == 200
        assert response.json()["cancelled_by_id"] == test_coach.id

    def test_stranger_cannot_cancel(self, client, auth_headers_client, auth_headers_other_client, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)
        response = client.post(
            f"/api/bookings/requests/{created['id']}/cancel", headers=auth_headers_other_client
        )
        assert response.status_code == 404

    def test_paid_request_cannot_be_cancelled(
        self, client, auth_headers_client, auth_headers_coach, test_coach, stripe_mock
    ):
        created = _create(client, auth_headers_client, test_coach.id)
        client.post(
            f"/api/bookings/coach/requests/{created['id']}/accept",
            json={"final_price_cents": 12000},
            headers=auth_headers_coach,
        )
        payment = client.post(
            "/api/payments/v2/authorize",
            json={"booking_request_id": created["id"]},
            headers=auth_headers_client,
        ).json()["payment"]
        stripe_mock.client_confirms(payment["stripe_payment_intent_id"])
        paid = client.post(
            f"/api/bookings/client/requests/{created['id']}/pay",
            json={"payment_intent_id": payment["stripe_payment_intent_id"]},
            headers=auth_headers_client,
        )
        assert paid.json()["status"] == "paid_confirmed"

        response = client.post(
            f"/api/bookings/requests/{created['id']}/cancel",
            json={"reason": "Too late"},
            headers=auth_headers_client,
        )

        assert response.status_code == 422
        assert response.headers["content-type"].startswith(PROBLEM_JSON)
        assert response.json()["code"] == "INVALID_BOOKING_TRANSITION"
        booking = client.get(f"/api/bookings/client/requests/{created['id']}", headers=auth_headers_client)
        assert booking.json()["status"] == "paid_confirmed"
        status_view = client.get(f"/api/payments/v2/status/{payment['id']}", headers=auth_headers_client)
        assert status_view.json()["status"] == "authorized"
        assert stripe_mock.intents[payment["stripe_payment_intent_id"]].status == "requires_capture"

    def test_bad_ulid_path(self, client, auth_headers_client):
        response = client.post("/api/bookings/requests/not-a-ulid/cancel", headers=auth_headers_client)
        assert response.status_code == 422
        assert response.headers["content-type"].startswith(PROBLEM_JSON)


class TestQueries:
    def test_client_list_with_status_filter(self, client, auth_headers_client, auth_headers_coach, test_coach):
        first = _create(client, auth_headers_client, test_coach.id)
        _create(client, auth_headers_client, test_coach.id, session_type="group")
        client.post(
            f"/api/bookings/coach/requests/{first['id']}/accept",
            json={"final_price_cents": 8000},
            headers=auth_headers_coach,
        )

        everything = client.get("/api/bookings/client/requests", headers=auth_headers_client).json()
        assert everything["total"] == 2

        waiting = client.get(
            "/api/bookings/client/requests",
            params={"status": "payment_required"},
            headers=auth_headers_client,
        ).json()
        assert [item["id"] for item in waiting["items"]] == [first["id"]]

    def test_invalid_status_filter(self, client, auth_headers_client):
        response = client.get(
            "/api/bookings/client/requests", params={"status": "bogus"}, headers=auth_headers_client
        )
        assert response.status_code == 422

    def test_coach_pending_queue(self, client, auth_headers_client, auth_headers_coach, auth_headers_other_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)

        mine = client.get("/api/bookings/coach/pending", headers=auth_headers_coach).json()
        theirs = client.get("/api/bookings/coach/pending", headers=auth_headers_other_coach).json()

        assert [item["id"] for item in mine["items"]] == [created["id"]]
        assert theirs == {"items": [], "total": 0}

    def test_client_cannot_use_coach_routes(self, client, auth_headers_client):
        response = client.get("/api/bookings/coach/pending", headers=auth_headers_client)
        assert response.status_code == 403

    def test_detail_views(self, client, auth_headers_client, auth_headers_coach, auth_headers_other_client, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)

        assert client.get(
            f"/api/bookings/client/requests/{created['id']}", headers=auth_headers_client
        ).status_code == 200
        assert client.get(
            f"/api/bookings/coach/requests/{created['id']}", headers=auth_headers_coach
        ).status_code == 200
        assert client.get(
            f"/api/bookings/client/requests/{created['id']}", headers=auth_headers_other_client
        ).status_code == 404

    def test_event_trail(self, client, auth_headers_client, auth_headers_coach, test_coach):
        created = _create(client, auth_headers_client, test_coach.id)
        client.post(
            f"/api/bookings/coach/requests/{created['id']}/accept",
            json={"final_price_cents": 8000},
            headers=auth_headers_coach,
        )

        response = client.get(f"/api/bookings/requests/{created['id']}/events", headers=auth_headers_coach)

        assert response.status_code == 200
        event_types = [event["event_type"] for event in response.json()]
        assert event_types[0] == "request_created"
        assert "coach_accepted" in event_types

    def test_overview(self, client, auth_headers_client, auth_headers_coach, test_coach):
        _create(client, auth_headers_client, test_coach.id)
        _create(client, auth_headers_client, test_coach.id)

        coach_view = client.get("/api/bookings/overview", headers=auth_headers_coach).json()
        client_view = client.get("/api/bookings/overview", headers=auth_headers_client).json()

        assert coach_view["role"] == "coach"
        assert coach_view["counts"]["pending"] == 2
        assert coach_view["awaiting_action"] == 2
        assert client_view["total"] == 2
        assert client_view["awaiting_action"] == 0


class TestAdminExpiry:
    @pytest.fixture
    def stale_request_id(self, client, db, auth_headers_client, test_coach) -> str:
        created = _create(client, auth_headers_client, test_coach.id)
        booking_request = db.get(BookingRequest, created["id"])
        booking_request.expires_at = datetime.now(timezone.utc) - timedelta(hours=1)
        db.commit()
        return created["id"]

    def test_dry_run_changes_nothing(self, client, db, auth_headers_admin, stale_request_id):
        response = client.post(
            "/api/bookings/admin/expire", params={"dry_run": "true"}, headers=auth_headers_admin
        )
        assert response.status_code == 200
        assert response.json() == {"expired": [stale_request_id], "failed": [], "dry_run": True}
        assert db.get(BookingRequest, stale_request_id).status == "pending"

    def test_sweep_expires(self, client, db, auth_headers_admin, stale_request_id):
        response = client.post("/api/bookings/admin/expire", headers=auth_headers_admin)
        assert response.json()["expired"] == [stale_request_id]
        assert db.get(BookingRequest, stale_request_id).status == "expired"

    def test_admin_only(self, client, auth_headers_coach):
        response = client.post("/api/bookings/admin/expire", headers=auth_headers_coach)
        assert response.status_code == 403
