"""
Tests for the meal subscription HTTP endpoints
"""
import pytest
from datetime import date, datetime
from fastapi.testclient import TestClient

from mealsub.api.deps import get_db, get_now
from mealsub.application.subscriptions import (
    CreateMealSubscriptionUseCase, ScheduleDeliveriesUseCase,
)
from mealsub.main import app

NOW = datetime(2026, 3, 2, 10, 0)  # Monday
BASE = "/api/v1/meal-subscriptions"


@pytest.fixture
def client(db_session):
    def _db():
        yield db_session

    app.dependency_overrides[get_db] = _db
    app.dependency_overrides[get_now] = lambda: NOW
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def sub_id(db_session):
    sub_id = CreateMealSubscriptionUseCase(db_session).execute(
        delivery_days=["M", "W", "F"], meals_per_week=3, start_date=date(2026, 1, 5),
    ).value
    ScheduleDeliveriesUseCase(db_session).execute(sub_id, NOW, days_ahead=7)
    return sub_id


def test_health(client):
    assert client.get("/health").text == "ok"


def test_get_subscription(client, sub_id):
    resp = client.get(f"{BASE}/{sub_id}")

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "active"
    assert body["delivery_days"] == ["M", "W", "F"]
    assert body["remaining_pause_days"] == 30
    assert body["next_delivery_date"] == "2026-03-04"


def test_unknown_subscription(client):
    resp = client.get(f"{BASE}/999")

    assert resp.status_code == 404
    assert resp.json()["detail"]["kind"] == "NOT_FOUND"


def test_next_delivery(client, sub_id):
    resp = client.get(f"{BASE}/{sub_id}/next-delivery", params={"limit": 3})
    assert resp.json() == ["2026-03-04", "2026-03-06", "2026-03-09"]


def test_pause_then_pause_again(client, sub_id):
    payload = {"start_date": "2026-03-03", "end_date": "2026-03-09"}

    resp = client.post(f"{BASE}/{sub_id}/pause", json=payload)
    assert resp.status_code == 200
    assert resp.json()["status"] == "paused"
    assert resp.json()["pause_end_date"] == "2026-03-09"

    resp = client.post(f"{BASE}/{sub_id}/pause", json=payload)
    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "ALREADY_PAUSED"


def test_pause_over_limit(client, sub_id):
    resp = client.post(
        f"{BASE}/{sub_id}/pause",
        json={"start_date": "2026-03-03", "end_date": "2026-04-30"},
    )

    assert resp.status_code == 400
    detail = resp.json()["detail"]
    assert detail["kind"] == "LIMIT_EXCEEDED"
    assert detail["remaining"] == 30


def test_resume_on_delivery_day(client, sub_id):
    client.post(f"{BASE}/{sub_id}/pause", json={"start_date": "2026-03-03", "end_date": "2026-03-09"})

    resp = client.post(f"{BASE}/{sub_id}/resume", json={"resume_date": "2026-03-06"})

    assert resp.status_code == 200
    assert resp.json()["status"] == "active"
    assert resp.json()["pause_end_date"] is None


def test_resume_when_active(client, sub_id):
    resp = client.post(f"{BASE}/{sub_id}/resume", json={})
    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "NOT_PAUSED"


def test_resume_when_active_on_non_delivery_day(client, sub_id):
    resp = client.post(f"{BASE}/{sub_id}/resume", json={"resume_date": "2026-03-03"})
    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "NOT_PAUSED"


def test_cancel_meals(client, sub_id):
    resp = client.post(
        f"{BASE}/{sub_id}/cancel-meals",
        json={"dates": ["2026-03-06", "2026-03-09"], "reason": "Away"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["cancelled_count"] == 2
    assert body["dates"] == ["2026-03-06", "2026-03-09"]

    overview = client.get(f"{BASE}/{sub_id}").json()
    assert overview["remaining_cancellations"] == 2
    assert overview["carry_forward_meals"] == 2


def test_cancel_meals_within_cutoff(client, db_session):
    # Tuesday delivery is less than 24h away from Monday 10:00
    sub_id_t = CreateMealSubscriptionUseCase(db_session).execute(
        delivery_days=["T"], meals_per_week=1, start_date=date(2026, 1, 5),
    ).value
    ScheduleDeliveriesUseCase(db_session).execute(sub_id_t, NOW, days_ahead=7)

    resp = client.post(f"{BASE}/{sub_id_t}/cancel-meals", json={"dates": ["2026-03-03"]})

    assert resp.status_code == 400
    assert resp.json()["detail"]["kind"] == "WITHIN_CUTOFF"


def test_cancel_meals_while_paused(client, sub_id):
    client.post(f"{BASE}/{sub_id}/pause", json={"start_date": "2026-03-20", "end_date": "2026-03-22"})

    resp = client.post(f"{BASE}/{sub_id}/cancel-meals", json={"dates": ["2026-03-06"]})

    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "NOT_ACTIVE"


def test_cancel_subscription(client, sub_id):
    assert client.post(f"{BASE}/{sub_id}/cancel").json()["status"] == "cancelled"

    resp = client.post(f"{BASE}/{sub_id}/cancel")
    assert resp.status_code == 409
    assert resp.json()["detail"]["kind"] == "ALREADY_CANCELLED"


def test_change_delivery_days(client, sub_id):
    resp = client.put(f"{BASE}/{sub_id}/delivery-days", json={"delivery_days": ["t", "r", "s"]})

    assert resp.status_code == 200
    assert resp.json()["delivery_days"] == ["T", "R", "S"]


def test_change_delivery_days_wrong_count(client, sub_id):
    resp = client.put(f"{BASE}/{sub_id}/delivery-days", json={"delivery_days": ["T"]})

    assert resp.status_code == 400
    assert resp.json()["detail"]["kind"] == "INVALID_DELIVERY_DAYS"


def test_change_delivery_days_unknown_code(client, sub_id):
    resp = client.put(f"{BASE}/{sub_id}/delivery-days", json={"delivery_days": ["M", "X", "F"]})
    assert resp.status_code == 422
