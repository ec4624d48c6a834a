"""
Integration tests for the REST API endpoints.

Runs the real app against the SQLite store with a fake identity
provider; bearer tokens are ``token-<actor key>`` (see conftest).
"""

from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

RIDE_BODY = {
    "origin_address": "Av. Paulista, 1000",
    "destination_address": "Rua Augusta, 200",
    "price": "35.00",
    "is_product": False,
    "city": "Sao Paulo",
}

WITHDRAWAL_BODY = {
    "amount": "20.00",
    "bank_account": {"bank": "Banco Azul", "agency": "0001", "account": "12345-6"},
}


async def _create_ride(client, auth, **overrides):
    resp = await client.post(
        "/api/v1/rides", json={**RIDE_BODY, **overrides}, headers=auth("requester")
    )
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


async def _complete_ride(client, auth, price="35.00", driver="driver_a"):
    ride = await _create_ride(client, auth, price=price)
    resp = await client.post(f"/api/v1/rides/{ride['id']}/accept", headers=auth(driver))
    assert resp.status_code == 200, resp.text
    for status in ("in_progress", "completed"):
        resp = await client.put(
            f"/api/v1/rides/{ride['id']}/status", json={"status": status}, headers=auth(driver)
        )
        assert resp.status_code == 200, resp.text
    return resp.json()["data"]


# ── Root / health ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_root(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert resp.json()["success"] is True


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/v1/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"] == {"status": "ok", "database": "ok", "redis": "ok"}


# ── Authentication ────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_missing_token_is_401(client):
    resp = await client.get("/api/v1/rides/history")
    assert resp.status_code == 401
    assert resp.json() == {"success": False, "message": "Authentication token not provided"}


@pytest.mark.asyncio
async def test_invalid_token_is_401(client):
    resp = await client.get(
        "/api/v1/rides/history", headers={"Authorization": "Bearer forged"}
    )
    assert resp.status_code == 401
    assert resp.json()["message"] == "Invalid token"


@pytest.mark.asyncio
async def test_unknown_profile_is_404(client, auth):
    resp = await client.get("/api/v1/rides/history", headers=auth("ghost"))
    assert resp.status_code == 404
    assert resp.json()["message"] == "User not found"


# ── Rides ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_ride(client, auth):
    resp = await client.post("/api/v1/rides", json=RIDE_BODY, headers=auth("requester"))

    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    assert body["message"] == "Ride request created"
    ride = body["data"]
    assert ride["status"] == "pending"
    assert Decimal(ride["price"]) == Decimal("35.00")
    assert ride["driver_id"] is None
    assert ride["product"] is None


@pytest.mark.asyncio
async def test_create_product_ride(client, auth):
    ride = await _create_ride(
        client,
        auth,
        is_product=True,
        description="Box of books",
        size="medium",
        weight="8.5",
    )
    assert ride["is_product"] is True
    assert ride["product"]["description"] == "Box of books"
    assert Decimal(ride["product"]["weight"]) == Decimal("8.5")


@pytest.mark.asyncio
async def test_create_product_ride_without_details_is_400(client, auth):
    resp = await client.post(
        "/api/v1/rides", json={**RIDE_BODY, "is_product": True}, headers=auth("requester")
    )
    assert resp.status_code == 400
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_create_ride_missing_fields_is_400(client, auth):
    resp = await client.post(
        "/api/v1/rides", json={"price": "10.00"}, headers=auth("requester")
    )
    assert resp.status_code == 400
    body = resp.json()
    assert body["message"] == "Required fields not provided"
    assert "origin_address" in body["missing_fields"]
    assert "is_product" in body["missing_fields"]


@pytest.mark.asyncio
async def test_create_ride_bad_price_is_400(client, auth):
    resp = await client.post(
        "/api/v1/rides", json={**RIDE_BODY, "price": "-3.00"}, headers=auth("requester")
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_driver_cannot_create_ride(client, auth):
    resp = await client.post("/api/v1/rides", json=RIDE_BODY, headers=auth("driver_a"))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_available_rides_for_drivers(client, auth):
    ride = await _create_ride(client, auth)
    await _create_ride(client, auth, city="Rio")

    resp = await client.get("/api/v1/rides/available", headers=auth("driver_a"))
    assert resp.status_code == 200
    page = resp.json()["data"]
    assert len(page["items"]) == 2
    assert page["next_offset"] is None

    resp = await client.get(
        "/api/v1/rides/available", params={"city": "Sao Paulo"}, headers=auth("driver_b")
    )
    assert [r["id"] for r in resp.json()["data"]["items"]] == [ride["id"]]

    resp = await client.get("/api/v1/rides/available", headers=auth("requester"))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_negative_offset_is_400(client, auth):
    resp = await client.get(
        "/api/v1/rides/available", params={"offset": -1}, headers=auth("driver_a")
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_accept_then_second_accept_is_409(client, auth):
    ride = await _create_ride(client, auth)

    resp = await client.post(f"/api/v1/rides/{ride['id']}/accept", headers=auth("driver_a"))
    assert resp.status_code == 200
    assert resp.json()["message"] == "Ride accepted"
    assert resp.json()["data"]["driver_id"] == "drv-ana"

    resp = await client.post(f"/api/v1/rides/{ride['id']}/accept", headers=auth("driver_b"))
    assert resp.status_code == 409
    assert resp.json() == {"success": False, "message": "Ride is no longer available"}


@pytest.mark.asyncio
async def test_inactive_driver_cannot_accept(client, auth):
    ride = await _create_ride(client, auth)
    resp = await client.post(
        f"/api/v1/rides/{ride['id']}/accept", headers=auth("inactive_driver")
    )
    assert resp.status_code == 403
    assert resp.json()["message"] == "User is inactive"


@pytest.mark.asyncio
async def test_get_ride(client, auth):
    ride = await _create_ride(client, auth)

    resp = await client.get(f"/api/v1/rides/{ride['id']}", headers=auth("requester"))
    assert resp.status_code == 200
    assert resp.json()["data"]["id"] == ride["id"]

    resp = await client.get(f"/api/v1/rides/{ride['id']}", headers=auth("other_requester"))
    assert resp.status_code == 403

    resp = await client.get("/api/v1/rides/missing", headers=auth("requester"))
    assert resp.status_code == 404
    assert resp.json()["message"] == "Ride not found"


@pytest.mark.asyncio
async def test_full_lifecycle_credits_wallet(client, auth):
    ride = await _complete_ride(client, auth, price="50.00")
    assert ride["status"] == "completed"
    assert ride["completed_at"] is not None

    resp = await client.get("/api/v1/wallet", headers=auth("driver_a"))
    assert Decimal(resp.json()["data"]["balance"]) == Decimal("50.00")

    resp = await client.get("/api/v1/drivers/me/stats", headers=auth("driver_a"))
    stats = resp.json()["data"]
    assert stats["total_rides"] == 1
    assert Decimal(stats["total_earnings"]) == Decimal("50.00")

    resp = await client.get("/api/v1/rides/history", headers=auth("driver_a"))
    assert [r["id"] for r in resp.json()["data"]["items"]] == [ride["id"]]


@pytest.mark.asyncio
async def test_invalid_status_transition_is_409(client, auth):
    ride = await _create_ride(client, auth)
    await client.post(f"/api/v1/rides/{ride['id']}/accept", headers=auth("driver_a"))

    resp = await client.put(
        f"/api/v1/rides/{ride['id']}/status",
        json={"status": "completed"},
        headers=auth("driver_a"),
    )
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_unknown_status_is_400(client, auth):
    ride = await _create_ride(client, auth)
    resp = await client.put(
        f"/api/v1/rides/{ride['id']}/status",
        json={"status": "teleported"},
        headers=auth("requester"),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_stranger_cannot_update_status(client, auth):
    ride = await _create_ride(client, auth)
    resp = await client.put(
        f"/api/v1/rides/{ride['id']}/status",
        json={"status": "cancelled"},
        headers=auth("other_requester"),
    )
    assert resp.status_code == 403


# ── Wallet ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_balance_defaults_to_zero(client, auth):
    resp = await client.get("/api/v1/wallet", headers=auth("driver_b"))
    assert resp.status_code == 200
    assert Decimal(resp.json()["data"]["balance"]) == Decimal("0")


@pytest.mark.asyncio
async def test_requester_has_no_wallet(client, auth):
    resp = await client.get("/api/v1/wallet", headers=auth("requester"))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_withdrawal_lifecycle(client, auth):
    await _complete_ride(client, auth, price="50.00")

    resp = await client.post(
        "/api/v1/wallet/withdrawals", json=WITHDRAWAL_BODY, headers=auth("driver_a")
    )
    assert resp.status_code == 201
    withdrawal = resp.json()["data"]
    assert withdrawal["status"] == "pending"
    assert Decimal(withdrawal["amount"]) == Decimal("20.00")

    resp = await client.get("/api/v1/wallet", headers=auth("driver_a"))
    assert Decimal(resp.json()["data"]["balance"]) == Decimal("30.00")

    resp = await client.get(
        f"/api/v1/wallet/withdrawals/{withdrawal['id']}", headers=auth("driver_a")
    )
    assert resp.json()["data"]["status"] == "pending"

    resp = await client.post(
        f"/api/v1/wallet/withdrawals/{withdrawal['id']}/cancel", headers=auth("driver_a")
    )
    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "cancelled"

    resp = await client.post(
        f"/api/v1/wallet/withdrawals/{withdrawal['id']}/cancel", headers=auth("driver_a")
    )
    assert resp.status_code == 409

    resp = await client.get("/api/v1/wallet/transactions", headers=auth("driver_a"))
    items = resp.json()["data"]["items"]
    assert [t["type"] for t in items] == [
        "withdrawal_cancellation_credit",
        "withdrawal_debit",
        "ride_credit",
    ]
    assert [Decimal(t["balance"]) for t in items] == [
        Decimal("50.00"),
        Decimal("30.00"),
        Decimal("50.00"),
    ]


@pytest.mark.asyncio
async def test_insufficient_funds_is_400(client, auth):
    await _complete_ride(client, auth, price="10.00")
    resp = await client.post(
        "/api/v1/wallet/withdrawals", json=WITHDRAWAL_BODY, headers=auth("driver_a")
    )
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "message": "Insufficient balance"}


@pytest.mark.asyncio
async def test_withdrawal_missing_bank_account_is_400(client, auth):
    resp = await client.post(
        "/api/v1/wallet/withdrawals", json={"amount": "5.00"}, headers=auth("driver_a")
    )
    assert resp.status_code == 400
    assert "bank_account" in resp.json()["missing_fields"]


@pytest.mark.asyncio
async def test_other_driver_cannot_see_withdrawal(client, auth):
    await _complete_ride(client, auth, price="50.00")
    resp = await client.post(
        "/api/v1/wallet/withdrawals", json=WITHDRAWAL_BODY, headers=auth("driver_a")
    )
    withdrawal_id = resp.json()["data"]["id"]

    resp = await client.get(
        f"/api/v1/wallet/withdrawals/{withdrawal_id}", headers=auth("driver_b")
    )
    assert resp.status_code == 403
    resp = await client.post(
        f"/api/v1/wallet/withdrawals/{withdrawal_id}/cancel", headers=auth("driver_b")
    )
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_transactions_filters(client, auth):
    await _complete_ride(client, auth, price="50.00")
    await client.post(
        "/api/v1/wallet/withdrawals", json=WITHDRAWAL_BODY, headers=auth("driver_a")
    )

    resp = await client.get(
        "/api/v1/wallet/transactions",
        params={"type": "withdrawal_debit"},
        headers=auth("driver_a"),
    )
    items = resp.json()["data"]["items"]
    assert len(items) == 1
    assert Decimal(items[0]["amount"]) == Decimal("-20.00")
    assert items[0]["status"] == "pending"

    resp = await client.get(
        "/api/v1/wallet/transactions",
        params={"start_date": "2000-01-01T00:00:00Z", "end_date": "2000-12-31T00:00:00Z"},
        headers=auth("driver_a"),
    )
    assert resp.json()["data"]["items"] == []

    resp = await client.get(
        "/api/v1/wallet/transactions",
        params={"start_date": "2030-01-01T00:00:00Z", "end_date": "2020-01-01T00:00:00Z"},
        headers=auth("driver_a"),
    )
    assert resp.status_code == 400

    resp = await client.get(
        "/api/v1/wallet/transactions", params={"type": "bogus"}, headers=auth("driver_a")
    )
    assert resp.status_code == 400


# ── Store outage ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_store_outage_is_generic_503(client, store, auth, monkeypatch):
    def _refused():
        raise OperationalError(
            "SELECT 1", {}, ConnectionRefusedError("db-internal.example:5432 refused")
        )

    monkeypatch.setattr(store, "session_factory", _refused)

    resp = await client.get("/api/v1/wallet", headers=auth("driver_a"))

    assert resp.status_code == 503
    assert resp.headers["Retry-After"] == "1"
    assert resp.json() == {
        "success": False,
        "message": "Service temporarily unavailable, please retry",
    }
    assert "db-internal" not in resp.text
    assert "5432" not in resp.text


@pytest.mark.asyncio
async def test_health_reports_database_down(client, store, monkeypatch):
    async def _down():
        return False

    monkeypatch.setattr(store, "ping", _down)

    resp = await client.get("/api/v1/health")
    assert resp.status_code == 503
    assert resp.json()["data"]["database"] == "unavailable"


@pytest.mark.asyncio
async def test_withdrawal_detail_lists_entries(client, auth):
    await _complete_ride(client, auth, price="50.00")
    resp = await client.post(
        "/api/v1/wallet/withdrawals", json=WITHDRAWAL_BODY, headers=auth("driver_a")
    )
    withdrawal_id = resp.json()["data"]["id"]
    await client.post(
        f"/api/v1/wallet/withdrawals/{withdrawal_id}/cancel", headers=auth("driver_a")
    )

    resp = await client.get(
        f"/api/v1/wallet/withdrawals/{withdrawal_id}", headers=auth("driver_a")
    )
    data = resp.json()["data"]
    assert data["status"] == "cancelled"
    assert [t["type"] for t in data["transactions"]] == [
        "withdrawal_debit",
        "withdrawal_cancellation_credit",
    ]
    assert [Decimal(t["amount"]) for t in data["transactions"]] == [
        Decimal("-20.00"),
        Decimal("20.00"),
    ]
