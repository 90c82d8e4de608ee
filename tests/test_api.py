"""
Integration tests for the REST API endpoints.

Routes run against the per-test SQLite database through dependency
overrides; the reconciliation worker is patched out of the lifespan and
Redis publishing goes to an ``AsyncMock``.
"""

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from shuttle.api.app import create_app
from shuttle.api.dependencies import (
    get_effects,
    get_payment_service,
    get_session_factory,
)
from shuttle.api.middleware import limiter
from shuttle.domain.payfast import generate_signature
from shuttle.services.payments import PaymentService


# ── Fixture ───────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def client(session_factory, effects, payfast_config):
    limiter.reset()
    with (
        patch(
            "shuttle.workers.reconciler.start_reconcile_loop",
            new_callable=AsyncMock,
        ),
        patch(
            "shuttle.workers.reconciler.stop_reconcile_loop",
            new_callable=AsyncMock,
        ),
    ):
        app = create_app()
        app.dependency_overrides[get_session_factory] = lambda: session_factory
        app.dependency_overrides[get_effects] = lambda: effects
        app.dependency_overrides[get_payment_service] = lambda: PaymentService(
            session_factory, effects, lambda: payfast_config
        )

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


def _as(account):
    return {"X-Account-Id": str(account.id)}


async def _book(client, account, trip, pickup):
    return await client.post(
        "/api/v1/reservations",
        json={
            "trip_id": trip.id,
            "pickup_location_id": pickup.id,
            "dropoff_location_id": trip.destination_id,
        },
        headers=_as(account),
    )


# ── Tests ─────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    resp = await client.get("/api/v1/admin/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_create_reservation_returns_201(client, factory, airport, pickup):
    trip = await factory.trip(airport)
    account = await factory.account(credits=500)

    resp = await _book(client, account, trip, pickup)

    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "CONFIRMED"
    assert data["credits_cost"] == 100
    assert data["original_cost"] == 100


@pytest.mark.asyncio
async def test_missing_account_header(client, factory, airport, pickup):
    trip = await factory.trip(airport)
    resp = await client.post(
        "/api/v1/reservations",
        json={
            "trip_id": trip.id,
            "pickup_location_id": pickup.id,
            "dropoff_location_id": airport.id,
        },
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_unknown_account(client):
    resp = await client.get("/api/v1/credits", headers={"X-Account-Id": "9999"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_domain_errors_carry_status_and_message(client, factory, airport, pickup):
    trip = await factory.trip(airport, max_passengers=1)
    first = await factory.account(credits=500)
    assert (await _book(client, first, trip, pickup)).status_code == 201

    duplicate = await _book(client, first, trip, pickup)
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"] == "You are already booked for this trip"

    full = await _book(client, await factory.account(credits=500), trip, pickup)
    assert full.status_code == 409
    assert full.json()["detail"] == "Not enough seats available"

    other_trip = await factory.trip(airport)
    broke = await _book(client, await factory.account(credits=10), other_trip, pickup)
    assert broke.status_code == 402
    assert broke.json()["detail"] == "Insufficient credits"


@pytest.mark.asyncio
async def test_get_and_cancel_reservation(client, factory, airport, pickup):
    trip = await factory.trip(airport)
    account = await factory.account(credits=500)
    reservation_id = (await _book(client, account, trip, pickup)).json()["id"]

    resp = await client.get(f"/api/v1/reservations/{reservation_id}", headers=_as(account))
    assert resp.status_code == 200
    assert resp.json()["id"] == reservation_id

    resp = await client.patch(
        f"/api/v1/reservations/{reservation_id}/cancel", headers=_as(account)
    )
    assert resp.status_code == 200
    assert resp.json()["reservation"]["status"] == "CANCELLED"
    assert resp.json()["refunded"] == 100

    again = await client.patch(
        f"/api/v1/reservations/{reservation_id}/cancel", headers=_as(account)
    )
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_reservation_not_found(client, factory):
    resp = await client.get("/api/v1/reservations/9999", headers=_as(await factory.account()))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_trip_pricing(client, factory, airport, pickup):
    trip = await factory.trip(airport)
    await _book(client, await factory.account(credits=500), trip, pickup)

    resp = await client.get(f"/api/v1/trips/{trip.id}/pricing")
    assert resp.status_code == 200
    data = resp.json()
    assert data["current_passengers"] == 1
    assert data["quote"]["cost_per_person"] == 90
    assert [row["passengers"] for row in data["table"]] == [1, 2, 3, 4]

    resp = await client.get(f"/api/v1/trips/{trip.id}/pricing", params={"passenger_count": 0})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_credit_summary(client, factory, airport, pickup):
    trip = await factory.trip(airport)
    account = await factory.account(credits=500)
    await _book(client, account, trip, pickup)

    resp = await client.get("/api/v1/credits", headers=_as(account))
    assert resp.status_code == 200
    data = resp.json()
    assert data["credits"] == 400
    assert data["unlimited"] is False
    assert [e["type"] for e in data["entries"]] == ["USAGE", "PURCHASE"]


class TestPaymentRoutes:
    async def _initiate(self, client, factory):
        account = await factory.account()
        package = await factory.package(credits=250)
        resp = await client.post(
            "/api/v1/payments/initiate",
            json={"package_id": package.id},
            headers=_as(account),
        )
        assert resp.status_code == 201
        return account, resp.json()

    def _itn(self, config, merchant_txn_id, status="COMPLETE", **overrides):
        data = {
            "m_payment_id": merchant_txn_id,
            "pf_payment_id": "555",
            "payment_status": status,
            "item_name": "Credit Package",
            "merchant_id": config.merchant_id,
            **overrides,
        }
        data["signature"] = generate_signature(data, config.passphrase)
        return data

    @pytest.mark.asyncio
    async def test_initiate_returns_gateway_url(self, client, factory):
        _, body = await self._initiate(client, factory)
        assert body["payment"]["status"] == "PENDING"
        assert body["payment_url"].startswith("https://sandbox.payfast.co.za/")

    @pytest.mark.asyncio
    async def test_notify_settles_once(self, client, factory, payfast_config):
        account, body = await self._initiate(client, factory)
        txn_id = body["payment"]["merchant_txn_id"]
        itn = self._itn(payfast_config, txn_id)

        first = await client.post("/api/v1/payments/notify", data=itn)
        replay = await client.post("/api/v1/payments/notify", data=itn)

        assert (first.status_code, first.text) == (200, "OK")
        assert replay.status_code == 200
        assert await factory.ledger_state(account.id) == (250, 250)

        status = await client.get(f"/api/v1/payments/{txn_id}", headers=_as(account))
        assert status.json()["status"] == "COMPLETED"

    @pytest.mark.asyncio
    async def test_notify_bad_signature_acknowledged(self, client, factory, payfast_config):
        account, body = await self._initiate(client, factory)
        itn = self._itn(payfast_config, body["payment"]["merchant_txn_id"])
        itn["signature"] = "0" * 32

        resp = await client.post("/api/v1/payments/notify", data=itn)

        assert resp.status_code == 200
        assert await factory.ledger_state(account.id) == (0, 0)

    @pytest.mark.asyncio
    async def test_notify_unknown_transaction(self, client, payfast_config):
        resp = await client.post(
            "/api/v1/payments/notify", data=self._itn(payfast_config, "PF_0_NOPE00")
        )
        assert resp.status_code == 404
        assert resp.text == ""

    @pytest.mark.asyncio
    async def test_notify_missing_fields(self, client, payfast_config):
        data = {"merchant_id": payfast_config.merchant_id}
        data["signature"] = generate_signature(data, payfast_config.passphrase)

        resp = await client.post("/api/v1/payments/notify", data=data)
        assert resp.status_code == 400


class TestAdminRoutes:
    @pytest.mark.asyncio
    async def test_admin_routes_require_admin(self, client, factory):
        resp = await client.post(
            "/api/v1/admin/packages",
            json={"name": "Starter", "credits": 100, "price": "99.00"},
            headers=_as(await factory.account()),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_location_trip_and_booking_flow(self, client, factory, pickup):
        admin = await factory.admin()
        location = await client.post(
            "/api/v1/admin/locations",
            json={
                "name": "Airport",
                "address": "Airport Rd",
                "pricing_tiers": [
                    {"passenger_count": 1, "cost_per_person": 50},
                    {"passenger_count": 2, "cost_per_person": 40},
                ],
            },
            headers=_as(admin),
        )
        assert location.status_code == 201
        location_id = location.json()["id"]
        assert len(location.json()["pricing_tiers"]) == 2

        repriced = await client.put(
            f"/api/v1/admin/locations/{location_id}/pricing",
            json={"pricing_tiers": [{"passenger_count": 1, "cost_per_person": 60}]},
            headers=_as(admin),
        )
        assert repriced.status_code == 200
        assert repriced.json()["pricing_tiers"] == [
            {"passenger_count": 1, "cost_per_person": 60}
        ]

        start = datetime.now(timezone.utc) + timedelta(days=1)
        trip = await client.post(
            "/api/v1/admin/trips",
            json={
                "destination_id": location_id,
                "start_time": start.isoformat(),
                "end_time": (start + timedelta(hours=1)).isoformat(),
                "max_passengers": 2,
            },
            headers=_as(admin),
        )
        assert trip.status_code == 201
        trip_id = trip.json()["id"]

        rider = await factory.account(credits=100)
        booked = await client.post(
            "/api/v1/reservations",
            json={
                "trip_id": trip_id,
                "pickup_location_id": pickup.id,
                "dropoff_location_id": location_id,
            },
            headers=_as(rider),
        )
        assert booked.json()["credits_cost"] == 60

        cancelled = await client.post(
            f"/api/v1/admin/trips/{trip_id}/cancel", headers=_as(admin)
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["reservations_cancelled"] == 1
        assert cancelled.json()["credits_refunded"] == 60
        assert await factory.ledger_state(rider.id) == (100, 100)

    @pytest.mark.asyncio
    async def test_trip_status_update(self, client, factory, airport, pickup):
        admin = await factory.admin()
        trip = await factory.trip(airport)
        rider = await factory.account(credits=100)
        reservation_id = (await _book(client, rider, trip, pickup)).json()["id"]

        for status in ("IN_PROGRESS", "COMPLETED"):
            resp = await client.patch(
                f"/api/v1/admin/trips/{trip.id}/status",
                json={"status": status},
                headers=_as(admin),
            )
            assert resp.status_code == 200
            assert resp.json()["status"] == status

        cancel = await client.patch(
            f"/api/v1/reservations/{reservation_id}/cancel", headers=_as(rider)
        )
        assert cancel.status_code == 409
        assert await factory.ledger_state(rider.id) == (0, 0)

        backwards = await client.patch(
            f"/api/v1/admin/trips/{trip.id}/status",
            json={"status": "SCHEDULED"},
            headers=_as(admin),
        )
        assert backwards.status_code == 409

    @pytest.mark.asyncio
    async def test_trip_must_end_after_start(self, client, factory, airport):
        start = datetime.now(timezone.utc)
        resp = await client.post(
            "/api/v1/admin/trips",
            json={
                "destination_id": airport.id,
                "start_time": start.isoformat(),
                "end_time": start.isoformat(),
            },
            headers=_as(await factory.admin()),
        )
        assert resp.status_code == 422

    @pytest.mark.asyncio
    async def test_adjust_credits_and_reconcile(self, client, factory):
        admin = await factory.admin()
        account = await factory.account(credits=10)

        resp = await client.post(
            "/api/v1/admin/credits/adjust",
            json={"account_id": account.id, "amount": 15, "reason": "Goodwill"},
            headers=_as(admin),
        )
        assert resp.json() == {"account_id": account.id, "credits": 25}

        too_much = await client.post(
            "/api/v1/admin/credits/adjust",
            json={"account_id": account.id, "amount": -30, "reason": "Correction"},
            headers=_as(admin),
        )
        assert too_much.status_code == 402

        reconcile = await client.get("/api/v1/admin/reconcile", headers=_as(admin))
        assert reconcile.status_code == 200
        assert reconcile.json() == []

    @pytest.mark.asyncio
    async def test_create_package(self, client, factory):
        resp = await client.post(
            "/api/v1/admin/packages",
            json={"name": "Starter", "credits": 100, "price": "99.00"},
            headers=_as(await factory.admin()),
        )
        assert resp.status_code == 201
        assert resp.json()["credits"] == 100
        assert resp.json()["is_active"] is True
