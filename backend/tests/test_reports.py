"""
Integration tests for report endpoints.
"""

import pytest


# TEST 1: Dashboard
@pytest.mark.asyncio
async def test_admin_dashboard(client, admin, self_trip, fleet_trip):
    response = await client.get("/v1/reports/dashboard", headers=admin[1])
    assert response.status_code == 200
    report = response.json()
    assert report["report"] == "dashboard"
    assert report["filters"] == {}

    data = report["data"]
    assert data["trips"]["total"] == 2
    assert data["trips"]["active"] == 2
    assert data["trips"]["by_status"]["booked"] == 2
    assert data["amounts"]["total_client_amount"] == 20000.0
    assert data["amounts"]["total_due"] == 20000.0
    assert data["amounts"]["total_commission"] == 1000.0
    assert data["vehicles"] == {"booked": 2}
    assert data["open_maintenance"] == 0


@pytest.mark.asyncio
async def test_dashboard_is_scoped(client, fleet_owner, client_user, self_trip, fleet_trip):
    owner = (await client.get("/v1/reports/dashboard", headers=fleet_owner[1])).json()["data"]
    assert owner["trips"]["total"] == 1
    assert owner["vehicles"] == {"booked": 1}
    assert "total_commission" not in owner["amounts"]

    client_view = (await client.get("/v1/reports/dashboard", headers=client_user[1])).json()["data"]
    assert client_view["trips"]["total"] == 2
    assert "vehicles" not in client_view


# TEST 2: Financial
@pytest.mark.asyncio
async def test_financial_report(client, admin, self_trip, fleet_trip):
    _, headers = admin
    await client.post(
        f"/v1/trips/{fleet_trip['id']}/fleet-expenses",
        json={"amount": 500, "category": "toll"},
        headers=headers,
    )
    await client.post("/v1/expenses/create", json={"amount": 700, "type": "rent", "paid_at": "2026-11-04T10:00:00"}, headers=headers)
    await client.post("/v1/payments", json={
        "trip_id": self_trip["id"], "amount": 4000, "payment_type": "client_payment",
    }, headers=headers)

    response = await client.get("/v1/reports/financial", headers=headers)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["trips"] == 2
    assert data["revenue"] == 20000.0
    assert data["commission"] == 1000.0
    assert data["vehicle_owner_amount"] == 19000.0
    assert data["payments_by_status"] == {"pending": {"count": 1, "amount": 4000.0}}
    assert data["expenses"] == {"trip": 500.0, "general": 700.0, "maintenance": 0.0}


@pytest.mark.asyncio
async def test_financial_report_date_range(client, admin, self_trip):
    response = await client.get(
        "/v1/reports/financial",
        params={"start_date": "2026-12-01T00:00:00", "end_date": "2026-12-31T23:59:59"},
        headers=admin[1],
    )
    report = response.json()
    assert report["data"]["trips"] == 0
    assert report["data"]["revenue"] == 0.0
    assert set(report["filters"]) == {"start_date", "end_date"}


@pytest.mark.asyncio
async def test_financial_report_is_admin_only(client, fleet_owner):
    assert (await client.get("/v1/reports/financial", headers=fleet_owner[1])).status_code == 403


# TEST 3: Operations and vehicles
@pytest.mark.asyncio
async def test_operational_report(client, admin, self_trip, fleet_vehicle):
    response = await client.get("/v1/reports/operational", headers=admin[1])
    data = response.json()["data"]
    assert data["trips_by_status"] == {"booked": 1}
    assert data["total_vehicles"] == 2
    assert data["utilisation_percent"] == 50.0


@pytest.mark.asyncio
async def test_vehicle_performance(client, admin, fleet_owner, self_trip, fleet_vehicle, client_user):
    response = await client.get("/v1/reports/vehicle-performance", headers=admin[1])
    rows = {row["registration_number"]: row for row in response.json()["data"]["vehicles"]}
    assert rows["MH12AB1234"]["trips"] == 1
    assert rows["MH12AB1234"]["revenue"] == 10000.0
    assert rows["MH14CD5678"]["trips"] == 0

    response = await client.get("/v1/reports/vehicle-performance", headers=fleet_owner[1])
    assert [row["registration_number"] for row in response.json()["data"]["vehicles"]] == ["MH14CD5678"]

    assert (await client.get("/v1/reports/operational", headers=client_user[1])).status_code == 403
