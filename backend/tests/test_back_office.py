"""
Integration tests for the smaller back office resources: cities, general
expenses, standalone advances and driver calculations.
"""

import pytest
from backend.app.models.enums import UserRole


# TEST 1: Cities
@pytest.mark.asyncio
async def test_add_and_list_cities(client, admin, driver):
    _, headers = admin

    response = await client.post("/v1/cities/add", json={"city": " Nagpur ", "state": "Maharashtra", "pincode": "440001"}, headers=headers)
    assert response.status_code == 201
    assert response.json()["city"] == "Nagpur"

    await client.post("/v1/cities/add", json={"city": "Ahmedabad", "state": "Gujarat"}, headers=headers)

    duplicate = await client.post("/v1/cities/add", json={"city": "nagpur", "state": "MAHARASHTRA"}, headers=headers)
    assert duplicate.status_code == 400

    # Same name in another state is a different city
    other = await client.post("/v1/cities/add", json={"city": "Nagpur", "state": "Other"}, headers=headers)
    assert other.status_code == 201

    listing = await client.get("/v1/cities/all", headers=driver[1])
    assert [(c["city"], c["state"]) for c in listing.json()] == [
        ("Ahmedabad", "Gujarat"), ("Nagpur", "Maharashtra"), ("Nagpur", "Other"),
    ]


@pytest.mark.asyncio
async def test_city_rules(client, admin, driver):
    response = await client.post("/v1/cities/add", json={"city": "Surat"}, headers=driver[1])
    assert response.status_code == 403

    response = await client.post("/v1/cities/add", json={"city": "Surat", "pincode": "39"}, headers=admin[1])
    assert response.status_code == 422

    response = await client.post("/v1/cities/add", json={"city": "Surat"}, headers=admin[1])
    assert response.json()["state"] == "NA"


# TEST 2: General expenses
@pytest.mark.asyncio
async def test_expense_crud(client, admin, self_vehicle):
    _, headers = admin

    office = await client.post("/v1/expenses/create", json={"amount": 1500, "type": "rent"}, headers=headers)
    assert office.status_code == 201
    assert office.json()["vehicle_id"] is None

    truck = await client.post(
        "/v1/expenses/create", json={"amount": 800, "type": "tyres", "vehicle_id": self_vehicle["id"]}, headers=headers
    )
    expense_id = truck.json()["id"]

    edited = await client.put(f"/v1/expenses/edit/{expense_id}", json={"amount": 950, "notes": "Front pair"}, headers=headers)
    assert edited.status_code == 200
    assert edited.json()["amount"] == 950.0
    assert edited.json()["type"] == "tyres"

    by_vehicle = await client.get("/v1/expenses/getAll", params={"vehicle_id": self_vehicle["id"]}, headers=headers)
    assert [e["id"] for e in by_vehicle.json()] == [expense_id]
    assert len((await client.get("/v1/expenses/getAll", headers=headers)).json()) == 2

    assert (await client.delete(f"/v1/expenses/{expense_id}", headers=headers)).status_code == 204
    assert (await client.put(f"/v1/expenses/edit/{expense_id}", json={"amount": 1}, headers=headers)).status_code == 404


@pytest.mark.asyncio
async def test_expense_rules(client, admin, fleet_owner):
    response = await client.post("/v1/expenses/create", json={"amount": 100, "type": "fuel", "vehicle_id": 9999}, headers=admin[1])
    assert response.status_code == 404

    response = await client.post("/v1/expenses/create", json={"amount": 0, "type": "fuel"}, headers=admin[1])
    assert response.status_code == 422

    response = await client.get("/v1/expenses/getAll", headers=fleet_owner[1])
    assert response.status_code == 403


# TEST 3: Standalone advances
@pytest.mark.asyncio
async def test_advances_move_running_total(client, admin, driver):
    _, headers = admin
    driver_user, driver_headers = driver

    first = await client.post("/v1/advances", json={"user_id": driver_user.id, "amount": 3000, "reason": "Diwali"}, headers=headers)
    assert first.status_code == 201
    assert first.json()["type"] == "credit"
    await client.post("/v1/advances", json={"user_id": driver_user.id, "amount": 1000}, headers=headers)

    profile = await client.get(f"/v1/users/{driver_user.id}", headers=headers)
    assert profile.json()["advance_amount"] == 4000.0

    own = await client.get("/v1/advances", headers=driver_headers)
    assert own.json()["total_amount"] == 4000.0
    assert len(own.json()["advances"]) == 2

    assert (await client.delete(f"/v1/advances/{first.json()['id']}", headers=headers)).status_code == 204
    profile = await client.get(f"/v1/users/{driver_user.id}", headers=headers)
    assert profile.json()["advance_amount"] == 1000.0


@pytest.mark.asyncio
async def test_advances_are_private(client, admin, driver, make_user):
    other, other_headers = await make_user(UserRole.DRIVER)
    await client.post("/v1/advances", json={"user_id": driver[0].id, "amount": 500}, headers=admin[1])

    response = await client.get("/v1/advances", params={"user_id": driver[0].id}, headers=other_headers)
    assert response.status_code == 403

    response = await client.get("/v1/advances", headers=other_headers)
    assert response.json() == {"advances": [], "total_amount": 0.0}

    response = await client.get("/v1/advances", headers=admin[1])
    assert response.json()["total_amount"] == 500.0


@pytest.mark.asyncio
async def test_advance_for_unknown_user_or_trip(client, admin, driver):
    _, headers = admin
    assert (await client.post("/v1/advances", json={"user_id": 9999, "amount": 10}, headers=headers)).status_code == 404
    response = await client.post("/v1/advances", json={"user_id": driver[0].id, "trip_id": 9999, "amount": 10}, headers=headers)
    assert response.status_code == 404


# TEST 4: Driver calculations
@pytest.mark.asyncio
async def test_driver_calculation_totals_and_odometer(client, admin, driver, self_vehicle):
    _, headers = admin

    response = await client.post("/v1/driver-calculations", json={
        "driver_id": driver[0].id,
        "vehicle_id": self_vehicle["id"],
        "old_km": 10000,
        "new_km": 10500,
        "per_km_rate": 10,
        "pichla": 200,
        "total_expenses": 500,
        "total_advances": 1000,
    }, headers=headers)
    assert response.status_code == 201
    calc = response.json()
    assert calc["total_km"] == 500.0
    assert calc["km_value"] == 5000.0
    assert calc["total"] == 5700.0
    assert calc["due"] == 4700.0

    vehicle = (await client.get(f"/v1/vehicles/{self_vehicle['id']}", headers=headers)).json()
    assert vehicle["current_kilometers"] == 10500.0
    assert vehicle["next_service_at_km"] == 15500.0

    updated = await client.patch(f"/v1/driver-calculations/{calc['id']}", json={"per_km_rate": 12}, headers=headers)
    assert updated.json()["km_value"] == 6000.0
    assert updated.json()["due"] == 5700.0


@pytest.mark.asyncio
async def test_driver_calculation_rules(client, admin, driver, client_user):
    _, headers = admin
    response = await client.post("/v1/driver-calculations", json={"driver_id": client_user[0].id}, headers=headers)
    assert response.status_code == 400

    response = await client.post(
        "/v1/driver-calculations", json={"driver_id": driver[0].id, "old_km": 500, "new_km": 100}, headers=headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "new_km cannot be lower than old_km"


@pytest.mark.asyncio
async def test_driver_reads_own_calculations(client, admin, driver, make_user):
    _, headers = admin
    created = await client.post("/v1/driver-calculations", json={"driver_id": driver[0].id, "new_km": 120, "per_km_rate": 5}, headers=headers)
    calc_id = created.json()["id"]

    own = await client.get(f"/v1/driver-calculations/driver/{driver[0].id}", headers=driver[1])
    assert [c["id"] for c in own.json()] == [calc_id]
    assert (await client.get(f"/v1/driver-calculations/{calc_id}", headers=driver[1])).status_code == 200

    _, other_headers = await make_user(UserRole.DRIVER)
    assert (await client.get(f"/v1/driver-calculations/{calc_id}", headers=other_headers)).status_code == 403
    assert (await client.get("/v1/driver-calculations", headers=other_headers)).status_code == 403

    assert (await client.delete(f"/v1/driver-calculations/{calc_id}", headers=headers)).status_code == 204
    assert (await client.get(f"/v1/driver-calculations/{calc_id}", headers=headers)).status_code == 404
