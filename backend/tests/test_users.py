"""
Integration tests for user management.
"""

import io

import pytest
from backend.app.models.enums import UserRole


# TEST 1: Admin CRUD
@pytest.mark.asyncio
async def test_admin_creates_users_with_role_defaults(client, admin):
    _, headers = admin

    owner = await client.post("/v1/users", json={
        "name": "Verma Carriers",
        "email": "verma@example.com",
        "password": "password123",
        "phone": "9000000001",
        "role": "fleet_owner",
    }, headers=headers)
    assert owner.status_code == 201
    assert owner.json()["commission_rate"] == 10.0

    other_admin = await client.post("/v1/users", json={
        "name": "Second Admin",
        "email": "ops@example.com",
        "password": "password123",
        "phone": "9000000002",
        "role": "admin",
    }, headers=headers)
    assert other_admin.status_code == 201
    assert other_admin.json()["role"] == "admin"

    duplicate = await client.post("/v1/users", json={
        "name": "Copy",
        "email": "verma@example.com",
        "password": "password123",
        "phone": "9000000003",
    }, headers=headers)
    assert duplicate.status_code == 400


@pytest.mark.asyncio
async def test_list_filters_and_stats(client, admin, driver, client_user, fleet_owner):
    _, headers = admin

    response = await client.get("/v1/users", params={"role": "driver"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["users"][0]["name"] == "Ramesh"

    response = await client.get("/v1/users", params={"search": "acme"}, headers=headers)
    assert [u["name"] for u in response.json()["users"]] == ["Acme Traders"]

    stats = await client.get("/v1/users/stats", headers=headers)
    assert stats.status_code == 200
    data = stats.json()
    assert data["total"] == 4
    assert data["by_role"]["fleet_owner"] == 1
    assert data["inactive"] == 0


@pytest.mark.asyncio
async def test_update_user(client, admin, driver):
    _, headers = admin
    user, _ = driver

    response = await client.patch(
        f"/v1/users/{user.id}",
        json={"status": "booked", "license_number": "MH1420210009999"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "booked"
    assert response.json()["license_number"] == "MH1420210009999"


@pytest.mark.asyncio
async def test_get_missing_user(client, admin):
    response = await client.get("/v1/users/9999", headers=admin[1])
    assert response.status_code == 404
    assert response.json()["message"] == "User not found"


# TEST 2: Delete rules
@pytest.mark.asyncio
async def test_admin_cannot_delete_or_deactivate_self(client, admin):
    user, headers = admin
    assert (await client.delete(f"/v1/users/{user.id}", headers=headers)).status_code == 400
    assert (await client.patch(f"/v1/users/{user.id}/deactivate", headers=headers)).status_code == 400


@pytest.mark.asyncio
async def test_user_with_trips_cannot_be_deleted(client, admin, client_user, self_trip):
    _, headers = admin
    response = await client.delete(f"/v1/users/{client_user[0].id}", headers=headers)
    assert response.status_code == 400
    assert "deactivate" in response.json()["message"]


@pytest.mark.asyncio
async def test_delete_user(client, admin, make_user):
    _, headers = admin
    user, _ = await make_user(UserRole.CLIENT)

    response = await client.delete(f"/v1/users/{user.id}", headers=headers)
    assert response.status_code == 204
    assert (await client.get(f"/v1/users/{user.id}", headers=headers)).status_code == 404


# TEST 3: Self-service profile
@pytest.mark.asyncio
async def test_profile_update(client, client_user):
    _, headers = client_user

    response = await client.patch(
        "/v1/users/profile",
        json={"phone": "9111111111", "address": {"city": "Nashik", "pincode": "422001"}},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["phone"] == "9111111111"
    assert response.json()["address"]["city"] == "Nashik"

    profile = await client.get("/v1/users/profile", headers=headers)
    assert profile.json()["phone"] == "9111111111"


@pytest.mark.asyncio
async def test_profile_cannot_change_role(client, client_user):
    _, headers = client_user
    response = await client.patch("/v1/users/profile", json={"role": "admin"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["role"] == "client"


@pytest.mark.asyncio
async def test_profile_photo_upload(client, driver):
    _, headers = driver
    files = {"file": ("me.png", io.BytesIO(b"\x89PNG fake"), "image/png")}

    response = await client.post("/v1/users/profile/photo", files=files, headers=headers)
    assert response.status_code == 200
    assert response.json()["profile_photo"].startswith("/uploads/profiles/")


@pytest.mark.asyncio
async def test_profile_photo_rejects_other_types(client, driver):
    _, headers = driver
    files = {"file": ("notes.txt", io.BytesIO(b"hello"), "text/plain")}

    response = await client.post("/v1/users/profile/photo", files=files, headers=headers)
    assert response.status_code == 400


# TEST 4: Per-user ledger
@pytest.mark.asyncio
async def test_user_ledger_lists_trip_entries(client, admin, client_user, self_trip):
    _, headers = admin
    trip_id = self_trip["id"]
    await client.post(f"/v1/trips/{trip_id}/clients/0/advances", json={"amount": 2500}, headers=headers)

    response = await client.get(f"/v1/users/{client_user[0].id}/ledger", headers=client_user[1])
    assert response.status_code == 200
    data = response.json()
    assert data["total_amount"] == 2500.0
    assert data["entries"][0]["kind"] == "client_advance"
