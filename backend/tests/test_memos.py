"""
Integration tests for collection and balance memos.
"""

import pytest
from backend.app.models.enums import UserRole


# TEST 1: Numbering
@pytest.mark.asyncio
async def test_memo_counters_are_independent(client, admin, client_user, self_trip):
    _, headers = admin
    trip_id = self_trip["id"]

    first = await client.post(f"/v1/trips/{trip_id}/memos/collection", json={
        "amount": 4000, "client_id": client_user[0].id, "payment_mode": "upi",
    }, headers=headers)
    second = await client.post(f"/v1/trips/{trip_id}/memos/collection", json={"amount": 1000}, headers=headers)
    balance = await client.post(f"/v1/trips/{trip_id}/memos/balance", json={
        "amount": 5000, "due_date": "2026-12-01T00:00:00",
    }, headers=headers)

    assert first.status_code == 201
    assert first.json()["memo_number"] == "CM000001"
    assert first.json()["memo_type"] == "collection"
    assert second.json()["memo_number"] == "CM000002"
    assert balance.json()["memo_number"] == "BM000001"
    assert balance.json()["memo_type"] == "balance"


@pytest.mark.asyncio
async def test_memo_client_must_be_on_trip(client, admin, make_user, self_trip):
    outsider, _ = await make_user(UserRole.CLIENT)
    response = await client.post(
        f"/v1/trips/{self_trip['id']}/memos/collection", json={"amount": 100, "client_id": outsider.id}, headers=admin[1]
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Client is not part of this trip"


@pytest.mark.asyncio
async def test_memo_for_unknown_trip(client, admin):
    response = await client.post("/v1/trips/9999/memos/balance", json={"amount": 100}, headers=admin[1])
    assert response.status_code == 404


# TEST 2: Listing and edits
@pytest.mark.asyncio
async def test_list_by_type_with_total(client, admin, client_user, fleet_owner, self_trip):
    _, headers = admin
    trip_id = self_trip["id"]
    await client.post(f"/v1/trips/{trip_id}/memos/collection", json={"amount": 2500}, headers=headers)
    await client.post(f"/v1/trips/{trip_id}/memos/collection", json={"amount": 1500}, headers=headers)
    await client.post(f"/v1/trips/{trip_id}/memos/balance", json={"amount": 6000}, headers=headers)

    collections = await client.get(f"/v1/trips/{trip_id}/memos/collection", headers=client_user[1])
    assert collections.status_code == 200
    assert collections.json()["total_amount"] == 4000.0
    assert len(collections.json()["memos"]) == 2

    balances = await client.get(f"/v1/trips/{trip_id}/memos/balance", headers=headers)
    assert balances.json()["total_amount"] == 6000.0

    assert (await client.get(f"/v1/trips/{trip_id}/memos/balance", headers=fleet_owner[1])).status_code == 403


@pytest.mark.asyncio
async def test_update_and_delete_memo(client, admin, self_trip, fleet_trip):
    _, headers = admin
    created = await client.post(f"/v1/trips/{self_trip['id']}/memos/balance", json={"amount": 800}, headers=headers)
    memo_id = created.json()["id"]

    updated = await client.patch(
        f"/v1/trips/{self_trip['id']}/memos/{memo_id}", json={"amount": 850, "remarks": "Revised"}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["amount"] == 850.0
    assert updated.json()["memo_number"] == "BM000001"

    # A memo is addressed through its own trip only
    wrong_trip = await client.delete(f"/v1/trips/{fleet_trip['id']}/memos/{memo_id}", headers=headers)
    assert wrong_trip.status_code == 404

    assert (await client.delete(f"/v1/trips/{self_trip['id']}/memos/{memo_id}", headers=headers)).status_code == 204
    listing = await client.get(f"/v1/trips/{self_trip['id']}/memos/balance", headers=headers)
    assert listing.json()["memos"] == []


@pytest.mark.asyncio
async def test_memos_are_admin_written(client, client_user, self_trip):
    response = await client.post(
        f"/v1/trips/{self_trip['id']}/memos/collection", json={"amount": 100}, headers=client_user[1]
    )
    assert response.status_code == 403
