"""
Integration tests for payments: numbering, lifecycle and visibility.
"""

import pytest
from backend.app.models.enums import UserRole


def payment_body(trip_id, **extra):
    body = {"trip_id": trip_id, "amount": 5000, "payment_type": "client_payment"}
    body.update(extra)
    return body


# TEST 1: Recording
@pytest.mark.asyncio
async def test_payments_are_numbered_in_order(client, admin, client_user, self_trip):
    _, headers = admin
    numbers = []
    for _ in range(3):
        response = await client.post(
            "/v1/payments", json=payment_body(self_trip["id"], paid_by_id=client_user[0].id), headers=headers
        )
        assert response.status_code == 201
        numbers.append(response.json()["payment_number"])

    assert numbers == ["PAY000001", "PAY000002", "PAY000003"]


@pytest.mark.asyncio
async def test_payment_starts_pending_with_tax_breakdown(client, admin, fleet_owner, fleet_trip):
    response = await client.post("/v1/payments", json=payment_body(
        fleet_trip["id"],
        payment_type="fleet_owner_payment",
        paid_to_id=fleet_owner[0].id,
        payment_method="bank_transfer",
        tax_details={"gst": 900, "tds": 100},
    ), headers=admin[1])
    assert response.status_code == 201
    payment = response.json()
    assert payment["status"] == "pending"
    assert payment["tax_details"] == {"gst": 900.0, "tds": 100.0, "net_amount": 5800.0}


@pytest.mark.asyncio
async def test_payment_references_must_exist(client, admin, self_trip):
    _, headers = admin
    assert (await client.post("/v1/payments", json=payment_body(9999), headers=headers)).status_code == 404

    response = await client.post("/v1/payments", json=payment_body(self_trip["id"], paid_by_id=9999), headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "User 9999 not found"


@pytest.mark.asyncio
async def test_only_admins_record_payments(client, client_user, self_trip):
    response = await client.post("/v1/payments", json=payment_body(self_trip["id"]), headers=client_user[1])
    assert response.status_code == 403


# TEST 2: Lifecycle
@pytest.mark.asyncio
async def test_approve_locks_payment(client, admin, self_trip):
    _, headers = admin
    created = await client.post("/v1/payments", json=payment_body(self_trip["id"]), headers=headers)
    payment_id = created.json()["id"]

    approved = await client.patch(f"/v1/payments/{payment_id}/approve", headers=headers)
    assert approved.status_code == 200
    data = approved.json()
    assert data["status"] == "completed"
    assert data["approved_by"] == admin[0].id
    assert data["payment_date"] is not None

    assert (await client.patch(f"/v1/payments/{payment_id}/approve", headers=headers)).status_code == 400
    assert (await client.patch(f"/v1/payments/{payment_id}", json={"notes": "late"}, headers=headers)).status_code == 400
    assert (await client.patch(f"/v1/payments/{payment_id}/cancel", json={"reason": "dup"}, headers=headers)).status_code == 400
    assert (await client.delete(f"/v1/payments/{payment_id}", headers=headers)).status_code == 400


@pytest.mark.asyncio
async def test_money_fields_are_immutable(client, admin, self_trip):
    _, headers = admin
    created = await client.post("/v1/payments", json=payment_body(self_trip["id"]), headers=headers)
    payment_id = created.json()["id"]

    response = await client.patch(f"/v1/payments/{payment_id}", json={"amount": 1, "trip_id": 2}, headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot modify amount, trip_id after creation"

    response = await client.patch(
        f"/v1/payments/{payment_id}",
        json={"payment_method": "cheque", "transaction_details": {"cheque_number": "004512"}},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["payment_method"] == "cheque"


@pytest.mark.asyncio
async def test_cancel_keeps_reason(client, admin, self_trip):
    _, headers = admin
    created = await client.post("/v1/payments", json=payment_body(self_trip["id"], notes="Cash at depot"), headers=headers)
    payment_id = created.json()["id"]

    assert (await client.patch(f"/v1/payments/{payment_id}/cancel", json={"reason": ""}, headers=headers)).status_code == 422

    response = await client.patch(f"/v1/payments/{payment_id}/cancel", json={"reason": "Duplicate entry"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["notes"] == "Cash at depot\nCancelled: Duplicate entry"

    again = await client.patch(f"/v1/payments/{payment_id}/cancel", json={"reason": "again"}, headers=headers)
    assert again.status_code == 400


@pytest.mark.asyncio
async def test_delete_pending_payment(client, admin, self_trip):
    _, headers = admin
    created = await client.post("/v1/payments", json=payment_body(self_trip["id"]), headers=headers)
    payment_id = created.json()["id"]

    assert (await client.delete(f"/v1/payments/{payment_id}", headers=headers)).status_code == 204
    assert (await client.get(f"/v1/payments/{payment_id}", headers=headers)).status_code == 404


# TEST 3: Reads
@pytest.mark.asyncio
async def test_payment_visibility(client, admin, client_user, make_user, self_trip):
    _, headers = admin
    created = await client.post(
        "/v1/payments", json=payment_body(self_trip["id"], paid_by_id=client_user[0].id), headers=headers
    )
    await client.post("/v1/payments", json=payment_body(self_trip["id"]), headers=headers)
    payment_id = created.json()["id"]

    mine = await client.get("/v1/payments", headers=client_user[1])
    assert [p["id"] for p in mine.json()["payments"]] == [payment_id]
    assert (await client.get(f"/v1/payments/{payment_id}", headers=client_user[1])).status_code == 200

    _, stranger_headers = await make_user(UserRole.CLIENT)
    assert (await client.get(f"/v1/payments/{payment_id}", headers=stranger_headers)).status_code == 403
    assert (await client.get("/v1/payments", headers=headers)).json()["total"] == 2


@pytest.mark.asyncio
async def test_stats_and_outstanding(client, admin, self_trip):
    _, headers = admin
    overdue = await client.post(
        "/v1/payments", json=payment_body(self_trip["id"], amount=3000, due_date="2020-01-01T00:00:00"), headers=headers
    )
    approved = await client.post("/v1/payments", json=payment_body(self_trip["id"], amount=2000), headers=headers)
    await client.patch(f"/v1/payments/{approved.json()['id']}/approve", headers=headers)

    stats = await client.get("/v1/payments/stats", headers=headers)
    data = stats.json()
    assert data["total_payments"] == 2
    assert data["total_amount"] == 5000.0
    assert data["by_status"]["pending"] == {"count": 1, "amount": 3000.0}
    assert data["by_status"]["completed"] == {"count": 1, "amount": 2000.0}
    assert data["by_type"]["client_payment"]["count"] == 2

    outstanding = await client.get("/v1/payments/outstanding", headers=headers)
    assert [p["id"] for p in outstanding.json()["payments"]] == [overdue.json()["id"]]
