"""
Integration tests for trip booking, visibility and the status lifecycle.
"""

import io

import pytest
from backend.app.core.timeutils import utcnow
from backend.app.models.enums import UserRole


def pdf_upload(name="pod.pdf"):
    return {"file": (name, io.BytesIO(b"%PDF-1.4 delivery note"), "application/pdf")}


async def vehicle_status(client, headers, vehicle_id):
    response = await client.get(f"/v1/vehicles/{vehicle_id}", headers=headers)
    return response.json()["status"]


async def driver_status(client, headers, driver_id):
    response = await client.get(f"/v1/users/{driver_id}", headers=headers)
    return response.json()["status"]


async def set_status(client, trip_id, status, headers):
    return await client.patch(f"/v1/trips/{trip_id}/status", json={"status": status}, headers=headers)


# TEST 1: Booking
@pytest.mark.asyncio
async def test_booking_numbers_and_snapshots(client, admin, self_trip, self_vehicle):
    assert self_trip["trip_number"] == f"TRP{utcnow():%y%m}0001"
    assert self_trip["status"] == "booked"
    assert self_trip["booked_at"] is not None
    assert self_trip["ownership_type"] == "self"
    assert self_trip["owner_name"] == "Back Office"
    assert self_trip["total_client_amount"] == 10000.0
    assert self_trip["total_commission"] == 0.0
    assert self_trip["clients"][0]["due_amount"] == 10000.0
    assert self_trip["clients"][0]["payment_status"] == "pending"
    assert self_trip["total_weight"] == 5.0

    assert await vehicle_status(client, admin[1], self_vehicle["id"]) == "booked"


@pytest.mark.asyncio
async def test_second_trip_number_increments(client, admin, client_user, fleet_trip, self_trip):
    assert fleet_trip["trip_number"].endswith("0001")
    assert self_trip["trip_number"].endswith("0002")


@pytest.mark.asyncio
async def test_fleet_trip_commission_split(fleet_trip, fleet_owner):
    assert fleet_trip["ownership_type"] == "fleet_owner"
    assert fleet_trip["owner_id"] == fleet_owner[0].id
    assert fleet_trip["commission_rate"] == 10.0
    assert fleet_trip["total_commission"] == 1000.0
    assert fleet_trip["vehicle_owner_amount"] == 9000.0
    assert fleet_trip["pod_balance"] == 9000.0
    assert fleet_trip["clients"][0]["commission"] == 1000.0


@pytest.mark.asyncio
async def test_multi_client_booking(client, admin, client_user, make_user, fleet_vehicle, trip_payload):
    second, _ = await make_user(UserRole.CLIENT)
    body = trip_payload(fleet_vehicle["id"], [client_user[0].id, second.id], rate=7500.5)

    response = await client.post("/v1/trips", json=body, headers=admin[1])
    assert response.status_code == 201
    trip = response.json()
    assert [c["position"] for c in trip["clients"]] == [0, 1]
    assert trip["total_client_amount"] == 15001.0
    assert trip["total_commission"] == 1500.1


@pytest.mark.asyncio
async def test_client_books_only_for_themselves(client, client_user, make_user, driver, self_vehicle, trip_payload):
    other, _ = await make_user(UserRole.CLIENT)
    _, headers = client_user

    response = await client.post(
        "/v1/trips", json=trip_payload(self_vehicle["id"], [other.id], driver_id=driver[0].id), headers=headers
    )
    assert response.status_code == 403

    response = await client.post(
        "/v1/trips", json=trip_payload(self_vehicle["id"], [client_user[0].id], driver_id=driver[0].id), headers=headers
    )
    assert response.status_code == 201
    assert response.json()["created_by"] == client_user[0].id


@pytest.mark.asyncio
async def test_booking_rejections(client, admin, client_user, driver, fleet_owner, self_vehicle, trip_payload):
    _, headers = admin

    # Self-owned vehicles need a driver
    response = await client.post("/v1/trips", json=trip_payload(self_vehicle["id"], [client_user[0].id]), headers=headers)
    assert response.status_code == 400

    # Only client users can be trip clients
    response = await client.post(
        "/v1/trips", json=trip_payload(self_vehicle["id"], [fleet_owner[0].id], driver_id=driver[0].id), headers=headers
    )
    assert response.status_code == 400
    assert "not an active client" in response.json()["message"]

    response = await client.post(
        "/v1/trips", json=trip_payload(9999, [client_user[0].id], driver_id=driver[0].id), headers=headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_busy_driver_cannot_be_booked(client, admin, client_user, driver, self_trip, trip_payload):
    _, headers = admin
    await set_status(client, self_trip["id"], "in_progress", headers)

    spare = await client.post("/v1/vehicles", json={
        "registration_number": "MH12XY9999", "capacity": 8, "ownership_type": "self",
    }, headers=headers)
    response = await client.post(
        "/v1/trips", json=trip_payload(spare.json()["id"], [client_user[0].id], driver_id=driver[0].id), headers=headers
    )
    assert response.status_code == 400
    assert "already booked" in response.json()["message"]


@pytest.mark.asyncio
async def test_booking_mails_assignee_and_clients(client, admin, client_user, driver, self_vehicle, trip_payload, mocker):
    send = mocker.patch("backend.app.services.trip_notifications.send_email", return_value=True)

    response = await client.post(
        "/v1/trips", json=trip_payload(self_vehicle["id"], [client_user[0].id], driver_id=driver[0].id), headers=admin[1]
    )
    assert response.status_code == 201

    sent = {(c.args[0], c.args[1]) for c in send.call_args_list}
    assert sent == {(driver[0].email, "trip_assigned"), (client_user[0].email, "trip_created")}
    assert send.call_args_list[0].args[2]["trip_number"] == response.json()["trip_number"]


# TEST 2: Visibility
@pytest.mark.asyncio
async def test_visibility_by_role(client, admin, client_user, driver, fleet_owner, make_user, self_trip, fleet_trip):
    outsider, outsider_headers = await make_user(UserRole.CLIENT)

    async def visible(headers):
        response = await client.get("/v1/trips", headers=headers)
        return {t["id"] for t in response.json()["trips"]}

    assert await visible(admin[1]) == {self_trip["id"], fleet_trip["id"]}
    assert await visible(client_user[1]) == {self_trip["id"], fleet_trip["id"]}
    assert await visible(driver[1]) == {self_trip["id"]}
    assert await visible(fleet_owner[1]) == {fleet_trip["id"]}
    assert await visible(outsider_headers) == set()

    response = await client.get(f"/v1/trips/{self_trip['id']}", headers=fleet_owner[1])
    assert response.status_code == 403
    response = await client.get(f"/v1/trips/{self_trip['id']}", headers=driver[1])
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_list_filters(client, admin, self_trip, fleet_trip):
    _, headers = admin
    response = await client.get("/v1/trips", params={"search": self_trip["trip_number"]}, headers=headers)
    assert [t["id"] for t in response.json()["trips"]] == [self_trip["id"]]

    response = await client.get("/v1/trips", params={"status": "completed"}, headers=headers)
    assert response.json()["total"] == 0

    response = await client.get("/v1/trips/my-trips", headers=headers)
    assert response.json()["total"] == 2


@pytest.mark.asyncio
async def test_missing_trip(client, admin):
    response = await client.get("/v1/trips/9999", headers=admin[1])
    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"


# TEST 3: Lifecycle
@pytest.mark.asyncio
async def test_full_lifecycle_with_driver_pod(client, admin, driver, self_trip, self_vehicle):
    trip_id = self_trip["id"]
    _, admin_headers = admin
    driver_user, driver_headers = driver

    response = await set_status(client, trip_id, "in_progress", driver_headers)
    assert response.status_code == 200
    assert response.json()["started_at"] is not None
    assert await driver_status(client, admin_headers, driver_user.id) == "booked"

    # No POD yet
    response = await set_status(client, trip_id, "completed", admin_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_POD_002"

    response = await client.post(f"/v1/trips/{trip_id}/pod", files=pdf_upload(), headers=driver_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "in_progress"
    assert response.json()["documents"]["proof_of_delivery"]["status"] == "pending"

    # Drivers cannot complete
    response = await set_status(client, trip_id, "completed", driver_headers)
    assert response.status_code == 403

    # Admin completion verifies the pending POD on the spot
    response = await set_status(client, trip_id, "completed", admin_headers)
    assert response.status_code == 200
    trip = response.json()
    assert trip["status"] == "completed"
    assert trip["documents"]["proof_of_delivery"]["status"] == "verified"
    assert await vehicle_status(client, admin_headers, self_vehicle["id"]) == "available"
    assert await driver_status(client, admin_headers, driver_user.id) == "available"

    response = await client.post(f"/v1/trips/{trip_id}/invoices", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["clients"][0]["invoice_number"] == f"INV-{self_trip['trip_number']}-1"

    assert (await set_status(client, trip_id, "billed", admin_headers)).status_code == 200
    response = await set_status(client, trip_id, "paid", admin_headers)
    assert response.status_code == 200
    assert response.json()["paid_at"] is not None

    # Terminal
    response = await set_status(client, trip_id, "cancelled", admin_headers)
    assert response.status_code == 400
    assert response.json()["error_code"] == "ERR_TRIP_001"


@pytest.mark.asyncio
async def test_invoices_need_completed_trip(client, admin, self_trip):
    response = await client.post(f"/v1/trips/{self_trip['id']}/invoices", headers=admin[1])
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_client_can_cancel(client, admin, client_user, fleet_trip, fleet_vehicle):
    response = await set_status(client, fleet_trip["id"], "cancelled", client_user[1])
    assert response.status_code == 200
    assert response.json()["cancelled_at"] is not None
    assert await vehicle_status(client, admin[1], fleet_vehicle["id"]) == "available"


@pytest.mark.asyncio
async def test_role_edges(client, fleet_owner, client_user, driver, fleet_trip, self_trip):
    # Clients cannot start trips
    response = await set_status(client, fleet_trip["id"], "in_progress", client_user[1])
    assert response.status_code == 403
    assert response.json()["error_code"] == "ERR_TRIP_002"

    # Fleet owners can start their own trips
    response = await set_status(client, fleet_trip["id"], "in_progress", fleet_owner[1])
    assert response.status_code == 200

    # ...but not someone else's
    response = await set_status(client, self_trip["id"], "in_progress", fleet_owner[1])
    assert response.status_code == 403

    # Skipping a step is never allowed
    response = await set_status(client, self_trip["id"], "billed", driver[1])
    assert response.status_code == 400


# TEST 4: Edits and deletion
@pytest.mark.asyncio
async def test_vehicle_swap_while_booked(client, admin, fleet_owner, self_trip, self_vehicle, fleet_vehicle):
    _, headers = admin

    response = await client.patch(
        f"/v1/trips/{self_trip['id']}", json={"vehicle_id": fleet_vehicle["id"], "notes": "switched"}, headers=headers
    )
    assert response.status_code == 200
    trip = response.json()
    assert trip["vehicle_id"] == fleet_vehicle["id"]
    assert trip["ownership_type"] == "fleet_owner"
    assert trip["owner_id"] == fleet_owner[0].id
    assert trip["total_commission"] == 1000.0
    assert trip["notes"] == "switched"

    assert await vehicle_status(client, headers, self_vehicle["id"]) == "available"
    assert await vehicle_status(client, headers, fleet_vehicle["id"]) == "booked"


@pytest.mark.asyncio
async def test_vehicle_swap_rejected_after_start(client, admin, self_trip, fleet_vehicle):
    _, headers = admin
    await set_status(client, self_trip["id"], "in_progress", headers)

    response = await client.patch(f"/v1/trips/{self_trip['id']}", json={"vehicle_id": fleet_vehicle["id"]}, headers=headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_delete_booked_trip_frees_vehicle(client, admin, self_trip, self_vehicle):
    _, headers = admin
    response = await client.delete(f"/v1/trips/{self_trip['id']}", headers=headers)
    assert response.status_code == 204

    assert (await client.get(f"/v1/trips/{self_trip['id']}", headers=headers)).status_code == 404
    assert await vehicle_status(client, headers, self_vehicle["id"]) == "available"


@pytest.mark.asyncio
async def test_delete_rules(client, admin, client_user, self_trip, fleet_trip):
    _, headers = admin
    await set_status(client, self_trip["id"], "in_progress", headers)
    response = await client.delete(f"/v1/trips/{self_trip['id']}", headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Only booked trips can be deleted"

    await client.post("/v1/payments", json={
        "trip_id": fleet_trip["id"],
        "amount": 1000,
        "payment_type": "client_payment",
        "paid_by_id": client_user[0].id,
        "payment_method": "upi",
    }, headers=headers)
    response = await client.delete(f"/v1/trips/{fleet_trip['id']}", headers=headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_trip_document_upload(client, driver, self_trip):
    response = await client.post(
        f"/v1/trips/{self_trip['id']}/documents",
        data={"type": "loading_receipt"},
        files=pdf_upload("lr.pdf"),
        headers=driver[1],
    )
    assert response.status_code == 200
    assert response.json()["documents"]["loading_receipt"]["url"].endswith(".pdf")


# TEST 5: Trip reports
@pytest.mark.asyncio
async def test_stats_and_dashboard(client, admin, client_user, self_trip, fleet_trip):
    stats = await client.get("/v1/trips/stats", headers=admin[1])
    assert stats.status_code == 200
    data = stats.json()
    assert data["total_trips"] == 2
    assert data["by_status"]["booked"]["count"] == 2
    assert data["total_revenue"] == 20000.0
    assert data["total_commission"] == 1000.0

    dashboard = await client.get("/v1/trips/dashboard", headers=client_user[1])
    assert dashboard.json()["total_due"] == 20000.0
    assert dashboard.json()["by_status"]["booked"] == 2


@pytest.mark.asyncio
async def test_driver_summary(client, admin, driver, self_trip):
    await client.post(
        f"/v1/trips/{self_trip['id']}/self-advances",
        json={"amount": 1500, "payment_for": "driver"},
        headers=admin[1],
    )
    response = await client.get("/v1/trips/driver-summary", headers=driver[1])
    assert response.status_code == 200
    data = response.json()
    assert data["total_trips"] == 1
    assert data["active_trips"] == 1
    assert data["total_advances"] == 1500.0


@pytest.mark.asyncio
async def test_client_argestment_report_and_payout(client, admin, client_user, self_trip):
    _, headers = admin
    await client.patch(f"/v1/trips/{self_trip['id']}/clients/0", json={"argestment": 750}, headers=headers)

    rows = await client.get("/v1/trips/client-argestment", headers=headers)
    assert rows.status_code == 200
    assert rows.json()[0]["argestment"] == 750.0

    paid = await client.post(
        "/v1/trips/client-argestment/pay", json={"client_id": client_user[0].id, "amount": 750}, headers=headers
    )
    assert paid.status_code == 200
    assert paid.json()["total_pay_argestment"] == 750.0


@pytest.mark.asyncio
async def test_fleet_owner_statement(client, admin, fleet_owner, make_user, fleet_trip):
    owner, owner_headers = fleet_owner

    response = await client.post(
        "/v1/trips/fleet-owner-statement", json={"fleet_owner_id": owner.id}, headers=owner_headers
    )
    assert response.status_code == 200
    data = response.json()
    assert len(data["trips"]) == 1
    assert data["total_amount"] == 9000.0
    assert data["total_pod_pending"] == 9000.0

    response = await client.post(
        "/v1/trips/fleet-owner-statement",
        json={"fleet_owner_id": owner.id, "filter_type": "with_pod"},
        headers=admin[1],
    )
    assert response.json()["trips"] == []

    other, other_headers = await make_user(UserRole.FLEET_OWNER)
    response = await client.post(
        "/v1/trips/fleet-owner-statement", json={"fleet_owner_id": owner.id}, headers=other_headers
    )
    assert response.status_code == 403
