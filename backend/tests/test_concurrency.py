"""
Concurrency Tests.

Validates that concurrent callers never receive the same number and that a
vehicle cannot be booked twice, even when two bookings race.
"""

import asyncio

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from backend.app.core.exceptions import BusinessRuleError
from backend.app.db.session import Base
from backend.app.domain.trips.trip_service import TripService
from backend.app.models.counter import Counter
from backend.app.models.vehicle import Vehicle
from backend.app.models.vehicle_enums import VehicleStatus
from backend.app.services.counter_service import CounterService


@pytest.fixture
async def counter_sessions(tmp_path):
    """File-backed database with one connection per session, so callers really race."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'counters.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=[Counter.__table__])
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest.fixture
async def fleet_sessions(tmp_path):
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'fleet.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


async def take_number(sessions, name: str) -> int:
    async with sessions() as session:
        number = await CounterService.get_next(session, name, prefix="PAY", pad_length=6)
        await session.commit()
        return number.sequence


@pytest.mark.asyncio
async def test_concurrent_sequence_numbers_are_unique(counter_sessions):
    """Parallel get_next calls on one counter hand out distinct, gap-free numbers."""
    async with counter_sessions() as session:
        await CounterService.initialize_counter(session, "pay")
        await session.commit()

    results = await asyncio.gather(*(take_number(counter_sessions, "pay") for _ in range(10)))

    assert len(set(results)) == 10
    assert sorted(results) == list(range(1, 11))


@pytest.mark.asyncio
async def test_concurrent_first_use_creates_counter_once(counter_sessions):
    """Two callers racing to create a counter still get 1 and 2."""
    results = await asyncio.gather(take_number(counter_sessions, "race"), take_number(counter_sessions, "race"))
    assert sorted(results) == [1, 2]


@pytest.mark.asyncio
async def test_vehicle_cannot_be_double_booked(client, admin, client_user, driver, make_user, self_vehicle, trip_payload):
    """Second booking on a booked vehicle fails instead of sharing it."""
    _, headers = admin
    other_driver, _ = await make_user(driver[0].role)

    first = await client.post(
        "/v1/trips",
        json=trip_payload(self_vehicle["id"], [client_user[0].id], driver_id=driver[0].id),
        headers=headers,
    )
    second = await client.post(
        "/v1/trips",
        json=trip_payload(self_vehicle["id"], [client_user[0].id], driver_id=other_driver.id),
        headers=headers,
    )

    assert first.status_code == 201
    assert second.status_code == 400
    assert "not available" in second.json()["message"]


async def try_reserve(sessions, vehicle_id: int, hold: float) -> bool:
    async with sessions() as session:
        try:
            await TripService.reserve_vehicle(session, vehicle_id)
        except BusinessRuleError:
            return False
        # Keep the transaction open so the other caller has to wait on the row
        await asyncio.sleep(hold)
        await session.commit()
        return True


@pytest.mark.asyncio
async def test_racing_reservations_book_vehicle_once(fleet_sessions):
    """Two bookings that both saw the vehicle available: exactly one wins."""
    async with fleet_sessions() as session:
        vehicle = Vehicle(registration_number="MH12RC0001", capacity=10)
        session.add(vehicle)
        await session.commit()
        vehicle_id = vehicle.id

    results = await asyncio.gather(
        try_reserve(fleet_sessions, vehicle_id, hold=0.2),
        try_reserve(fleet_sessions, vehicle_id, hold=0.2),
    )
    assert sorted(results) == [False, True]

    async with fleet_sessions() as session:
        assert (await session.get(Vehicle, vehicle_id)).status == VehicleStatus.BOOKED


@pytest.mark.asyncio
async def test_driver_with_booked_trip_cannot_take_another(client, admin, client_user, driver, self_trip, trip_payload):
    _, headers = admin
    spare = await client.post("/v1/vehicles", json={
        "registration_number": "MH12XY7777", "capacity": 8, "ownership_type": "self",
    }, headers=headers)

    response = await client.post(
        "/v1/trips", json=trip_payload(spare.json()["id"], [client_user[0].id], driver_id=driver[0].id), headers=headers
    )
    assert response.status_code == 400
    assert "already booked" in response.json()["message"]

    vehicle = await client.get(f"/v1/vehicles/{spare.json()['id']}", headers=headers)
    assert vehicle.json()["status"] == "available"
