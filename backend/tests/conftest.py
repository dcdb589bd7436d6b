"""
Centralized Test Configuration.
"""

import itertools
import os
import tempfile

# Settings are read at import time; point them at throwaway resources first
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="fleet-uploads-"))
os.environ.setdefault("EMAIL_ENABLED", "false")

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.db.session import get_db, Base
from backend.app.core.redis_client import get_redis
from backend.app.core.jwt import create_access_token
from backend.app.core.security import get_password_hash
from backend.app.models.user import User
from backend.app.models.enums import UserRole
import backend.app.core.redis_client as redis_client_module

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Event handler to enable foreign keys for SQLite
from sqlalchemy import event
from sqlalchemy.pool import Pool

@event.listens_for(Pool, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    """Enable foreign key constraints for SQLite."""
    if 'sqlite' in str(type(dbapi_conn)):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

engine = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        if self._closed:
            return None
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        if self._closed:
            return False
        self.store[key] = value
        return True

    async def delete(self, key):
        if self._closed:
            return 0
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        if self._closed:
            return 0
        return 1 if key in self.store else 0

    async def incr(self, key):
        self.store[key] = int(self.store.get(key, 0)) + 1
        return self.store[key]

    async def expire(self, key, seconds):
        return key in self.store

    async def flushdb(self):
        if not self._closed:
            self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


# Redis Fixture (Session Scope)
@pytest.fixture(scope="session")
def redis_client_session():
    return MockRedis()


@pytest.fixture(scope="session", autouse=True)
def apply_overrides(redis_client_session):
    """Apply overrides once for the session.
    Global override is safer here than per-test override to avoid app state flux.
    """

    # Patch the global redis client used by the middleware and token blacklist
    original_client = redis_client_module.redis_client
    redis_client_module.redis_client = redis_client_session

    async def override_get_db():
        async with TestingSessionLocal() as session:
            yield session

    async def override_get_redis():
        return redis_client_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis
    yield

    # Restore and clear
    app.dependency_overrides = {}
    redis_client_module.redis_client = original_client


@pytest.fixture(autouse=True)
async def setup_database(redis_client_session):
    """Create tables before each test function and drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    redis_client_session._closed = False
    await redis_client_session.flushdb()

    yield

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client():
    """Async client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# Shared session for fixture data creation
@pytest.fixture
async def db_session():
    async with TestingSessionLocal() as session:
        yield session


# ----------------------------------------------------------------------
# Users and tokens
# ----------------------------------------------------------------------

_email_seq = itertools.count(1)


def bearer(user: User) -> dict:
    token = create_access_token(data={"sub": user.email, "user_id": user.id, "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def make_user(db_session):
    """Factory: insert a user directly and return (user, auth headers)."""
    async def _make(role: UserRole, name: str = None, password: str = "password123", **extra):
        n = next(_email_seq)
        user = User(
            name=name or f"{role.value.title()} {n}",
            email=extra.pop("email", f"{role.value}{n}@example.com"),
            hashed_password=get_password_hash(password),
            role=role,
            phone=extra.pop("phone", "9876543210"),
            is_active=extra.pop("is_active", True),
            **extra,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user, bearer(user)
    return _make


@pytest.fixture
async def admin(make_user):
    return await make_user(UserRole.ADMIN, name="Back Office")


@pytest.fixture
async def fleet_owner(make_user):
    return await make_user(UserRole.FLEET_OWNER, name="Sharma Transport", commission_rate=10.0)


@pytest.fixture
async def client_user(make_user):
    return await make_user(UserRole.CLIENT, name="Acme Traders", credit_terms=30)


@pytest.fixture
async def driver(make_user):
    return await make_user(UserRole.DRIVER, name="Ramesh", license_number="MH1220200001234")


# ----------------------------------------------------------------------
# Fleet and trips
# ----------------------------------------------------------------------

@pytest.fixture
async def self_vehicle(client, admin):
    _, headers = admin
    response = await client.post("/v1/vehicles", json={
        "registration_number": "MH12AB1234",
        "capacity": 10,
        "ownership_type": "self",
        "current_kilometers": 10000,
        "service_interval_km": 5000,
    }, headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def fleet_vehicle(client, admin, fleet_owner):
    _, headers = admin
    owner, _ = fleet_owner
    response = await client.post("/v1/vehicles", json={
        "registration_number": "MH14CD5678",
        "capacity": 16,
        "ownership_type": "fleet_owner",
        "owner_id": owner.id,
        "commission_rate": 10,
    }, headers=headers)
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def trip_payload():
    """Factory for a booking body; one client row per id in client_ids."""
    def _build(vehicle_id: int, client_ids, driver_id: int = None, rate: float = 10000, **extra):
        body = {
            "vehicle_id": vehicle_id,
            "scheduled_date": "2026-11-02T08:00:00",
            "clients": [
                {
                    "client_id": client_id,
                    "load_details": {"weight": 5, "description": "Steel coils"},
                    "origin": {"city": "Mumbai", "state": "Maharashtra", "pincode": "400001"},
                    "destination": {"city": "Pune", "state": "Maharashtra", "pincode": "411001"},
                    "rate": rate,
                }
                for client_id in client_ids
            ],
            **extra,
        }
        if driver_id is not None:
            body["driver_id"] = driver_id
        return body
    return _build


@pytest.fixture
async def self_trip(client, admin, client_user, driver, self_vehicle, trip_payload):
    """Booked trip on a self-owned vehicle with one client at rate 10000."""
    _, headers = admin
    response = await client.post(
        "/v1/trips",
        json=trip_payload(self_vehicle["id"], [client_user[0].id], driver_id=driver[0].id),
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture
async def fleet_trip(client, admin, client_user, fleet_vehicle, trip_payload):
    """Booked trip on a fleet owner vehicle (10% commission) with one client at rate 10000."""
    _, headers = admin
    response = await client.post(
        "/v1/trips",
        json=trip_payload(fleet_vehicle["id"], [client_user[0].id]),
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()
