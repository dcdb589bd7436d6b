"""
Integration tests for request security.

Covers deactivation, role guards, ownership checks, the rate limiter and the
error envelope.
"""

import pytest
from backend.app.core.config import settings
from backend.app.core.rate_limit import RATE_LIMIT_PREFIX
from backend.app.models.enums import UserRole


# TEST 1: Deactivation takes effect immediately
@pytest.mark.asyncio
async def test_deactivated_user_loses_access_immediately(client, admin, make_user):
    """A deactivated user is rejected on the very next request, not after token expiry."""
    _, admin_headers = admin
    user, user_headers = await make_user(UserRole.FLEET_OWNER)

    assert (await client.get("/v1/auth/me", headers=user_headers)).status_code == 200

    response = await client.patch(f"/v1/users/{user.id}/deactivate", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["is_active"] is False

    response = await client.get("/v1/auth/me", headers=user_headers)
    assert response.status_code == 401
    assert response.json()["message"] == "User account is deactivated"

    await client.patch(f"/v1/users/{user.id}/activate", headers=admin_headers)
    assert (await client.get("/v1/auth/me", headers=user_headers)).status_code == 200


@pytest.mark.asyncio
async def test_garbage_token_rejected(client):
    response = await client.get("/v1/auth/me", headers={"Authorization": "Bearer not.a.jwt"})
    assert response.status_code == 401
    assert response.json()["error_code"] == "ERR_UNAUTHORIZED"


# TEST 2: Role guards
@pytest.mark.asyncio
@pytest.mark.parametrize("role", [UserRole.CLIENT, UserRole.DRIVER, UserRole.FLEET_OWNER])
async def test_user_admin_endpoints_forbidden(client, make_user, role):
    _, headers = await make_user(role)
    response = await client.get("/v1/users", headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_endpoints_reachable_by_admin(client, admin):
    _, headers = admin
    response = await client.get("/v1/users", headers=headers)
    assert response.status_code == 200
    assert response.json()["total"] == 1


@pytest.mark.asyncio
async def test_user_ledger_is_owner_or_admin(client, make_user, admin):
    first, first_headers = await make_user(UserRole.CLIENT)
    second, _ = await make_user(UserRole.CLIENT)

    assert (await client.get(f"/v1/users/{first.id}/ledger", headers=first_headers)).status_code == 200
    assert (await client.get(f"/v1/users/{second.id}/ledger", headers=first_headers)).status_code == 403
    assert (await client.get(f"/v1/users/{second.id}/ledger", headers=admin[1])).status_code == 200


# TEST 3: Rate limiting
@pytest.mark.asyncio
async def test_rate_limit_returns_429(client, redis_client_session, admin):
    # ASGITransport reports the caller as 127.0.0.1
    redis_client_session.store[f"{RATE_LIMIT_PREFIX}127.0.0.1"] = settings.rate_limit_max_requests

    response = await client.get("/v1/cities/all", headers=admin[1])
    assert response.status_code == 429
    assert response.json()["error_code"] == "ERR_RATE_LIMIT"


@pytest.mark.asyncio
async def test_rate_limit_ignores_non_api_paths(client, redis_client_session):
    redis_client_session.store[f"{RATE_LIMIT_PREFIX}127.0.0.1"] = settings.rate_limit_max_requests

    response = await client.get("/health")
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_rate_limiter_down_serves_requests(client, redis_client_session, admin):
    await redis_client_session.aclose()

    async def broken_incr(key):
        raise ConnectionError("redis is down")

    redis_client_session.incr = broken_incr
    try:
        response = await client.get("/v1/cities/all", headers=admin[1])
    finally:
        del redis_client_session.incr
    assert response.status_code == 200


# TEST 4: Health and envelope
@pytest.mark.asyncio
async def test_health_reports_redis(client, redis_client_session):
    response = await client.get("/health")
    assert response.json()["redis"] == "up"

    await redis_client_session.aclose()
    response = await client.get("/health")
    assert response.json()["redis"] == "down"


@pytest.mark.asyncio
async def test_validation_error_envelope(client, admin):
    _, headers = admin
    response = await client.post("/v1/vehicles", json={"capacity": -1}, headers=headers)
    assert response.status_code == 422
    body = response.json()
    assert body["error_code"] == "ERR_VALIDATION"
    assert "message" in body and "details" in body


# TEST 5: Correlation IDs
@pytest.mark.asyncio
async def test_correlation_id_echoed(client):
    response = await client.get("/health", headers={"X-Correlation-ID": "trace-42"})
    assert response.headers["X-Correlation-ID"] == "trace-42"
    assert float(response.headers["X-Process-Time"]) >= 0

    generated = await client.get("/health")
    assert len(generated.headers["X-Correlation-ID"]) == 32
