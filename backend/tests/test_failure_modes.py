"""
Failure injection tests.

Mail and activity logging are best-effort; a broken relay or a failed log
write must never surface as an error to the caller.
"""

import smtplib

import pytest
from backend.app.core.config import settings
from backend.app.core.reliability import CircuitBreaker, CircuitOpenError
from backend.app.models.activity_log import ActivityCategory
from backend.app.models.enums import UserRole
from backend.app.services import mailer
from backend.app.services.activity_logger import ActivityLogger


@pytest.mark.asyncio
async def test_circuit_breaker_activates():
    """Test that circuit breaker opens after threshold failures."""
    cb = CircuitBreaker(failure_threshold=2, reset_timeout=60)

    async def failing_func():
        raise ValueError("Boom")

    # Fail 1
    with pytest.raises(ValueError):
        await cb.call(failing_func)

    # Fail 2 (Threshold reached)
    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    # Call 3 is rejected without running
    with pytest.raises(CircuitOpenError):
        await cb.call(failing_func)


@pytest.mark.asyncio
async def test_circuit_breaker_recovers_after_timeout():
    cb = CircuitBreaker(failure_threshold=1, reset_timeout=-1)

    async def failing_func():
        raise ValueError("Boom")

    async def ok_func():
        return "sent"

    with pytest.raises(ValueError):
        await cb.call(failing_func)
    assert cb.state == "OPEN"

    # Timeout elapsed: the trial call goes through and closes the circuit
    assert await cb.call(ok_func) == "sent"
    assert cb.state == "CLOSED"
    assert cb.failures == 0


@pytest.mark.asyncio
async def test_send_email_disabled(mocker):
    mocker.patch.object(settings, "email_enabled", False)
    deliver = mocker.patch("backend.app.services.mailer._deliver")

    assert await mailer.send_email("ops@example.com", "trip_completed", {
        "name": "Ops", "trip_number": "TRP26110001", "due_amount": 0,
    }) is False
    deliver.assert_not_called()

    assert await mailer.send_email(None, "trip_completed", {}) is False


@pytest.mark.asyncio
async def test_send_email_smtp_failure_opens_circuit(mocker):
    mocker.patch.object(settings, "email_enabled", True)
    mocker.patch.object(mailer, "mail_circuit_breaker", CircuitBreaker(failure_threshold=1, reset_timeout=60))
    deliver = mocker.patch(
        "backend.app.services.mailer._deliver", side_effect=smtplib.SMTPException("relay down")
    )
    context = {"name": "Ops", "trip_number": "TRP26110001", "due_amount": 0}

    assert await mailer.send_email("ops@example.com", "trip_completed", context) is False
    assert mailer.mail_circuit_breaker.state == "OPEN"

    # Open circuit: dropped without touching SMTP
    assert await mailer.send_email("ops@example.com", "trip_completed", context) is False
    assert deliver.call_count == 1


@pytest.mark.asyncio
async def test_send_email_delivers(mocker):
    mocker.patch.object(settings, "email_enabled", True)
    mocker.patch.object(mailer, "mail_circuit_breaker", CircuitBreaker())
    deliver = mocker.patch("backend.app.services.mailer._deliver")

    sent = await mailer.send_email("ops@example.com", "trip_assigned", {
        "name": "Ramesh", "trip_number": "TRP26110001", "vehicle": "MH12AB1234",
        "scheduled_date": "02 Nov 2026", "route": "Mumbai -> Pune",
    })
    assert sent is True
    to_email, subject = deliver.call_args.args[:2]
    assert to_email == "ops@example.com"
    assert subject == "Trip TRP26110001 assigned to you"


def test_html_part_escapes_user_values():
    parts = mailer.render("trip_created", {
        "name": "<script>alert(1)</script>", "trip_number": "TRP26110001",
        "scheduled_date": "02 Nov 2026", "route": "Mumbai & Thane to Pune", "rate": 10000.0,
    })
    assert "<script>" not in parts["html"]
    assert "&lt;script&gt;alert(1)&lt;/script&gt;" in parts["html"]
    assert "Mumbai &amp; Thane to Pune" in parts["html"]
    # The plain text part is sent as is
    assert "Hello <script>alert(1)</script>," in parts["text"]
    assert "Rate: 10000.0" in parts["html"]


@pytest.mark.asyncio
async def test_activity_logger_swallows_write_failure(db_session, mocker):
    mocker.patch.object(db_session, "commit", side_effect=RuntimeError("database is locked"))

    entry = await ActivityLogger.record(
        db_session, None, "SYSTEM_CHECK", ActivityCategory.SYSTEM, "Nightly check"
    )
    assert entry is None


@pytest.mark.asyncio
async def test_activity_flush_failure_keeps_loaded_objects(db_session, make_user):
    user, _ = await make_user(UserRole.ADMIN)

    # details must be JSON; the insert fails inside the savepoint
    entry = await ActivityLogger.record(
        db_session, user.id, "SYSTEM_CHECK", ActivityCategory.SYSTEM, "Nightly check",
        details={"started": object()},
    )
    assert entry is None
    # Not expired, so reading it needs no lazy load
    assert "email" in user.__dict__
    assert user.role == UserRole.ADMIN


@pytest.mark.asyncio
async def test_failed_activity_write_keeps_response_intact(client, admin, self_trip, mocker):
    mocker.patch(
        "backend.app.services.activity_logger.ActivityLog", side_effect=RuntimeError("activity table missing")
    )
    _, headers = admin
    trip_id = self_trip["id"]

    response = await client.post(f"/v1/trips/{trip_id}/clients/0/advances", json={"amount": 1000}, headers=headers)
    assert response.status_code == 201
    assert response.json()["clients"][0]["paid_amount"] == 1000.0

    response = await client.patch(f"/v1/trips/{trip_id}/status", json={"status": "in_progress"}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "in_progress"

    # The business changes were committed before the log write failed
    response = await client.get(f"/v1/trips/{trip_id}", headers=headers)
    assert response.json()["status"] == "in_progress"
    assert response.json()["clients"][0]["paid_amount"] == 1000.0

    response = await client.post("/v1/auth/login", json={"email": admin[0].email, "password": "password123"})
    assert response.status_code == 200
    assert response.json()["user"]["email"] == admin[0].email
