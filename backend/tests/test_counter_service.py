"""
Tests for the named sequence counters.
"""

from datetime import timedelta

import pytest
from sqlalchemy import update
from backend.app.core.timeutils import utcnow
from backend.app.models.counter import Counter, ResetPeriod
from backend.app.services.counter_service import CounterService, format_number, period_elapsed


# TEST 1: Formatting
def test_format_number_pads_and_wraps():
    assert format_number(7, prefix="PAY", pad_length=6) == "PAY000007"
    assert format_number(12, prefix="CM", suffix="/A", pad_length=3) == "CM012/A"
    assert format_number(123456, pad_length=4) == "123456"


# TEST 2: Period boundaries
def test_period_elapsed():
    now = utcnow().replace(day=15)
    assert period_elapsed(now - timedelta(days=40), now, ResetPeriod.MONTHLY)
    assert not period_elapsed(now - timedelta(days=1), now, ResetPeriod.MONTHLY)
    assert period_elapsed(now - timedelta(days=1), now, ResetPeriod.DAILY)
    assert not period_elapsed(now - timedelta(days=400), now, ResetPeriod.NONE)


# TEST 3: Sequences
@pytest.mark.asyncio
async def test_first_call_creates_counter_at_one(db_session):
    first = await CounterService.get_next(db_session, "pay", prefix="PAY", pad_length=6)
    second = await CounterService.get_next(db_session, "pay", prefix="PAY", pad_length=6)
    await db_session.commit()

    assert first.number == "PAY000001"
    assert second.number == "PAY000002"
    assert second.sequence == 2


@pytest.mark.asyncio
async def test_counters_are_independent(db_session):
    await CounterService.get_next(db_session, "collectionMemo", prefix="CM", pad_length=6)
    await CounterService.get_next(db_session, "collectionMemo", prefix="CM", pad_length=6)
    balance = await CounterService.get_next(db_session, "balanceMemo", prefix="BM", pad_length=6)

    assert balance.number == "BM000001"


@pytest.mark.asyncio
async def test_initialize_counter_sets_start(db_session):
    await CounterService.initialize_counter(db_session, "trip", start_from=500)
    await db_session.commit()

    number = await CounterService.get_next(db_session, "trip", prefix="T", pad_length=4)
    assert number.number == "T0500"


@pytest.mark.asyncio
async def test_monthly_counter_restarts_after_boundary(db_session):
    for _ in range(3):
        await CounterService.get_next(db_session, "trip", reset_period=ResetPeriod.MONTHLY)
    await db_session.execute(
        update(Counter).where(Counter.name == "trip").values(last_reset=utcnow() - timedelta(days=62))
    )
    await db_session.commit()

    restarted = await CounterService.get_next(db_session, "trip", reset_period=ResetPeriod.MONTHLY)
    following = await CounterService.get_next(db_session, "trip", reset_period=ResetPeriod.MONTHLY)

    assert restarted.sequence == 1
    assert following.sequence == 2


@pytest.mark.asyncio
async def test_counter_info_and_settings(db_session):
    await CounterService.get_next(db_session, "pay", prefix="PAY", pad_length=6)
    await CounterService.update_counter_settings(db_session, "pay", pad_length=3)
    await db_session.commit()

    info = await CounterService.get_counter_info(db_session, "pay")
    assert info["sequence"] == 1
    assert info["next_number"] == "PAY002"
    assert await CounterService.get_counter_info(db_session, "missing") is None


@pytest.mark.asyncio
async def test_reset_counter(db_session):
    await CounterService.get_next(db_session, "pay")
    await CounterService.get_next(db_session, "pay")
    await CounterService.reset_counter(db_session, "pay")
    await db_session.commit()

    again = await CounterService.get_next(db_session, "pay")
    assert again.sequence == 1
