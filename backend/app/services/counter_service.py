"""
Counter service for human-readable sequence numbers.

Trip numbers (TRP25100001), payment numbers (PAY000001) and memo numbers
(CM000001) all come from here. Each named counter is one row; increments are
single UPDATE ... RETURNING statements so two concurrent callers can never
read the same value.

Methods flush but never commit; the number is only consumed when the caller's
transaction commits.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Dict, Any
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.app.core.exceptions import SequenceGenerationError
from backend.app.core.timeutils import utcnow, as_naive_utc
from backend.app.models.counter import Counter, ResetPeriod

logger = logging.getLogger(__name__)

INSERT_RETRIES = 3


@dataclass
class SequenceNumber:
    """Formatted number plus the raw sequence it was built from."""
    number: str
    sequence: int


def format_number(sequence: int, prefix: str = "", suffix: str = "", pad_length: int = 4) -> str:
    return f"{prefix}{str(sequence).zfill(pad_length)}{suffix}"


def period_elapsed(last_reset: Optional[datetime], now: datetime, reset_period: ResetPeriod) -> bool:
    """True when a day, month or year boundary lies between last_reset and now."""
    if reset_period == ResetPeriod.NONE or last_reset is None:
        return False
    last = as_naive_utc(last_reset)
    if reset_period == ResetPeriod.DAILY:
        return last.date() != now.date()
    if reset_period == ResetPeriod.MONTHLY:
        return (last.year, last.month) != (now.year, now.month)
    if reset_period == ResetPeriod.YEARLY:
        return last.year != now.year
    return False


class CounterService:

    @staticmethod
    async def get_next(
        db: AsyncSession,
        name: str,
        prefix: str = "",
        suffix: str = "",
        pad_length: int = 4,
        reset_period: ResetPeriod = ResetPeriod.NONE,
    ) -> SequenceNumber:
        """
        Atomically take the next number of a named sequence.

        Flow:
        1. Create the counter at 1 if it does not exist yet
        2. If the reset period boundary was crossed, compare-and-set the
           sequence back to 1 (only one caller wins)
        3. Otherwise increment in place and read the new value back

        Raises:
            SequenceGenerationError: the counter row could not be read or written
        """
        reset_period = ResetPeriod(reset_period)
        try:
            sequence = await CounterService._take(db, name, prefix, suffix, pad_length, reset_period)
        except SequenceGenerationError:
            raise
        except SQLAlchemyError as e:
            logger.error("Counter %s failed to generate a sequence: %s", name, e)
            raise SequenceGenerationError(name) from e

        return SequenceNumber(
            number=format_number(sequence, prefix, suffix, pad_length),
            sequence=sequence,
        )

    @staticmethod
    async def _take(
        db: AsyncSession,
        name: str,
        prefix: str,
        suffix: str,
        pad_length: int,
        reset_period: ResetPeriod,
    ) -> int:
        for _ in range(INSERT_RETRIES):
            result = await db.execute(
                select(Counter.last_reset, Counter.reset_period).where(Counter.name == name)
            )
            row = result.first()

            if row is None:
                created = await CounterService._try_create(
                    db, name, 1, prefix, suffix, pad_length, reset_period
                )
                if created:
                    return 1
                # Someone else created it first; go round and increment
                continue

            now = utcnow()
            if period_elapsed(row.last_reset, now, reset_period):
                result = await db.execute(
                    update(Counter)
                    .where(Counter.name == name, Counter.last_reset == row.last_reset)
                    .values(sequence=1, last_reset=now)
                    .returning(Counter.sequence)
                    .execution_options(synchronize_session=False)
                )
                if result.scalar_one_or_none() is not None:
                    logger.info("Counter %s reset for new %s period", name, reset_period.value)
                    return 1

            result = await db.execute(
                update(Counter)
                .where(Counter.name == name)
                .values(sequence=Counter.sequence + 1)
                .returning(Counter.sequence)
                .execution_options(synchronize_session=False)
            )
            sequence = result.scalar_one_or_none()
            if sequence is not None:
                return sequence

        raise SequenceGenerationError(name)

    @staticmethod
    async def _try_create(
        db: AsyncSession,
        name: str,
        sequence: int,
        prefix: str,
        suffix: str,
        pad_length: int,
        reset_period: ResetPeriod,
    ) -> bool:
        try:
            async with db.begin_nested():
                db.add(Counter(
                    name=name,
                    sequence=sequence,
                    prefix=prefix,
                    suffix=suffix,
                    pad_length=pad_length,
                    last_reset=utcnow(),
                    reset_period=reset_period,
                ))
            return True
        except IntegrityError:
            return False

    @staticmethod
    async def initialize_counter(
        db: AsyncSession,
        name: str,
        start_from: int = 1,
        prefix: str = "",
        suffix: str = "",
        pad_length: int = 4,
        reset_period: ResetPeriod = ResetPeriod.NONE,
    ) -> Counter:
        """Create a counter whose first get_next returns `start_from`. No-op if it exists."""
        existing = await db.get(Counter, name)
        if existing:
            return existing
        await CounterService._try_create(
            db, name, start_from - 1, prefix, suffix, pad_length, ResetPeriod(reset_period)
        )
        await db.flush()
        return await db.get(Counter, name)

    @staticmethod
    async def reset_counter(db: AsyncSession, name: str, reset_to: int = 0) -> Optional[Counter]:
        counter = await db.get(Counter, name)
        if not counter:
            return None
        counter.sequence = reset_to
        counter.last_reset = utcnow()
        await db.flush()
        logger.info("Counter %s reset to %s", name, reset_to)
        return counter

    @staticmethod
    async def get_counter_info(db: AsyncSession, name: str) -> Optional[Dict[str, Any]]:
        counter = await db.get(Counter, name)
        if not counter:
            return None
        return {
            "name": counter.name,
            "sequence": counter.sequence,
            "prefix": counter.prefix,
            "suffix": counter.suffix,
            "pad_length": counter.pad_length,
            "reset_period": counter.reset_period.value,
            "last_reset": counter.last_reset,
            "next_number": format_number(
                counter.sequence + 1, counter.prefix, counter.suffix, counter.pad_length
            ),
        }

    @staticmethod
    async def update_counter_settings(
        db: AsyncSession,
        name: str,
        prefix: Optional[str] = None,
        suffix: Optional[str] = None,
        pad_length: Optional[int] = None,
        reset_period: Optional[ResetPeriod] = None,
    ) -> Optional[Counter]:
        counter = await db.get(Counter, name)
        if not counter:
            return None
        if prefix is not None:
            counter.prefix = prefix
        if suffix is not None:
            counter.suffix = suffix
        if pad_length is not None:
            counter.pad_length = pad_length
        if reset_period is not None:
            counter.reset_period = ResetPeriod(reset_period)
        await db.flush()
        return counter
