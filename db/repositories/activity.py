"""Activity ledger: per-day, per-type counters behind the activity governor."""
import logging
from datetime import date, timedelta

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import ActivityCount
from db.repositories._dialect import insert_for

logger = logging.getLogger(__name__)

RETENTION_DAYS = 14


async def increment_activity_count(session: AsyncSession, day: date, activity_type: str) -> int:
    """Atomically add one to the (day, type) counter and return the new count."""
    stmt = insert_for(session, ActivityCount).values(date=day, type=activity_type, count=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=["date", "type"],
        set_={"count": ActivityCount.count + 1},
    ).returning(ActivityCount.count)
    result = await session.execute(stmt)
    await session.flush()
    return result.scalar_one()


async def get_daily_count(session: AsyncSession, day: date, activity_type: str) -> int:
    """Return the counter for one day, 0 when no row exists."""
    result = await session.execute(
        select(ActivityCount.count).where(
            ActivityCount.date == day,
            ActivityCount.type == activity_type,
        )
    )
    return result.scalar_one_or_none() or 0


async def get_weekly_count(session: AsyncSession, today: date, activity_type: str) -> int:
    """Sum of the trailing 7 days: today and the six days before it."""
    week_start = today - timedelta(days=6)
    result = await session.execute(
        select(func.coalesce(func.sum(ActivityCount.count), 0)).where(
            ActivityCount.type == activity_type,
            ActivityCount.date >= week_start,
            ActivityCount.date <= today,
        )
    )
    return int(result.scalar_one())


async def get_counts_for_day(session: AsyncSession, day: date) -> dict[str, int]:
    """Return {type: count} for every type with a row on this day."""
    result = await session.execute(
        select(ActivityCount.type, ActivityCount.count).where(ActivityCount.date == day)
    )
    return {row.type: row.count for row in result.all()}


async def prune_old_activity(session: AsyncSession, today: date) -> int:
    """Delete rows older than the retention window. Returns rows removed."""
    cutoff = today - timedelta(days=RETENTION_DAYS)
    result = await session.execute(delete(ActivityCount).where(ActivityCount.date < cutoff))
    await session.flush()
    if result.rowcount:
        logger.debug("Pruned %d activity rows older than %s", result.rowcount, cutoff)
    return result.rowcount or 0
