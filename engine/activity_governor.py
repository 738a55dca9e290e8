"""Activity governor: keeps LinkedIn actions inside best-practice limits.

Every outbound provider action goes through can_perform → action →
record_activity. Weekly-capped types (invitations) use smart pacing: the
remaining weekly budget is spread over the working days left in the week,
so the budget is not spent on Monday and gone by Wednesday.

Only outbound engagement (invitations, comments, likes, messages) feeds the
throttle decision; searches and profile views are tracked for visibility.

Counter days are UTC calendar days.
"""
import logging
import random
from datetime import date, datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

from db.connection import Database
from db.repositories import activity as activity_repo
from schemas.activity import (
    ACTIVITY_LIMITS,
    DELAY_WINDOWS,
    THROTTLEABLE_TYPES,
    ActivityCheck,
    ActivitySummary,
    ActivityType,
    ActivityUsage,
    ThrottleDecision,
)

logger = logging.getLogger(__name__)

MIN_SMART_BUDGET = 5
WARNING_PERCENT = 80

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def working_days_remaining(day: date) -> int:
    """Working days left in the week, today included. Weekends look at the full week ahead."""
    weekday = day.isoweekday()  # Mon=1 … Sun=7
    if weekday >= 6:
        return 5
    return 6 - weekday


def smart_daily_budget(activity_type: ActivityType, weekly_count: int, day: date) -> int:
    """Spread the remaining weekly budget evenly, clamped to [5, recommended]."""
    limits = ACTIVITY_LIMITS[activity_type]
    if not limits.weekly:
        return limits.safe_daily
    budget = (limits.weekly - weekly_count) // working_days_remaining(day)
    return max(MIN_SMART_BUDGET, min(budget, limits.safe_daily))


class ActivityGovernor:
    """Sole writer of the activity ledger. Never raises; ledger trouble fails closed."""

    def __init__(
        self,
        database: Database,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ):
        self.database = database
        self._clock = clock or _utcnow
        self._rng = rng or random.Random()

    def _today(self) -> date:
        return self._clock().astimezone(timezone.utc).date()

    async def can_perform(
        self, activity_type: ActivityType, use_recommended: bool = True
    ) -> ActivityCheck:
        activity_type = ActivityType(activity_type)
        limits = ACTIVITY_LIMITS[activity_type]
        today = self._today()
        try:
            async with self.database.session() as session:
                daily_count = await activity_repo.get_daily_count(session, today, activity_type.value)
                weekly_count = None
                if limits.weekly:
                    weekly_count = await activity_repo.get_weekly_count(
                        session, today, activity_type.value
                    )
        except Exception:
            logger.warning("Activity ledger read failed for %s; denying", activity_type.value, exc_info=True)
            return ActivityCheck(
                allowed=False,
                reason=f"Activity ledger unavailable; {activity_type.value} denied",
                daily_count=0,
                daily_limit=limits.daily,
            )

        smart_budget = None
        if limits.weekly:
            smart_budget = smart_daily_budget(activity_type, weekly_count, today)
            daily_limit = smart_budget
        elif use_recommended:
            daily_limit = limits.safe_daily
        else:
            daily_limit = limits.daily

        check = ActivityCheck(
            allowed=True,
            daily_count=daily_count,
            daily_limit=daily_limit,
            weekly_count=weekly_count,
            weekly_limit=limits.weekly,
            smart_budget=smart_budget,
        )
        if daily_count >= daily_limit:
            check.allowed = False
            if smart_budget is not None:
                check.reason = (
                    f"Smart daily {activity_type.value} budget reached "
                    f"({daily_count}/{daily_limit} - pacing for week)"
                )
            else:
                check.reason = f"Daily {activity_type.value} limit reached ({daily_count}/{daily_limit})"
        elif limits.weekly and weekly_count >= limits.weekly:
            check.allowed = False
            check.reason = f"Weekly {activity_type.value} limit reached ({weekly_count}/{limits.weekly})"
        return check

    async def record_activity(self, activity_type: ActivityType) -> bool:
        """Prune old rows then bump today's counter. Returns False if the write failed."""
        activity_type = ActivityType(activity_type)
        today = self._today()
        try:
            async with self.database.session() as session:
                await activity_repo.prune_old_activity(session, today)
                count = await activity_repo.increment_activity_count(session, today, activity_type.value)
        except Exception:
            logger.warning("Failed to record %s activity", activity_type.value, exc_info=True)
            return False
        logger.info("Recorded %s: %d today", activity_type.value, count)
        return True

    async def get_activity_summary(self) -> ActivitySummary:
        """Today's usage per type against the recommended daily limit.

        Raises on ledger failure; should_throttle turns that into a throttle.
        """
        today = self._today()
        activities = []
        async with self.database.session() as session:
            counts = await activity_repo.get_counts_for_day(session, today)
            for activity_type, limits in ACTIVITY_LIMITS.items():
                daily_count = counts.get(activity_type.value, 0)
                daily_limit = limits.safe_daily
                weekly_count = None
                if limits.weekly:
                    weekly_count = await activity_repo.get_weekly_count(
                        session, today, activity_type.value
                    )
                percent_used = round(daily_count / daily_limit * 100)

                status = "ok"
                if daily_count >= daily_limit or (
                    limits.weekly and weekly_count is not None and weekly_count >= limits.weekly
                ):
                    status = "limit_reached"
                elif percent_used >= WARNING_PERCENT:
                    status = "warning"

                activities.append(
                    ActivityUsage(
                        type=activity_type,
                        count=daily_count,
                        daily_limit=daily_limit,
                        weekly_count=weekly_count,
                        weekly_limit=limits.weekly,
                        percent_used=percent_used,
                        status=status,
                    )
                )
        return ActivitySummary(date=today.isoformat(), activities=activities)

    async def format_activity_summary(self) -> str:
        summary = await self.get_activity_summary()
        marks = {"ok": "ok  ", "warning": "WARN", "limit_reached": "FULL"}
        lines = [f"LinkedIn activity ({summary.date})"]
        for usage in summary.activities:
            line = f"  [{marks[usage.status]}] {usage.type.value}: {usage.count}/{usage.daily_limit} daily"
            if usage.weekly_limit:
                line += f" ({usage.weekly_count}/{usage.weekly_limit} weekly)"
            line += f" - {usage.percent_used}%"
            lines.append(line)
        return "\n".join(lines)

    async def should_throttle(self) -> ThrottleDecision:
        try:
            summary = await self.get_activity_summary()
        except Exception:
            logger.warning("Activity ledger read failed; throttling", exc_info=True)
            return ThrottleDecision(throttle=True, reason="Activity ledger unavailable")

        relevant = [a for a in summary.activities if a.type in THROTTLEABLE_TYPES]
        at_limit = [a.type.value for a in relevant if a.status == "limit_reached"]
        if at_limit:
            return ThrottleDecision(throttle=True, reason=f"Limit reached for: {', '.join(at_limit)}")

        # A single warning is fine; two or more outbound types near their limit is not
        warnings = [a.type.value for a in relevant if a.status == "warning"]
        if len(warnings) >= 2:
            return ThrottleDecision(
                throttle=True, reason=f"Approaching limits for: {', '.join(warnings)}"
            )
        return ThrottleDecision(throttle=False)

    def get_recommended_delay(self, activity_type: ActivityType) -> int:
        """Randomized pause before the next action of this type, in milliseconds."""
        window = DELAY_WINDOWS[ActivityType(activity_type)]
        return self._rng.randint(window.min_seconds, window.max_seconds) * 1000

    async def run_governed(
        self,
        activity_type: ActivityType,
        action: Callable[[], Awaitable[Any]],
    ) -> Dict[str, Any]:
        """Check, act, record. The activity is recorded only after the action succeeds."""
        activity_type = ActivityType(activity_type)
        check = await self.can_perform(activity_type)
        if not check.allowed:
            logger.info("Skipping %s: %s", activity_type.value, check.reason)
            return {"success": False, "error": check.reason}

        try:
            result = await action()
        except Exception as exc:
            logger.warning("%s action failed", activity_type.value, exc_info=True)
            return {"success": False, "error": str(exc)}

        await self.record_activity(activity_type)
        return {"success": True, "result": result}
