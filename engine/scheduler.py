"""In-process recurring task scheduler.

Each task gets its own asyncio loop that wakes every interval. A tick is
skipped (not queued) when the previous run is still going or when the task
respects active hours and the clock is outside them. Bookkeeping lives in
memory only; a restart starts every task fresh.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo

from settings import ActiveHours

logger = logging.getLogger(__name__)

TaskCallback = Callable[[], Awaitable[Any]]

TICK_RAN = "ran"
TICK_FAILED = "failed"
TICK_SKIPPED_RUNNING = "skipped_running"
TICK_SKIPPED_INACTIVE = "skipped_inactive"


@dataclass
class ScheduledTask:
    id: str
    name: str
    interval_minutes: float
    callback: TaskCallback
    respect_active_hours: bool = True
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None
    running: bool = False
    loop_task: Optional[asyncio.Task] = field(default=None, repr=False)
    runs: List[asyncio.Task] = field(default_factory=list, repr=False)

    @property
    def interval_seconds(self) -> float:
        return self.interval_minutes * 60


class TaskScheduler:
    def __init__(
        self,
        active_hours: Optional[ActiveHours] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.active_hours = active_hours or ActiveHours()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._tz = ZoneInfo(self.active_hours.timezone)
        self.tasks: Dict[str, ScheduledTask] = {}

    def is_within_active_hours(self, now: Optional[datetime] = None) -> bool:
        local = (now or self._clock()).astimezone(self._tz)
        if local.isoweekday() not in self.active_hours.days:
            return False
        return self.active_hours.start_hour <= local.hour < self.active_hours.end_hour

    def schedule_task(
        self,
        task_id: str,
        name: str,
        interval_minutes: float,
        callback: TaskCallback,
        respect_active_hours: bool = True,
    ) -> ScheduledTask:
        """Register a recurring task. Scheduling an existing id replaces it.

        Must be called from inside a running event loop.
        """
        if interval_minutes <= 0:
            raise ValueError("interval_minutes must be positive")
        self.cancel_task(task_id)

        task = ScheduledTask(
            id=task_id,
            name=name,
            interval_minutes=interval_minutes,
            callback=callback,
            respect_active_hours=respect_active_hours,
            next_run=self._clock() + timedelta(minutes=interval_minutes),
        )
        task.loop_task = asyncio.create_task(self._loop(task), name=f"scheduler:{task_id}")
        self.tasks[task_id] = task
        logger.info("Scheduled: %s (every %s min)", name, interval_minutes)
        return task

    async def _loop(self, task: ScheduledTask) -> None:
        while True:
            await asyncio.sleep(task.interval_seconds)
            task.next_run = self._clock() + timedelta(seconds=task.interval_seconds)
            # Runs are detached so a slow callback never delays the next tick
            run = asyncio.create_task(self.tick(task.id))
            task.runs.append(run)
            run.add_done_callback(task.runs.remove)

    async def _invoke(self, task: ScheduledTask) -> bool:
        task.running = True
        task.last_run = self._clock()
        try:
            await task.callback()
            return True
        except Exception:
            logger.exception("Error in %s", task.name)
            return False
        finally:
            task.running = False

    async def tick(self, task_id: str) -> str:
        """One scheduled firing: skip or run, never queue."""
        task = self.tasks.get(task_id)
        if task is None:
            return TICK_SKIPPED_INACTIVE
        if task.respect_active_hours and not self.is_within_active_hours():
            logger.info("Skipping %s: outside active hours", task.name)
            return TICK_SKIPPED_INACTIVE
        if task.running:
            logger.info("Skipping %s: previous run still in progress", task.name)
            return TICK_SKIPPED_RUNNING

        logger.info("Running: %s", task.name)
        return TICK_RAN if await self._invoke(task) else TICK_FAILED

    async def trigger_now(self, task_id: str) -> bool:
        """Run a task immediately, ignoring its interval and active hours."""
        task = self.tasks.get(task_id)
        if task is None:
            logger.warning("Unknown task: %s", task_id)
            return False
        if task.running:
            logger.info("Not triggering %s: already running", task.name)
            return False
        logger.info("Manual run: %s", task.name)
        return await self._invoke(task)

    def cancel_task(self, task_id: str) -> bool:
        task = self.tasks.pop(task_id, None)
        if task is None:
            return False
        if task.loop_task is not None:
            task.loop_task.cancel()
        logger.info("Cancelled: %s", task.name)
        return True

    async def stop_all(self) -> None:
        """Cancel every loop and any run still in flight."""
        pending = []
        for task in self.tasks.values():
            if task.loop_task is not None:
                task.loop_task.cancel()
                pending.append(task.loop_task)
            for run in list(task.runs):
                run.cancel()
                pending.append(run)
        self.tasks.clear()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info("All tasks stopped")

    def get_scheduler_status(self) -> List[Dict[str, Any]]:
        return [
            {
                "id": task.id,
                "name": task.name,
                "interval_minutes": task.interval_minutes,
                "last_run": task.last_run.isoformat() if task.last_run else None,
                "next_run": task.next_run.isoformat() if task.next_run else None,
                "running": task.running,
                "respect_active_hours": task.respect_active_hours,
            }
            for task in self.tasks.values()
        ]
