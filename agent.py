"""Underflow outreach engine: command-line entry point.

Runs the scheduled outreach loop or a single piece of it:

  # Run the scheduler until interrupted
  python agent.py run

  # Run one task immediately (meeting-followups, lead-cadence, response-detection)
  python agent.py trigger lead-cadence

  # Lead, meeting and LinkedIn activity status
  python agent.py status

  # Surface follow-ups for meetings in the last N days
  python agent.py backfill --days 30

  # Create tables directly (local SQLite; production uses `alembic upgrade head`)
  python agent.py init-db
"""
import argparse
import asyncio
import json
import logging
import sys

from engine.orchestrator import (
    LEAD_CADENCE_TASK,
    MEETING_FOLLOWUPS_TASK,
    RESPONSE_DETECTION_TASK,
    OutreachEngine,
)
from model_config import init_llm_callbacks
from settings import load_settings

logger = logging.getLogger(__name__)

TASK_IDS = (MEETING_FOLLOWUPS_TASK, LEAD_CADENCE_TASK, RESPONSE_DETECTION_TASK)


async def run_forever(engine: OutreachEngine) -> None:
    engine.start()
    print("Outreach engine running. Ctrl+C to stop.")
    for task in engine.scheduler.get_scheduler_status():
        print(f"  {task['name']}: every {task['interval_minutes']:g} min")
    try:
        await asyncio.Event().wait()
    finally:
        await engine.stop()


async def run_trigger(engine: OutreachEngine, task_id: str) -> bool:
    engine.start()
    try:
        ok = await engine.scheduler.trigger_now(task_id)
    finally:
        await engine.stop()
    print(f"{task_id}: {'ok' if ok else 'failed'}")
    return ok


async def run_status(engine: OutreachEngine) -> None:
    try:
        status = await engine.status()
        status.pop("scheduler", None)
        print(json.dumps({k: v for k, v in status.items() if k != "activity"}, indent=2))
        print(await engine.governor.format_activity_summary())
    finally:
        await engine.database.dispose()


async def run_backfill(engine: OutreachEngine, days: int) -> None:
    try:
        result = await engine.meetings.run_historical_backfill(days)
    finally:
        await engine.database.dispose()
    print(
        f"Backfill: {result.processed} processed, "
        f"{result.surfaced} surfaced, {result.skipped} skipped"
    )


async def run_init_db(engine: OutreachEngine) -> None:
    try:
        await engine.database.create_all()
    finally:
        await engine.database.dispose()
    print("Tables created.")


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Underflow Outreach Cadence & Rate-Governance Engine"
    )
    parser.add_argument(
        "--no-llm",
        action="store_true",
        default=False,
        help="Use template drafts instead of calling the model",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run", help="Run the scheduler until interrupted")

    trigger = sub.add_parser("trigger", help="Run one scheduled task immediately")
    trigger.add_argument("task", choices=TASK_IDS)

    sub.add_parser("status", help="Show lead, meeting and activity status")

    backfill = sub.add_parser("backfill", help="Surface follow-ups for past meetings")
    backfill.add_argument("--days", type=int, default=30, help="How many days back to look")

    sub.add_parser("init-db", help="Create database tables")

    return parser


def main() -> None:
    parser = _build_arg_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    settings = load_settings()
    if not args.no_llm:
        init_llm_callbacks()
    engine = OutreachEngine.from_settings(settings, use_llm=not args.no_llm)

    if args.command == "run":
        try:
            asyncio.run(run_forever(engine))
        except KeyboardInterrupt:
            logger.info("Stopped")

    elif args.command == "trigger":
        ok = asyncio.run(run_trigger(engine, args.task))
        sys.exit(0 if ok else 1)

    elif args.command == "status":
        asyncio.run(run_status(engine))

    elif args.command == "backfill":
        asyncio.run(run_backfill(engine, args.days))

    elif args.command == "init-db":
        asyncio.run(run_init_db(engine))


if __name__ == "__main__":
    main()
