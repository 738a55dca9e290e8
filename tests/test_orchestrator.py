"""Tests for the outreach engine wiring and the scheduled task bodies."""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from db.repositories import leads as leads_repo
from engine.activity_governor import ActivityGovernor
from engine.cadence import CadenceEngine
from engine.meeting_followup import MeetingFollowUpService
from engine.orchestrator import (
    LEAD_CADENCE_TASK,
    MEETING_FOLLOWUPS_TASK,
    RESPONSE_DETECTION_TASK,
    OutreachEngine,
)
from engine.scheduler import TaskScheduler
from schemas.lead import LeadCreate
from schemas.meeting import Draft, Email, EmailAddress
from settings import Settings
from tools.drafting import TemplateDraftGenerator


async def _emailed_lead(database, email, days_ago, now):
    async with database.session() as session:
        lead = await leads_repo.create_lead(session, LeadCreate(email=email))
        return await leads_repo.record_initial_email(
            session, lead.id, f"thread-{lead.id}", now - timedelta(days=days_ago)
        )


def _engine(database, clock, provider, max_followups_per_run=5):
    drafter = MagicMock()
    drafter.draft_lead_follow_up = AsyncMock(return_value=Draft(subject="Quick follow-up", body="Hi"))
    presenter = MagicMock()
    presenter.present_follow_up = AsyncMock()
    presenter.present_response = AsyncMock()
    governor = ActivityGovernor(database, clock=clock)
    cadence = CadenceEngine(database, provider=provider, governor=governor, clock=clock)
    meetings = MeetingFollowUpService(database, provider, drafter, presenter, cadence, clock=clock)
    return OutreachEngine(
        database,
        TaskScheduler(clock=clock),
        governor,
        cadence,
        meetings,
        drafter,
        presenter,
        max_followups_per_run=max_followups_per_run,
    )


class TestLeadCadenceRun:
    @pytest.mark.asyncio
    async def test_caps_surfaced_follow_ups_per_run(self, database, clock):
        for i in range(7):
            await _emailed_lead(database, f"lead{i}@acme.com", days_ago=3 + i, now=clock())
        provider = MagicMock()
        provider.get_email_thread = AsyncMock(return_value=[])
        engine = _engine(database, clock, provider)

        surfaced = await engine.run_lead_cadence()

        assert surfaced == 5
        assert engine.drafter.draft_lead_follow_up.await_count == 5
        first_due = engine.presenter.present_follow_up.await_args_list[0].args[0]
        assert first_due.lead.email == "lead6@acme.com"

    @pytest.mark.asyncio
    async def test_replied_lead_is_not_followed_up(self, database, clock):
        replied = await _emailed_lead(database, "replied@acme.com", days_ago=3, now=clock())
        await _emailed_lead(database, "quiet@acme.com", days_ago=3, now=clock())

        async def thread(thread_id):
            if thread_id == replied.email_thread_id:
                return [Email(id="r-1", from_address=EmailAddress(email="replied@acme.com"), date=clock())]
            return []

        provider = MagicMock()
        provider.get_email_thread = AsyncMock(side_effect=thread)
        engine = _engine(database, clock, provider)

        assert await engine.run_lead_cadence() == 1
        engine.presenter.present_response.assert_awaited_once()
        due = engine.presenter.present_follow_up.await_args.args[0]
        assert due.lead.email == "quiet@acme.com"

    @pytest.mark.asyncio
    async def test_drafter_failure_skips_only_that_lead(self, database, clock):
        await _emailed_lead(database, "a@acme.com", days_ago=5, now=clock())
        await _emailed_lead(database, "b@acme.com", days_ago=4, now=clock())
        engine = _engine(database, clock, provider=None)
        engine.drafter.draft_lead_follow_up.side_effect = [
            RuntimeError("model unavailable"),
            Draft(subject="Quick follow-up", body="Hi"),
        ]

        assert await engine.run_lead_cadence() == 1


class TestEngineWiring:
    @pytest.mark.asyncio
    async def test_start_registers_three_tasks(self, database, clock):
        engine = _engine(database, clock, provider=None)
        engine.start()

        status = {task["id"]: task for task in engine.scheduler.get_scheduler_status()}

        assert status[MEETING_FOLLOWUPS_TASK]["interval_minutes"] == 15
        assert status[LEAD_CADENCE_TASK]["interval_minutes"] == 240
        assert status[RESPONSE_DETECTION_TASK]["interval_minutes"] == 60
        assert status[RESPONSE_DETECTION_TASK]["respect_active_hours"] is False
        assert status[LEAD_CADENCE_TASK]["respect_active_hours"] is True
        await engine.scheduler.stop_all()

    @pytest.mark.asyncio
    async def test_status_report(self, database, clock):
        await _emailed_lead(database, "a@acme.com", days_ago=1, now=clock())
        engine = _engine(database, clock, provider=None)

        report = await engine.status()

        assert set(report) == {"scheduler", "leads", "surfaced_meetings", "activity"}
        assert report["leads"]["active"] == 1
        assert report["surfaced_meetings"]["total"] == 0
        assert report["activity"]["date"] == "2026-03-04"

    @pytest.mark.asyncio
    async def test_from_settings_without_provider(self, database):
        settings = Settings(database_url="sqlite+aiosqlite://")

        engine = OutreachEngine.from_settings(settings, database=database, use_llm=False)

        assert engine.cadence.provider is None
        assert engine.meetings.provider is None
        assert isinstance(engine.drafter, TemplateDraftGenerator)
        assert engine.max_followups_per_run == 5
        assert await engine.cadence.detect_responses() == []
