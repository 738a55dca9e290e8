"""Integration tests for core repository methods (in-memory SQLite)."""
from datetime import date, datetime, timedelta, timezone

import pytest

from db.repositories import activity as activity_repo
from db.repositories import leads as leads_repo
from db.repositories import meetings as meetings_repo
from db.repositories.leads import generate_lead_id
from schemas.lead import LeadCreate


# ---------------------------------------------------------------------------
# Activity ledger
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_increment_creates_then_adds(database):
    """The first increment creates the row at 1, later ones add exactly one."""
    day = date(2026, 3, 4)
    async with database.session() as session:
        assert await activity_repo.increment_activity_count(session, day, "like") == 1
        assert await activity_repo.increment_activity_count(session, day, "like") == 2
    async with database.session() as session:
        assert await activity_repo.increment_activity_count(session, day, "like") == 3
        assert await activity_repo.get_daily_count(session, day, "like") == 3
        assert await activity_repo.get_daily_count(session, day, "comment") == 0


@pytest.mark.asyncio
async def test_counts_for_day_only_includes_that_day(database):
    today = date(2026, 3, 4)
    async with database.session() as session:
        await activity_repo.increment_activity_count(session, today, "message")
        await activity_repo.increment_activity_count(session, today - timedelta(days=1), "like")
        counts = await activity_repo.get_counts_for_day(session, today)
    assert counts == {"message": 1}


@pytest.mark.asyncio
async def test_prune_keeps_the_retention_window(database):
    today = date(2026, 3, 4)
    async with database.session() as session:
        await activity_repo.increment_activity_count(session, today - timedelta(days=15), "like")
        await activity_repo.increment_activity_count(session, today - timedelta(days=14), "like")
        removed = await activity_repo.prune_old_activity(session, today)
        assert removed == 1
        assert await activity_repo.get_daily_count(session, today - timedelta(days=14), "like") == 1


# ---------------------------------------------------------------------------
# Lead ledger
# ---------------------------------------------------------------------------


def test_lead_id_is_deterministic():
    assert generate_lead_id("Jane.Doe@Acme.com") == "jane-doe-acme-com"
    assert generate_lead_id("jane@acme.com", "evt_42") == "jane-acme-com-evt-42"


@pytest.mark.asyncio
async def test_create_lead_is_idempotent(database):
    """Creating the same (email, meeting) twice returns the first row unchanged."""
    async with database.session() as session:
        first = await leads_repo.create_lead(
            session, LeadCreate(email="Jane@Acme.com", name="Jane", meeting_id="evt-1")
        )
    async with database.session() as session:
        second = await leads_repo.create_lead(
            session, LeadCreate(email="jane@acme.com", name="Someone Else", meeting_id="evt-1")
        )
        same_email = await leads_repo.get_by_email(session, "JANE@acme.com")
    assert first.id == second.id
    assert second.name == "Jane"
    assert second.email == "jane@acme.com"
    assert second.status == "active"
    assert second.email_followup_count == 0
    assert len(same_email) == 1


@pytest.mark.asyncio
async def test_active_leads_need_a_sent_email(database):
    sent_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    async with database.session() as session:
        emailed = await leads_repo.create_lead(session, LeadCreate(email="a@acme.com"))
        await leads_repo.create_lead(session, LeadCreate(email="b@acme.com"))
        await leads_repo.record_initial_email(session, emailed.id, "t-1", sent_at)
    async with database.session() as session:
        active = await leads_repo.get_active_leads(session)
        by_thread = await leads_repo.get_by_thread(session, "t-1")
    assert [lead.id for lead in active] == [emailed.id]
    assert active[0].last_email_date == sent_at
    assert by_thread.id == emailed.id


@pytest.mark.asyncio
async def test_followup_counter_increments_in_sql(database):
    sent_at = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
    async with database.session() as session:
        lead = await leads_repo.create_lead(session, LeadCreate(email="a@acme.com"))
        await leads_repo.record_followup_email(session, lead.id, None, sent_at)
        await leads_repo.record_followup_email(session, lead.id, None, sent_at + timedelta(days=2))
    async with database.session() as session:
        stored = await leads_repo.get_by_id(session, lead.id)
    assert stored.email_followup_count == 2
    assert stored.last_email_date == sent_at + timedelta(days=2)


@pytest.mark.asyncio
async def test_update_status_only_moves_active_leads(database):
    async with database.session() as session:
        lead = await leads_repo.create_lead(session, LeadCreate(email="a@acme.com"))
        cold = await leads_repo.update_status(session, lead.id, "cold")
        again = await leads_repo.update_status(session, lead.id, "responded", "email")
        missing = await leads_repo.update_status(session, "nobody", "cold")
    assert cold.status == "cold"
    assert again is None
    assert missing is None


@pytest.mark.asyncio
async def test_unknown_linkedin_kind_rejected(database):
    async with database.session() as session:
        lead = await leads_repo.create_lead(session, LeadCreate(email="a@acme.com"))
    with pytest.raises(ValueError):
        async with database.session() as session:
            await leads_repo.record_linkedin_activity(
                session, lead.id, "poke", datetime(2026, 3, 1, tzinfo=timezone.utc)
            )


@pytest.mark.asyncio
async def test_warm_leads(database):
    opened_at = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
    async with database.session() as session:
        warm = await leads_repo.create_lead(session, LeadCreate(email="warm@acme.com"))
        await leads_repo.create_lead(session, LeadCreate(email="cold@acme.com"))
        await leads_repo.record_email_open(session, warm.id, opened_at)
        leads = await leads_repo.get_warm_leads(session)
    assert [lead.email for lead in leads] == ["warm@acme.com"]
    assert leads[0].first_opened_at == opened_at


# ---------------------------------------------------------------------------
# Surfaced meetings
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_mark_meeting_surfaced_once(database):
    """The second insert for the same meeting is a no-op that reports False."""
    async with database.session() as session:
        assert await meetings_repo.mark_meeting_surfaced(session, "evt-1", "joe@jencap.com") is True
    async with database.session() as session:
        assert await meetings_repo.mark_meeting_surfaced(
            session, "evt-1", "other@jencap.com", status="skipped"
        ) is False
        row = await meetings_repo.get_surfaced_meeting(session, "evt-1")
    assert row.recipient_email == "joe@jencap.com"
    assert row.status == "surfaced"


@pytest.mark.asyncio
async def test_meeting_processed_via_lead(database):
    async with database.session() as session:
        await leads_repo.create_lead(session, LeadCreate(email="joe@jencap.com", meeting_id="evt-9"))
        assert await meetings_repo.has_meeting_been_processed(session, "evt-9") is True
        assert await meetings_repo.has_meeting_been_processed(session, "evt-10") is False


@pytest.mark.asyncio
async def test_surfaced_meeting_stats_and_pending(database):
    async with database.session() as session:
        await meetings_repo.mark_meeting_surfaced(session, "a", "a@x.com")
        await meetings_repo.mark_meeting_surfaced(session, "b", "b@x.com", status="skipped")
        await meetings_repo.mark_meeting_surfaced(session, "c", "c@x.com")
        await meetings_repo.update_meeting_status(session, "c", "sent")
        stats = await meetings_repo.get_surfaced_meeting_stats(session)
        pending = await meetings_repo.get_pending_surfaced_meetings(session)
    assert stats.total == 3
    assert (stats.surfaced, stats.skipped, stats.sent) == (1, 1, 1)
    assert [m.meeting_id for m in pending] == ["a"]


@pytest.mark.asyncio
async def test_cold_clears_responded_via(database):
    async with database.session() as session:
        lead = await leads_repo.create_lead(session, LeadCreate(email="a@acme.com"))
        lead.responded_via = "linkedin"
    async with database.session() as session:
        cold = await leads_repo.update_status(session, lead.id, "cold")
    assert cold.status == "cold"
    assert cold.responded_via is None


@pytest.mark.asyncio
async def test_surfaced_meeting_keeps_meeting_context(database):
    ended = datetime(2026, 3, 4, 14, 50, tzinfo=timezone.utc)
    async with database.session() as session:
        await meetings_repo.mark_meeting_surfaced(
            session,
            "evt-1",
            "joe@jencap.com",
            meeting_end=ended,
            notes_id="notes-evt-1",
            notes_summary="Talked pricing",
        )
    async with database.session() as session:
        row = await meetings_repo.get_surfaced_meeting(session, "evt-1")
    assert row.meeting_end == ended
    assert (row.notes_id, row.notes_summary) == ("notes-evt-1", "Talked pricing")
