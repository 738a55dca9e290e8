"""Surfaced-meeting ledger: one row per calendar event already handled."""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import SalesLead, SurfacedMeeting
from db.repositories._dialect import insert_for
from schemas.lead import SurfacedMeetingStatistics

logger = logging.getLogger(__name__)


async def is_meeting_surfaced(session: AsyncSession, meeting_id: str) -> bool:
    result = await session.execute(
        select(SurfacedMeeting.meeting_id).where(SurfacedMeeting.meeting_id == meeting_id)
    )
    return result.scalar_one_or_none() is not None


async def has_meeting_been_processed(session: AsyncSession, meeting_id: str) -> bool:
    """True when the meeting was surfaced, skipped, sent or already became a lead."""
    if await is_meeting_surfaced(session, meeting_id):
        return True
    result = await session.execute(
        select(SalesLead.id).where(SalesLead.meeting_id == meeting_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


async def mark_meeting_surfaced(
    session: AsyncSession,
    meeting_id: str,
    recipient_email: str,
    recipient_name: Optional[str] = None,
    meeting_title: Optional[str] = None,
    status: str = "surfaced",
    draft_subject: Optional[str] = None,
    draft_body: Optional[str] = None,
    meeting_end: Optional[datetime] = None,
    notes_id: Optional[str] = None,
    notes_summary: Optional[str] = None,
) -> bool:
    """Insert the idempotency row. Returns False when it already existed."""
    stmt = (
        insert_for(session, SurfacedMeeting)
        .values(
            meeting_id=meeting_id,
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            meeting_title=meeting_title,
            status=status,
            draft_subject=draft_subject,
            draft_body=draft_body,
            meeting_end=meeting_end,
            notes_id=notes_id,
            notes_summary=notes_summary,
        )
        .on_conflict_do_nothing(index_elements=["meeting_id"])
        .returning(SurfacedMeeting.meeting_id)
    )
    result = await session.execute(stmt)
    await session.flush()
    inserted = result.scalar_one_or_none() is not None
    if not inserted:
        logger.debug("Meeting %s already in the surfaced ledger", meeting_id)
    return inserted


async def update_meeting_status(
    session: AsyncSession, meeting_id: str, status: str
) -> Optional[SurfacedMeeting]:
    result = await session.execute(
        update(SurfacedMeeting)
        .where(SurfacedMeeting.meeting_id == meeting_id)
        .values(status=status)
        .returning(SurfacedMeeting),
        execution_options={"populate_existing": True},
    )
    await session.flush()
    return result.scalar_one_or_none()


async def get_surfaced_meeting(
    session: AsyncSession, meeting_id: str
) -> Optional[SurfacedMeeting]:
    result = await session.execute(
        select(SurfacedMeeting).where(SurfacedMeeting.meeting_id == meeting_id)
    )
    return result.scalar_one_or_none()


async def get_pending_surfaced_meetings(session: AsyncSession) -> list[SurfacedMeeting]:
    """Drafts still waiting on an operator decision, oldest first."""
    result = await session.execute(
        select(SurfacedMeeting)
        .where(SurfacedMeeting.status == "surfaced")
        .order_by(SurfacedMeeting.surfaced_at)
    )
    return list(result.scalars().all())


async def get_surfaced_meeting_stats(session: AsyncSession) -> SurfacedMeetingStatistics:
    result = await session.execute(
        select(SurfacedMeeting.status, func.count()).group_by(SurfacedMeeting.status)
    )
    by_status = {status: count for status, count in result.all()}
    return SurfacedMeetingStatistics(
        total=sum(by_status.values()),
        surfaced=by_status.get("surfaced", 0),
        skipped=by_status.get("skipped", 0),
        sent=by_status.get("sent", 0),
    )
