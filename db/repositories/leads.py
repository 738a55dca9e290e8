"""Lead ledger: creation, cadence bookkeeping and status transitions.

Every counter change is a single UPDATE ... SET x = x + 1 statement so
concurrent ticks never lose an increment.
"""
import logging
import re
from datetime import datetime
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from db.models import SalesLead
from db.repositories._dialect import insert_for
from schemas.lead import LeadCreate, LeadStatistics

logger = logging.getLogger(__name__)

_NON_ID_CHARS = re.compile(r"[^a-z0-9]")


def generate_lead_id(email: str, meeting_id: Optional[str] = None) -> str:
    """Deterministic id: lower-cased email (plus meeting id), non [a-z0-9] → '-'."""
    base = f"{email}-{meeting_id}" if meeting_id else email
    return _NON_ID_CHARS.sub("-", base.lower())


async def create_lead(session: AsyncSession, data: LeadCreate) -> SalesLead:
    """Insert a lead, or return the existing row when the id is already taken."""
    lead_id = generate_lead_id(data.email, data.meeting_id)
    values = data.model_dump()
    values["email"] = data.email.lower().strip()
    stmt = (
        insert_for(session, SalesLead)
        .values(id=lead_id, status="active", **values)
        .on_conflict_do_nothing(index_elements=["id"])
    )
    await session.execute(stmt)
    await session.flush()
    lead = await get_by_id(session, lead_id)
    return lead


async def get_by_id(session: AsyncSession, lead_id: str) -> Optional[SalesLead]:
    result = await session.execute(
        select(SalesLead)
        .where(SalesLead.id == lead_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_by_email(session: AsyncSession, email: str) -> list[SalesLead]:
    """All leads for an address, newest first."""
    result = await session.execute(
        select(SalesLead)
        .where(SalesLead.email == email.lower().strip())
        .order_by(SalesLead.created_at.desc())
    )
    return list(result.scalars().all())


async def get_by_meeting(session: AsyncSession, meeting_id: str) -> Optional[SalesLead]:
    result = await session.execute(
        select(SalesLead).where(SalesLead.meeting_id == meeting_id).limit(1)
    )
    return result.scalar_one_or_none()


async def get_by_thread(session: AsyncSession, thread_id: str) -> Optional[SalesLead]:
    result = await session.execute(
        select(SalesLead).where(SalesLead.email_thread_id == thread_id).limit(1)
    )
    return result.scalar_one_or_none()


async def get_active_leads(session: AsyncSession) -> list[SalesLead]:
    """Active leads that have been emailed at least once, oldest email first."""
    result = await session.execute(
        select(SalesLead)
        .where(SalesLead.status == "active", SalesLead.last_email_date.is_not(None))
        .order_by(SalesLead.last_email_date)
    )
    return list(result.scalars().all())


async def get_active_leads_with_thread(session: AsyncSession) -> list[SalesLead]:
    result = await session.execute(
        select(SalesLead).where(
            SalesLead.status == "active",
            SalesLead.email_thread_id.is_not(None),
        )
    )
    return list(result.scalars().all())


async def get_warm_leads(session: AsyncSession) -> list[SalesLead]:
    """Opened at least once, never replied. Most recently opened first."""
    result = await session.execute(
        select(SalesLead)
        .where(
            SalesLead.status == "active",
            SalesLead.open_count > 0,
            SalesLead.responded_via.is_(None),
        )
        .order_by(SalesLead.last_opened_at.desc())
    )
    return list(result.scalars().all())


async def _update_returning(session: AsyncSession, stmt) -> Optional[SalesLead]:
    result = await session.execute(
        stmt.returning(SalesLead),
        execution_options={"populate_existing": True},
    )
    await session.flush()
    return result.scalar_one_or_none()


async def record_initial_email(
    session: AsyncSession, lead_id: str, thread_id: str, sent_at: datetime
) -> Optional[SalesLead]:
    """First email of the sequence: set the thread and restart the cadence."""
    return await _update_returning(
        session,
        update(SalesLead)
        .where(SalesLead.id == lead_id)
        .values(email_thread_id=thread_id, last_email_date=sent_at, email_followup_count=0),
    )


async def record_followup_email(
    session: AsyncSession, lead_id: str, thread_id: Optional[str], sent_at: datetime
) -> Optional[SalesLead]:
    """A follow-up went out: advance the counter by exactly one."""
    values = {
        "last_email_date": sent_at,
        "email_followup_count": SalesLead.email_followup_count + 1,
    }
    if thread_id:
        values["email_thread_id"] = thread_id
    return await _update_returning(
        session, update(SalesLead).where(SalesLead.id == lead_id).values(**values)
    )


async def record_email_open(
    session: AsyncSession, lead_id: str, opened_at: datetime
) -> Optional[SalesLead]:
    return await _update_returning(
        session,
        update(SalesLead)
        .where(SalesLead.id == lead_id)
        .values(
            open_count=SalesLead.open_count + 1,
            first_opened_at=func.coalesce(SalesLead.first_opened_at, opened_at),
            last_opened_at=opened_at,
        ),
    )


async def record_linkedin_activity(
    session: AsyncSession, lead_id: str, kind: str, sent_at: datetime
) -> Optional[SalesLead]:
    """kind is 'request' (connection request) or 'message' (DM)."""
    if kind == "request":
        values = {"linkedin_request_sent": True, "last_linkedin_date": sent_at}
    elif kind == "message":
        values = {
            "linkedin_message_count": SalesLead.linkedin_message_count + 1,
            "last_linkedin_date": sent_at,
        }
    else:
        raise ValueError(f"Unknown LinkedIn activity kind: {kind!r}")
    return await _update_returning(
        session, update(SalesLead).where(SalesLead.id == lead_id).values(**values)
    )


async def mark_linkedin_connected(
    session: AsyncSession, lead_id: str, linkedin_id: Optional[str] = None
) -> Optional[SalesLead]:
    values = {"linkedin_connected": True}
    if linkedin_id:
        values["linkedin_id"] = linkedin_id
    return await _update_returning(
        session, update(SalesLead).where(SalesLead.id == lead_id).values(**values)
    )


async def update_status(
    session: AsyncSession,
    lead_id: str,
    status: str,
    responded_via: Optional[str] = None,
) -> Optional[SalesLead]:
    """Move an active lead to a terminal status.

    Returns None when the lead is missing or no longer active; a terminal
    lead is never moved again.
    """
    # responded_via only survives on a 'responded' move
    values = {"status": status, "responded_via": responded_via}
    return await _update_returning(
        session,
        update(SalesLead)
        .where(SalesLead.id == lead_id, SalesLead.status == "active")
        .values(**values),
    )


async def snooze(
    session: AsyncSession, lead_id: str, until: datetime
) -> Optional[SalesLead]:
    return await _update_returning(
        session,
        update(SalesLead).where(SalesLead.id == lead_id).values(snoozed_until=until),
    )


async def get_statistics(session: AsyncSession) -> LeadStatistics:
    result = await session.execute(
        select(SalesLead.status, func.count()).group_by(SalesLead.status)
    )
    by_status = {status: count for status, count in result.all()}
    return LeadStatistics(
        total=sum(by_status.values()),
        active=by_status.get("active", 0),
        responded=by_status.get("responded", 0),
        cold=by_status.get("cold", 0),
    )
