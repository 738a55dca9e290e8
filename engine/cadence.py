"""Lead follow-up cadence.

Stage thresholds count days since the immediately preceding email:

  first   followup_count == 0   2 days after the initial email
  second  followup_count == 1   4 days after the first follow-up
  third   followup_count == 2   7 days after the second
  final   followup_count == 3   7 days after the third

After four follow-ups nothing further is automatic; the operator marks the
lead cold. Status only ever moves active → responded or active → cold.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional

from db.connection import Database
from db.models import SalesLead
from db.repositories import leads as leads_repo
from engine.activity_governor import ActivityGovernor
from engine.errors import UnknownLeadError
from schemas.activity import ActivityType
from schemas.lead import (
    CADENCE,
    CadenceStep,
    FollowUpDue,
    LeadStatistics,
    ResponseDetected,
)
from tools.provider import EmailProvider, Presenter

logger = logging.getLogger(__name__)

DEFAULT_SNOOZE_DAYS = 3

_STEP_BY_COUNT = {step.followup_count: step for step in CADENCE}
_LINKEDIN_ACTIVITY = {"request": ActivityType.INVITATION, "message": ActivityType.MESSAGE}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed, rounded down."""
    return (later - earlier) // timedelta(days=1)


def due_step(lead: SalesLead, now: datetime) -> Optional[CadenceStep]:
    """The cadence step this lead is due for right now, if any."""
    if lead.status != "active" or lead.last_email_date is None:
        return None
    if lead.snoozed_until is not None and lead.snoozed_until > now:
        return None
    step = _STEP_BY_COUNT.get(lead.email_followup_count)
    if step is None:
        return None
    if days_between(lead.last_email_date, now) < step.min_days:
        return None
    return step


class CadenceEngine:
    def __init__(
        self,
        database: Database,
        provider: Optional[EmailProvider] = None,
        governor: Optional[ActivityGovernor] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.database = database
        self.provider = provider
        self._clock = clock or _utcnow
        self.governor = governor or ActivityGovernor(database, clock=self._clock)

    def now(self) -> datetime:
        return self._clock()

    async def _require_lead(self, session, lead_id: str) -> SalesLead:
        lead = await leads_repo.get_by_id(session, lead_id)
        if lead is None:
            raise UnknownLeadError(lead_id)
        return lead

    # -- Scheduling ----------------------------------------------------------

    async def get_follow_ups_due(self) -> List[FollowUpDue]:
        """Snapshot of leads due now. Warm leads first, then longest idle."""
        now = self.now()
        async with self.database.session() as session:
            leads = await leads_repo.get_active_leads(session)

        due = []
        for lead in leads:
            step = due_step(lead, now)
            if step is None:
                continue
            due.append(
                FollowUpDue(
                    lead=lead,
                    stage=step.stage,
                    days_since_last_email=days_between(lead.last_email_date, now),
                    is_warm=lead.is_warm,
                )
            )
        due.sort(key=lambda d: (not d.is_warm, -d.days_since_last_email))
        return due

    # -- Responses -----------------------------------------------------------

    async def detect_responses(self) -> List[ResponseDetected]:
        """Scan each active lead's thread for a reply newer than our last email."""
        if self.provider is None:
            logger.info("Email provider not configured; skipping response detection")
            return []

        async with self.database.session() as session:
            leads = await leads_repo.get_active_leads_with_thread(session)
        if not leads:
            return []

        logger.info("Checking %d threads for responses", len(leads))
        responses = []
        for lead in leads:
            try:
                thread = await self.provider.get_email_thread(lead.email_thread_id)
            except Exception:
                logger.warning("Failed to check thread %s", lead.email_thread_id, exc_info=True)
                continue

            lead_email = lead.email.lower()
            for message in thread:
                sender = message.from_address.email.lower() if message.from_address else None
                if sender != lead_email:
                    continue
                if lead.last_email_date is None or (
                    message.date is not None and message.date > lead.last_email_date
                ):
                    responses.append(ResponseDetected(lead=lead, response_email=message))
                    break

        logger.info("Detected %d responses", len(responses))
        return responses

    async def process_responses(
        self, responses: List[ResponseDetected], presenter: Presenter
    ) -> int:
        """Mark each replying lead responded and hand it to the presenter."""
        handled = 0
        for response in responses:
            try:
                await self.mark_responded(response.lead.id, "email")
                await presenter.present_response(response)
                handled += 1
            except Exception:
                logger.warning("Failed to process response from %s", response.lead.email, exc_info=True)
        return handled

    # -- Status transitions --------------------------------------------------

    async def _transition(
        self, lead_id: str, status: str, responded_via: Optional[str] = None
    ) -> SalesLead:
        async with self.database.session() as session:
            lead = await self._require_lead(session, lead_id)
            if lead.status != "active":
                logger.info("Lead %s is already %s; not moving to %s", lead_id, lead.status, status)
                return lead
            updated = await leads_repo.update_status(session, lead_id, status, responded_via)
        if updated is None:
            # Lost a race with another terminal transition
            async with self.database.session() as session:
                return await self._require_lead(session, lead_id)
        logger.info("Lead %s → %s", lead_id, status)
        return updated

    async def mark_responded(self, lead_id: str, channel: str) -> SalesLead:
        if channel not in ("email", "linkedin"):
            raise ValueError(f"Unknown response channel: {channel!r}")
        return await self._transition(lead_id, "responded", responded_via=channel)

    async def mark_cold(self, lead_id: str) -> SalesLead:
        return await self._transition(lead_id, "cold")

    # -- Email tracking ------------------------------------------------------

    async def record_email_sent(
        self, lead_id: str, thread_id: Optional[str], is_initial: bool = False
    ) -> SalesLead:
        now = self.now()
        async with self.database.session() as session:
            if is_initial:
                lead = await leads_repo.record_initial_email(session, lead_id, thread_id, now)
            else:
                lead = await leads_repo.record_followup_email(session, lead_id, thread_id, now)
        if lead is None:
            raise UnknownLeadError(lead_id)
        logger.info(
            "Recorded %s email for %s (follow-ups: %d)",
            "initial" if is_initial else "follow-up",
            lead_id,
            lead.email_followup_count,
        )
        return lead

    async def record_email_open(self, lead_id: str) -> SalesLead:
        async with self.database.session() as session:
            lead = await leads_repo.record_email_open(session, lead_id, self.now())
        if lead is None:
            raise UnknownLeadError(lead_id)
        return lead

    async def snooze(self, lead_id: str, days: int = DEFAULT_SNOOZE_DAYS) -> SalesLead:
        """Hold the lead out of the due list for the given number of days."""
        until = self.now() + timedelta(days=days)
        async with self.database.session() as session:
            lead = await leads_repo.snooze(session, lead_id, until)
        if lead is None:
            raise UnknownLeadError(lead_id)
        logger.info("Snoozed %s until %s", lead_id, until.isoformat())
        return lead

    # -- LinkedIn tracking ---------------------------------------------------

    async def record_linkedin_activity(self, lead_id: str, kind: str) -> SalesLead:
        async with self.database.session() as session:
            lead = await leads_repo.record_linkedin_activity(session, lead_id, kind, self.now())
        if lead is None:
            raise UnknownLeadError(lead_id)
        return lead

    async def send_linkedin_touch(
        self, lead_id: str, kind: str, action: Callable[[], Awaitable[Any]]
    ) -> Dict[str, Any]:
        """Run a LinkedIn request/message through the governor, then track it on the lead."""
        if kind not in _LINKEDIN_ACTIVITY:
            raise ValueError(f"Unknown LinkedIn activity kind: {kind!r}")
        async with self.database.session() as session:
            await self._require_lead(session, lead_id)

        outcome = await self.governor.run_governed(_LINKEDIN_ACTIVITY[kind], action)
        if outcome["success"]:
            await self.record_linkedin_activity(lead_id, kind)
        return outcome

    async def mark_linkedin_connected(
        self, lead_id: str, linkedin_id: Optional[str] = None
    ) -> SalesLead:
        async with self.database.session() as session:
            lead = await leads_repo.mark_linkedin_connected(session, lead_id, linkedin_id)
        if lead is None:
            raise UnknownLeadError(lead_id)
        return lead

    async def get_statistics(self) -> LeadStatistics:
        async with self.database.session() as session:
            return await leads_repo.get_statistics(session)
