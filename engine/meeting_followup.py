"""Post-meeting follow-up discovery.

Polls the calendar for meetings with outside attendees that have ended,
pairs each with its notes email and surfaces one follow-up draft per
meeting. The surfaced_meetings ledger makes every step idempotent on the
calendar event id.
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional

from dateutil.relativedelta import relativedelta

from db.connection import Database
from db.models import SalesLead
from db.repositories import leads as leads_repo
from db.repositories import meetings as meetings_repo
from engine.cadence import CadenceEngine
from engine.errors import UnknownMeetingError
from engine.notes_matching import DEFAULT_NOTES_SENDER, find_matching_meeting_notes
from schemas.lead import LeadCreate
from schemas.meeting import (
    BackfillResult,
    CalendarEvent,
    EndedMeeting,
    MeetingAttendee,
    MeetingNotes,
)
from tools.provider import (
    DraftGenerator,
    EmailProvider,
    MeetingClassifier,
    Presenter,
    classify_by_attendees,
)

logger = logging.getLogger(__name__)

RECENT_EVENTS_LIMIT = 50
HISTORICAL_EVENTS_LIMIT = 200
SENT_HISTORY_LIMIT = 20
PERSONAL_EMAIL_DOMAINS = frozenset({"gmail", "yahoo", "hotmail"})


def company_from_email(email: str) -> Optional[str]:
    """'joe@jencap.com' → 'Jencap'. None for personal mailboxes."""
    label = email.rsplit("@", 1)[-1].split(".")[0].lower()
    if not label or label in PERSONAL_EMAIL_DOMAINS:
        return None
    return label.capitalize()


def summarize_notes(notes: MeetingNotes) -> Optional[str]:
    items = notes.key_points[:2] + notes.action_items[:2]
    return "; ".join(items) or None


def to_ended_meeting(event: CalendarEvent, company_domain: str) -> Optional[EndedMeeting]:
    """Convert a raw calendar event; None when its times can't be read."""
    if event.start_time is None or event.end_time is None:
        return None
    suffix = f"@{company_domain.lower()}"
    attendees = [
        MeetingAttendee(
            email=a.email,
            name=a.name,
            is_external=not a.email.lower().endswith(suffix),
        )
        for a in event.attendees
        if a.email
    ]
    return EndedMeeting(
        id=event.id,
        title=event.title or "Untitled",
        start_time=event.start_time,
        end_time=event.end_time,
        attendees=attendees,
        description=event.description,
        meeting_url=event.meeting_url,
    )


class MeetingFollowUpService:
    def __init__(
        self,
        database: Database,
        provider: Optional[EmailProvider],
        drafter: DraftGenerator,
        presenter: Presenter,
        cadence: CadenceEngine,
        classifier: MeetingClassifier = classify_by_attendees,
        company_domain: str = "useunderflow.com",
        notes_sender: str = DEFAULT_NOTES_SENDER,
        clock: Optional[Callable[[], datetime]] = None,
        backfill_pause_seconds: float = 1.0,
    ):
        self.database = database
        self.provider = provider
        self.drafter = drafter
        self.presenter = presenter
        self.cadence = cadence
        self.classifier = classifier
        self.company_domain = company_domain
        self.notes_sender = notes_sender
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self.backfill_pause_seconds = backfill_pause_seconds

    # -- Calendar polling ----------------------------------------------------

    async def _ended_meetings(
        self, start: datetime, end: datetime, limit: int, ended_after: Optional[datetime]
    ) -> List[EndedMeeting]:
        if self.provider is None:
            logger.info("Email/calendar account not configured")
            return []
        try:
            events = await self.provider.get_calendar_events(start, end, limit)
        except Exception:
            logger.warning("Failed to fetch calendar events", exc_info=True)
            return []

        meetings = []
        async with self.database.session() as session:
            for event in events:
                meeting = to_ended_meeting(event, self.company_domain)
                if meeting is None:
                    logger.info("Skipping %r: couldn't parse times", event.title)
                    continue
                if meeting.end_time > end:
                    continue
                if ended_after is not None and meeting.end_time < ended_after:
                    continue
                if await meetings_repo.has_meeting_been_processed(session, meeting.id):
                    logger.debug("Skipping %r: already processed", meeting.title)
                    continue
                if not meeting.external_attendees:
                    logger.debug("Skipping %r: no external attendees", meeting.title)
                    continue
                meetings.append(meeting)
        return meetings

    async def get_recently_ended_meetings(self, minutes_ago: int = 30) -> List[EndedMeeting]:
        now = self._clock()
        meetings = await self._ended_meetings(
            now - timedelta(days=1),
            now,
            RECENT_EVENTS_LIMIT,
            ended_after=now - timedelta(minutes=minutes_ago),
        )
        logger.info("Found %d recently ended meetings with external attendees", len(meetings))
        return meetings

    async def get_historical_meetings(self, days_back: int = 30) -> List[EndedMeeting]:
        now = self._clock()
        meetings = await self._ended_meetings(
            now - relativedelta(days=days_back), now, HISTORICAL_EVENTS_LIMIT, ended_after=None
        )
        logger.info("Found %d historical meetings with external attendees", len(meetings))
        return meetings

    # -- Surfacing -----------------------------------------------------------

    async def has_recently_emailed(self, recipient_email: str, since: datetime) -> bool:
        """Whether anything went to this recipient after `since`. Unknown → False."""
        if self.provider is None:
            return False
        try:
            sent = await self.provider.get_emails(
                to=recipient_email, folder="SENT", limit=SENT_HISTORY_LIMIT
            )
        except Exception:
            logger.warning("Failed to check sent mail to %s", recipient_email, exc_info=True)
            return False
        # The provider's own date filter is unreliable; filter here
        return any(e.date is not None and e.date > since for e in sent)

    async def surface_meeting_follow_up(self, meeting: EndedMeeting, notes: MeetingNotes) -> bool:
        """Draft and present one meeting follow-up. Returns True when something was surfaced."""
        recipient = meeting.primary_recipient
        if recipient is None:
            logger.info("No external attendees for %r", meeting.title)
            return False

        async with self.database.session() as session:
            if await meetings_repo.is_meeting_surfaced(session, meeting.id):
                logger.info("Meeting %r already surfaced", meeting.title)
                return False

        classification = await self.classifier(meeting)
        if classification.classification != "sales":
            logger.info("Skipping %r: %s", meeting.title, classification.reason)
            async with self.database.session() as session:
                await meetings_repo.mark_meeting_surfaced(
                    session,
                    meeting.id,
                    recipient.email,
                    recipient_name=recipient.name,
                    meeting_title=meeting.title,
                    status="skipped",
                )
            return False

        if await self.has_recently_emailed(recipient.email, meeting.end_time):
            logger.info("Skipping %r: already followed up", meeting.title)
            return False

        logger.info("Generating draft for %r", meeting.title)
        draft = await self.drafter.draft_meeting_follow_up(meeting, notes)

        async with self.database.session() as session:
            inserted = await meetings_repo.mark_meeting_surfaced(
                session,
                meeting.id,
                recipient.email,
                recipient_name=recipient.name,
                meeting_title=meeting.title,
                draft_subject=draft.subject,
                draft_body=draft.body,
                meeting_end=meeting.end_time,
                notes_id=notes.id,
                notes_summary=summarize_notes(notes),
            )
        if not inserted:
            return False

        await self.presenter.present_meeting_follow_up(meeting, notes, draft)
        logger.info("Surfaced follow-up for %r", meeting.title)
        return True

    async def discover_meeting_follow_ups(self) -> int:
        """Real-time pass over meetings that just ended. Returns the number surfaced."""
        surfaced = 0
        for meeting in await self.get_recently_ended_meetings(30):
            try:
                notes = await find_matching_meeting_notes(
                    self.provider, meeting, notes_sender=self.notes_sender
                )
                if notes is None:
                    logger.info("No notes yet for %r, will retry later", meeting.title)
                    continue
                if await self.surface_meeting_follow_up(meeting, notes):
                    surfaced += 1
            except Exception:
                logger.warning("Failed to process meeting %s", meeting.id, exc_info=True)
        return surfaced

    async def run_historical_backfill(self, days_back: int = 30) -> BackfillResult:
        logger.info("Backfill: processing last %d days", days_back)
        result = BackfillResult()
        for meeting in await self.get_historical_meetings(days_back):
            result.processed += 1
            try:
                notes = await find_matching_meeting_notes(
                    self.provider, meeting, historical=True, notes_sender=self.notes_sender
                )
                if notes is None:
                    logger.info("No notes for %r", meeting.title)
                    result.skipped += 1
                    continue

                recipient = meeting.primary_recipient
                if recipient and await self.has_recently_emailed(recipient.email, meeting.end_time):
                    # Followed up outside the engine: record it as sent so it never resurfaces
                    async with self.database.session() as session:
                        await meetings_repo.mark_meeting_surfaced(
                            session,
                            meeting.id,
                            recipient.email,
                            recipient_name=recipient.name,
                            meeting_title=meeting.title,
                            status="sent",
                        )
                    result.skipped += 1
                    continue

                if await self.surface_meeting_follow_up(meeting, notes):
                    result.surfaced += 1
                    if self.backfill_pause_seconds:
                        await asyncio.sleep(self.backfill_pause_seconds)
                else:
                    result.skipped += 1
            except Exception:
                logger.warning("Backfill failed for meeting %s", meeting.id, exc_info=True)
                result.skipped += 1

        logger.info(
            "Backfill complete: %d processed, %d surfaced, %d skipped",
            result.processed, result.surfaced, result.skipped,
        )
        return result

    # -- Operator decisions --------------------------------------------------

    async def mark_skipped(self, meeting_id: str) -> None:
        async with self.database.session() as session:
            row = await meetings_repo.update_meeting_status(session, meeting_id, "skipped")
        if row is None:
            raise UnknownMeetingError(meeting_id)

    async def record_sent(self, meeting_id: str, thread_id: str) -> SalesLead:
        """The operator sent the draft: start the lead's cadence from this email.

        Repeating the call for a meeting already recorded as sent returns the
        existing lead without restarting its cadence.
        """
        async with self.database.session() as session:
            row = await meetings_repo.get_surfaced_meeting(session, meeting_id)
            if row is None:
                raise UnknownMeetingError(meeting_id)
            if row.status == "sent":
                existing = await leads_repo.get_by_meeting(session, meeting_id)
                if existing is not None:
                    logger.info("Meeting %s already recorded as sent", meeting_id)
                    return existing
            await meetings_repo.update_meeting_status(session, meeting_id, "sent")
            lead = await leads_repo.create_lead(
                session,
                LeadCreate(
                    email=row.recipient_email,
                    name=row.recipient_name,
                    company=company_from_email(row.recipient_email),
                    meeting_id=meeting_id,
                    meeting_date=row.meeting_end,
                    meeting_title=row.meeting_title,
                    meeting_notes_id=row.notes_id,
                    meeting_notes_summary=row.notes_summary,
                ),
            )
        return await self.cadence.record_email_sent(lead.id, thread_id, is_initial=True)
