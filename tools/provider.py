"""Collaborator contracts the engine talks to.

The engine never imports a concrete provider SDK; it depends on these
Protocols and receives implementations at construction time.
"""
import logging
from datetime import datetime
from typing import List, Optional, Protocol

from db.models import SalesLead
from schemas.lead import FollowUpDue, FollowUpStage, ResponseDetected
from schemas.meeting import (
    CalendarEvent,
    Draft,
    Email,
    EndedMeeting,
    MeetingClassification,
    MeetingNotes,
)

logger = logging.getLogger(__name__)


class ProviderError(RuntimeError):
    """A provider call failed (HTTP error, timeout, malformed payload)."""


class EmailProvider(Protocol):
    async def get_emails(
        self,
        from_address: Optional[str] = None,
        to: Optional[str] = None,
        folder: Optional[str] = None,
        after: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Email]: ...

    async def get_email_thread(self, thread_id: str) -> List[Email]: ...

    async def get_calendar_events(
        self, start: datetime, end: datetime, limit: int = 100
    ) -> List[CalendarEvent]: ...


class DraftGenerator(Protocol):
    async def draft_lead_follow_up(self, lead: SalesLead, stage: FollowUpStage) -> Draft: ...

    async def draft_meeting_follow_up(self, meeting: EndedMeeting, notes: MeetingNotes) -> Draft: ...


class MeetingClassifier(Protocol):
    async def __call__(self, meeting: EndedMeeting) -> MeetingClassification: ...


class Presenter(Protocol):
    """Where drafts and detected replies go for a human decision."""

    async def present_follow_up(self, due: FollowUpDue, draft: Draft) -> None: ...

    async def present_response(self, response: ResponseDetected) -> None: ...

    async def present_meeting_follow_up(
        self, meeting: EndedMeeting, notes: MeetingNotes, draft: Draft
    ) -> None: ...


async def classify_by_attendees(meeting: EndedMeeting) -> MeetingClassification:
    """Default classifier: any meeting with an outside attendee is a sales meeting."""
    if meeting.external_attendees:
        return MeetingClassification(
            classification="sales",
            reason="Meeting has external attendees",
            priority="medium",
        )
    return MeetingClassification(classification="skip", reason="No external attendees")


class LoggingPresenter:
    """Presenter that writes everything to the log. Used when no UI is wired."""

    async def present_follow_up(self, due: FollowUpDue, draft: Draft) -> None:
        logger.info(
            "Follow-up due (%s%s) for %s after %d days: %s",
            due.stage,
            ", warm" if due.is_warm else "",
            due.lead.email,
            due.days_since_last_email,
            draft.subject,
        )

    async def present_response(self, response: ResponseDetected) -> None:
        logger.info(
            "Reply from %s: %s",
            response.lead.email,
            response.response_email.subject or "(no subject)",
        )

    async def present_meeting_follow_up(
        self, meeting: EndedMeeting, notes: MeetingNotes, draft: Draft
    ) -> None:
        logger.info(
            "Meeting follow-up ready for '%s' → %s: %s",
            meeting.title,
            ", ".join(draft.to) or "(no recipients)",
            draft.subject,
        )
