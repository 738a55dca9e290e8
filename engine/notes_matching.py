"""Meeting-notes matching.

The notes assistant mails its summary some time after a call ends, with no
reference back to the calendar event. Candidates are scored on textual
overlap and arrival time, and the best one is accepted only above a floor
so a lone time-proximity signal never binds unrelated mail to a meeting.
"""
import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from schemas.meeting import Email, EndedMeeting, MeetingNotes, ParsedNotes
from tools.provider import EmailProvider

logger = logging.getLogger(__name__)

DEFAULT_NOTES_SENDER = "assistant@day.ai"
MIN_MATCH_SCORE = 3
TITLE_SCORE = 10
NAME_SCORE = 5
EMAIL_SCORE = 3
PROXIMITY_WINDOW = timedelta(minutes=30)
REALTIME_LIMIT = 10
HISTORICAL_LIMIT = 30

_KEY_HEADERS = re.compile(r"key point|summary|discussion")
_ACTION_HEADERS = re.compile(r"action item|task|to[- ]?do")
_NEXT_HEADERS = re.compile(r"next step|follow[- ]?up")
_BULLET = re.compile(r"^\s*[-•*]\s*(.+)$")


def score_candidate(meeting: EndedMeeting, email: Email) -> int:
    subject = (email.subject or "").lower()
    body = (email.body or "").lower()
    score = 0

    title = meeting.title.lower()
    if title and (title in subject or title in body):
        score += TITLE_SCORE

    for attendee in meeting.external_attendees:
        if attendee.name:
            name = attendee.name.lower()
            if name in subject or name in body:
                score += NAME_SCORE
        if attendee.email.lower() in body:
            score += EMAIL_SCORE

    if email.date is not None:
        late = email.date - meeting.end_time
        if timedelta(0) <= late < PROXIMITY_WINDOW:
            score += 5 - int(late.total_seconds() // 60) // 6
    return score


def find_best_match(meeting: EndedMeeting, emails: Iterable[Email]) -> Optional[Email]:
    """Highest score wins, earlier candidate on ties. None below the floor."""
    best, best_score = None, 0
    for email in emails:
        score = score_candidate(meeting, email)
        if score > best_score:
            best, best_score = email, score

    if best is None or best_score < MIN_MATCH_SCORE:
        return None
    logger.info("Matched notes with score %d: %r", best_score, best.subject)
    return best


def parse_meeting_notes_content(body: str) -> ParsedNotes:
    """Pull bullet lines out of the key-point, action-item and next-step sections.

    Best effort: unrecognised layouts give empty lists.
    """
    sections = {"key": [], "action": [], "next": []}
    current = None
    for line in (body or "").splitlines():
        lowered = line.strip().lower()
        # Any line naming a section switches to it, bullets included
        if _KEY_HEADERS.search(lowered):
            current = "key"
            continue
        if _ACTION_HEADERS.search(lowered):
            current = "action"
            continue
        if _NEXT_HEADERS.search(lowered):
            current = "next"
            continue

        bullet = _BULLET.match(line)
        if bullet is None:
            continue
        content = bullet.group(1).strip()
        if content and current:
            sections[current].append(content)

    return ParsedNotes(
        key_points=sections["key"],
        action_items=sections["action"],
        next_steps=sections["next"],
    )


async def find_matching_meeting_notes(
    provider: Optional[EmailProvider],
    meeting: EndedMeeting,
    historical: bool = False,
    notes_sender: str = DEFAULT_NOTES_SENDER,
) -> Optional[MeetingNotes]:
    """Fetch recent notes mail and return the one matching this meeting.

    Real-time runs look only after the meeting ended; backfill looks from a
    day before the end with a larger candidate limit.
    """
    if provider is None:
        return None

    since = meeting.end_time - timedelta(days=1) if historical else meeting.end_time
    try:
        emails: List[Email] = await provider.get_emails(
            from_address=notes_sender,
            after=since,
            limit=HISTORICAL_LIMIT if historical else REALTIME_LIMIT,
        )
    except Exception:
        logger.warning("Failed to search meeting notes for %s", meeting.id, exc_info=True)
        return None

    if not emails:
        logger.info("No notes found for %r (%s)", meeting.title, meeting.end_time.date())
        return None

    matched = find_best_match(meeting, emails)
    if matched is None:
        logger.info("No matching notes for %r", meeting.title)
        return None

    parsed = parse_meeting_notes_content(matched.body or "")
    return MeetingNotes(
        id=matched.id,
        subject=matched.subject or "Meeting Notes",
        body=matched.body or "",
        received_at=matched.date or datetime.now(timezone.utc),
        key_points=parsed.key_points,
        action_items=parsed.action_items,
        next_steps=parsed.next_steps,
    )
