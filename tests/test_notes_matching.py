"""Tests for matching meeting-notes emails to calendar events."""
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from engine.notes_matching import (
    DEFAULT_NOTES_SENDER,
    find_best_match,
    find_matching_meeting_notes,
    parse_meeting_notes_content,
    score_candidate,
)
from schemas.meeting import Email, EndedMeeting, MeetingAttendee

NOTES_BODY = """Meeting notes

Summary
- Discussed renewal pricing
- Budget approved for Q2

Action Items
* Send the proposal by Friday

Next Steps
• Schedule a technical demo
"""


@pytest.fixture
def meeting(clock):
    end = clock()
    return EndedMeeting(
        id="evt-1",
        title="Ola <> Joe (Jencap)",
        start_time=end - timedelta(minutes=30),
        end_time=end,
        attendees=[
            MeetingAttendee(email="ola@useunderflow.com", name="Ola", is_external=False),
            MeetingAttendee(email="joe@jencap.com", name="Joe Smith", is_external=True),
        ],
    )


def _email(message_id, subject, when, body=""):
    return Email(id=message_id, subject=subject, date=when, body=body)


class TestScoring:
    def test_title_beats_earlier_unrelated_mail(self, meeting):
        unrelated = _email("m-1", "Your weekly digest", meeting.end_time + timedelta(minutes=2))
        notes = _email(
            "m-2",
            "Meeting notes: Ola <> Joe (Jencap)",
            meeting.end_time + timedelta(minutes=5),
        )

        assert score_candidate(meeting, unrelated) == 5
        assert score_candidate(meeting, notes) == 15
        assert find_best_match(meeting, [unrelated, notes]) is notes

    def test_attendee_name_and_email_count(self, meeting):
        email = _email(
            "m-1",
            "Call recap",
            meeting.end_time + timedelta(hours=2),
            body="Notes from the call with Joe Smith <joe@jencap.com>",
        )
        assert score_candidate(meeting, email) == 8

    def test_internal_attendees_do_not_score(self, meeting):
        email = _email("m-1", "Ola's notes", meeting.end_time + timedelta(hours=2))
        assert score_candidate(meeting, email) == 0

    def test_proximity_decays_and_stops_at_thirty_minutes(self, meeting):
        def at(minutes):
            return score_candidate(meeting, _email("m", "x", meeting.end_time + timedelta(minutes=minutes)))

        assert at(0) == 5
        assert at(6) == 4
        assert at(29) == 1
        assert at(30) == 0
        assert at(-1) == 0

    def test_proximity_alone_below_floor_is_rejected(self, meeting):
        late = _email("m-1", "Newsletter", meeting.end_time + timedelta(minutes=20))
        assert score_candidate(meeting, late) == 2
        assert find_best_match(meeting, [late]) is None

    def test_tie_goes_to_first_candidate(self, meeting):
        first = _email("m-1", "Recap", meeting.end_time + timedelta(minutes=1))
        second = _email("m-2", "Recap", meeting.end_time + timedelta(minutes=3))
        assert find_best_match(meeting, [first, second]) is first

    def test_no_candidates(self, meeting):
        assert find_best_match(meeting, []) is None


class TestParseNotes:
    def test_sections(self):
        parsed = parse_meeting_notes_content(NOTES_BODY)
        assert parsed.key_points == ["Discussed renewal pricing", "Budget approved for Q2"]
        assert parsed.action_items == ["Send the proposal by Friday"]
        assert parsed.next_steps == ["Schedule a technical demo"]

    def test_bullets_before_any_header_are_ignored(self):
        parsed = parse_meeting_notes_content("- stray bullet\nTo-do\n- ship the demo")
        assert parsed.key_points == []
        assert parsed.action_items == ["ship the demo"]

    def test_bullet_naming_a_section_switches_to_it(self):
        parsed = parse_meeting_notes_content("Summary\n- Discussed follow-up timing\n- Budget ok")
        assert parsed.key_points == []
        assert parsed.next_steps == ["Budget ok"]

    def test_unrecognised_layout_gives_empty_lists(self):
        parsed = parse_meeting_notes_content("Thanks for the call, talk soon!")
        assert parsed.key_points == []
        assert parsed.action_items == []
        assert parsed.next_steps == []

    def test_empty_body(self):
        assert parse_meeting_notes_content("").key_points == []


class TestFindMatchingNotes:
    @pytest.mark.asyncio
    async def test_realtime_search_starts_at_meeting_end(self, meeting):
        provider = MagicMock()
        provider.get_emails = AsyncMock(
            return_value=[
                _email(
                    "notes-1",
                    "Ola <> Joe (Jencap) - notes",
                    meeting.end_time + timedelta(minutes=4),
                    body=NOTES_BODY,
                )
            ]
        )

        notes = await find_matching_meeting_notes(provider, meeting)

        provider.get_emails.assert_awaited_once_with(
            from_address=DEFAULT_NOTES_SENDER, after=meeting.end_time, limit=10
        )
        assert notes.id == "notes-1"
        assert notes.received_at == meeting.end_time + timedelta(minutes=4)
        assert notes.action_items == ["Send the proposal by Friday"]

    @pytest.mark.asyncio
    async def test_historical_search_looks_back_a_day(self, meeting):
        provider = MagicMock()
        provider.get_emails = AsyncMock(return_value=[])

        notes = await find_matching_meeting_notes(
            provider, meeting, historical=True, notes_sender="notes@example.com"
        )

        assert notes is None
        provider.get_emails.assert_awaited_once_with(
            from_address="notes@example.com",
            after=meeting.end_time - timedelta(days=1),
            limit=30,
        )

    @pytest.mark.asyncio
    async def test_provider_failure_means_no_notes(self, meeting):
        provider = MagicMock()
        provider.get_emails = AsyncMock(side_effect=RuntimeError("timeout"))
        assert await find_matching_meeting_notes(provider, meeting) is None

    @pytest.mark.asyncio
    async def test_no_provider(self, meeting):
        assert await find_matching_meeting_notes(None, meeting) is None
