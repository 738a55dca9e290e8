"""Unit tests for follow-up draft generation."""
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from db.models import SalesLead
from schemas.meeting import EndedMeeting, MeetingAttendee, MeetingNotes
from tools.drafting import LlmDraftGenerator, TemplateDraftGenerator, parse_draft_json


DRAFTING_MODULE = "tools.drafting"


def _lead(open_count=0):
    return SalesLead(
        id="jane-acme-com",
        email="jane@acme.com",
        name="Jane Doe",
        company="Acme",
        open_count=open_count,
        meeting_date=None,
        meeting_title="Intro call",
        meeting_notes_summary="Talked about renewal timing",
    )


def _meeting():
    end = datetime(2026, 3, 4, 15, 0, tzinfo=timezone.utc)
    return EndedMeeting(
        id="evt-1",
        title="Ola <> Joe (Jencap)",
        start_time=end,
        end_time=end,
        attendees=[
            MeetingAttendee(email="ola@useunderflow.com", name="Ola", is_external=False),
            MeetingAttendee(email="joe@jencap.com", name="Joe Smith", is_external=True),
        ],
    )


def _notes():
    return MeetingNotes(
        id="n-1",
        subject="notes",
        body="Summary\n- Pricing\n- Timeline",
        received_at=datetime(2026, 3, 4, 15, 5, tzinfo=timezone.utc),
        key_points=["Pricing", "Timeline"],
    )


def _completion(text):
    resp = MagicMock()
    resp.choices = [MagicMock()]
    resp.choices[0].message.content = text
    return resp


class TestParseDraftJson:
    def test_plain_json(self):
        draft = parse_draft_json('{"subject": "Hi", "body": "Hello"}')
        assert draft.subject == "Hi"
        assert draft.body == "Hello"

    def test_code_fence(self):
        draft = parse_draft_json('Here you go:\n```json\n{"subject": "Hi", "body": "Hello"}\n```')
        assert draft.subject == "Hi"

    def test_missing_fields(self):
        assert parse_draft_json('{"subject": "Hi"}') is None
        assert parse_draft_json("no json here") is None
        assert parse_draft_json("{not: valid}") is None


class TestTemplateDrafts:
    @pytest.mark.asyncio
    async def test_final_stage_closes_the_loop(self):
        draft = await TemplateDraftGenerator().draft_lead_follow_up(_lead(), "final")
        assert draft.subject == "Underflow - Closing the loop"
        assert draft.to == ["jane@acme.com"]

    @pytest.mark.asyncio
    async def test_meeting_recap(self):
        draft = await TemplateDraftGenerator().draft_meeting_follow_up(_meeting(), _notes())
        assert draft.subject == "Following up: Ola <> Joe (Jencap)"
        assert draft.body.startswith("Hi Joe,")
        assert "• Pricing" in draft.body
        assert draft.to == ["joe@jencap.com"]


class TestLlmDrafts:
    @pytest.mark.asyncio
    @patch(f"{DRAFTING_MODULE}.litellm.acompletion", new_callable=AsyncMock)
    async def test_uses_model_output(self, mock_completion):
        mock_completion.return_value = _completion('{"subject": "Renewal timing", "body": "Hi Jane"}')

        draft = await LlmDraftGenerator(model="test-model").draft_lead_follow_up(_lead(open_count=2), "second")

        assert draft.subject == "Renewal timing"
        assert draft.to == ["jane@acme.com"]
        kwargs = mock_completion.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert "WARM LEAD" in kwargs["messages"][1]["content"]
        assert "#2" in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    @patch(f"{DRAFTING_MODULE}.litellm.acompletion", new_callable=AsyncMock)
    async def test_falls_back_to_template_on_error(self, mock_completion):
        mock_completion.side_effect = RuntimeError("rate limited")

        draft = await LlmDraftGenerator(model="test-model").draft_lead_follow_up(_lead(), "first")

        assert draft.subject == "Underflow - Quick follow-up"

    @pytest.mark.asyncio
    @patch(f"{DRAFTING_MODULE}.litellm.acompletion", new_callable=AsyncMock)
    async def test_unstructured_reply_kept_as_body(self, mock_completion):
        mock_completion.return_value = _completion("Thanks again for the call, Joe.")

        draft = await LlmDraftGenerator(model="test-model").draft_meeting_follow_up(_meeting(), _notes())

        assert draft.subject == "Following up: Ola <> Joe (Jencap)"
        assert draft.body == "Thanks again for the call, Joe."
        assert draft.to == ["joe@jencap.com"]
