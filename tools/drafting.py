"""Follow-up draft generation.

TemplateDraftGenerator returns fixed placeholder drafts the operator edits.
LlmDraftGenerator asks the configured model for JSON {"subject", "body"} and
falls back to the templates whenever the call or the parse fails.
"""
import json
import logging
import re
from typing import Optional

import litellm

from db.models import SalesLead
from model_config import get_llm_model
from schemas.lead import FollowUpStage
from schemas.meeting import Draft, EndedMeeting, MeetingNotes

logger = logging.getLogger(__name__)

STAGE_NUMBER = {"first": 1, "second": 2, "third": 3, "final": 4}

FALLBACK_BODIES = {
    "first": "Saw some relevant news about your space. Thought it might be useful.",
    "second": "Quick question about what you mentioned in our call. Is that still the main priority?",
    "third": "Know you're busy. Is this still on your radar or should I check back later?",
    "final": "Closing the loop. Reach out whenever timing is better.",
}

LEAD_FOLLOWUP_PROMPT = """You write short, specific sales follow-up emails after a discovery call.
This is follow-up #{followup_number}. Give a concrete reason for writing today,
never repeat an earlier angle, and keep it under 80 words.
Return only JSON with "subject" and "body" fields."""

MEETING_FOLLOWUP_PROMPT = """You write the recap email sent right after a sales meeting.
Reference the specific points discussed, confirm action items and propose the next step.
Return only JSON with "subject" and "body" fields."""

_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def _first_name(name: Optional[str]) -> str:
    return name.split(" ")[0] if name else "there"


def _bullets(items, marker: str = "-") -> str:
    return "\n".join(f"{marker} {item}" for item in items) or "None"


def parse_draft_json(text: str) -> Optional[Draft]:
    """Pull {"subject", "body"} out of a model reply, tolerating code fences."""
    fenced = _CODE_FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    match = _JSON_OBJECT.search(text)
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        logger.warning("Draft JSON parse failed", exc_info=True)
        return None
    if not isinstance(parsed, dict) or not parsed.get("subject") or not parsed.get("body"):
        return None
    return Draft(subject=parsed["subject"], body=parsed["body"])


class TemplateDraftGenerator:
    """Fixed drafts, used on their own or as the LLM fallback."""

    def __init__(self, company_name: str = "Underflow", sender_name: str = "Ola"):
        self.company_name = company_name
        self.sender_name = sender_name

    async def draft_lead_follow_up(self, lead: SalesLead, stage: FollowUpStage) -> Draft:
        label = "Closing the loop" if stage == "final" else "Quick follow-up"
        return Draft(
            subject=f"{self.company_name} - {label}",
            body=FALLBACK_BODIES[stage],
            to=[lead.email],
        )

    async def draft_meeting_follow_up(self, meeting: EndedMeeting, notes: MeetingNotes) -> Draft:
        recipient = meeting.primary_recipient
        key_points = "\n".join(f"• {p}" for p in notes.key_points)
        body = (
            f"Hi {_first_name(recipient.name if recipient else None)},\n\n"
            "Great speaking with you today. Here are the key points:\n\n"
            f"{key_points}\n\n"
            "Let me know if you have any questions.\n\n"
            f"Best,\n{self.sender_name}"
        )
        return Draft(
            subject=f"Following up: {meeting.title}",
            body=body,
            to=[a.email for a in meeting.external_attendees],
        )


class LlmDraftGenerator:
    """Drafts written by the active litellm model."""

    def __init__(
        self,
        fallback: Optional[TemplateDraftGenerator] = None,
        model: Optional[str] = None,
        max_tokens: int = 1024,
    ):
        self.fallback = fallback or TemplateDraftGenerator()
        self.model = model or get_llm_model()
        self.max_tokens = max_tokens

    async def _complete(self, system_prompt: str, user_prompt: str) -> str:
        response = await litellm.acompletion(
            model=self.model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or ""

    async def draft_lead_follow_up(self, lead: SalesLead, stage: FollowUpStage) -> Draft:
        warm = lead.open_count > 0
        user_prompt = (
            f"Lead: {lead.name or lead.email}\n"
            f"Company: {lead.company or lead.email.split('@')[-1]}\n"
            f"Original meeting: {lead.meeting_title or 'Unknown'}\n"
            f"Meeting date: {lead.meeting_date.date() if lead.meeting_date else 'Unknown'}\n\n"
            f"=== ORIGINAL MEETING NOTES ===\n{lead.meeting_notes_summary or 'No summary available'}\n\n"
            f"Follow-up number: {STAGE_NUMBER[stage]} ({stage})\n"
        )
        if warm:
            user_prompt += (
                f"WARM LEAD: they opened the last email {lead.open_count} time(s). "
                "Keep it to 1-2 sentences with a simple yes/no question.\n"
            )
        try:
            text = await self._complete(
                LEAD_FOLLOWUP_PROMPT.format(followup_number=STAGE_NUMBER[stage]), user_prompt
            )
        except Exception:
            logger.warning("Lead follow-up generation failed for %s", lead.id, exc_info=True)
            return await self.fallback.draft_lead_follow_up(lead, stage)

        draft = parse_draft_json(text)
        if draft is None:
            label = "Closing the loop" if stage == "final" else "Following up"
            draft = Draft(subject=f"{self.fallback.company_name} - {label}", body=text)
        draft.to = [lead.email]
        logger.info("Generated %s follow-up for %s: %s", stage, lead.email, draft.subject)
        return draft

    async def draft_meeting_follow_up(self, meeting: EndedMeeting, notes: MeetingNotes) -> Draft:
        recipients = [a.email for a in meeting.external_attendees]
        primary = meeting.primary_recipient
        attendees = ", ".join(f"{a.name or 'Unknown'} ({a.email})" for a in meeting.attendees)
        user_prompt = (
            f"Meeting: {meeting.title}\n"
            f"Date: {meeting.end_time.date()}\n"
            f"Attendees: {attendees}\n"
            f"Primary recipient: {(primary.name or primary.email) if primary else 'Unknown'}\n\n"
            "=== MEETING NOTES ===\n"
            f"Key Points:\n{_bullets(notes.key_points)}\n"
            f"Action Items:\n{_bullets(notes.action_items)}\n"
            f"Next Steps:\n{_bullets(notes.next_steps)}\n\n"
            f"=== FULL NOTES ===\n{notes.body}\n"
        )
        try:
            text = await self._complete(MEETING_FOLLOWUP_PROMPT, user_prompt)
        except Exception:
            logger.warning("Meeting follow-up generation failed for %s", meeting.id, exc_info=True)
            return await self.fallback.draft_meeting_follow_up(meeting, notes)

        draft = parse_draft_json(text) or Draft(subject=f"Following up: {meeting.title}", body=text)
        draft.to = recipients
        return draft
