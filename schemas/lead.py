"""Lead cadence schemas."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from db.models import SalesLead
from schemas.meeting import Email


FollowUpStage = Literal["first", "second", "third", "final"]
LeadStatus = Literal["active", "responded", "cold"]
ResponseChannel = Literal["email", "linkedin"]
LinkedInActivityKind = Literal["request", "message"]


class CadenceStep(BaseModel):
    stage: FollowUpStage
    followup_count: int = Field(ge=0)
    min_days: int = Field(ge=0)


# Days are counted from the immediately preceding email, not from the meeting.
CADENCE = (
    CadenceStep(stage="first", followup_count=0, min_days=2),
    CadenceStep(stage="second", followup_count=1, min_days=4),
    CadenceStep(stage="third", followup_count=2, min_days=7),
    CadenceStep(stage="final", followup_count=3, min_days=7),
)

MAX_AUTOMATIC_FOLLOWUPS = len(CADENCE)


class LeadCreate(BaseModel):
    email: str
    name: Optional[str] = None
    company: Optional[str] = None
    linkedin_id: Optional[str] = None
    linkedin_connected: bool = False
    meeting_id: Optional[str] = None
    meeting_date: Optional[datetime] = None
    meeting_title: Optional[str] = None
    meeting_notes_id: Optional[str] = None
    meeting_notes_summary: Optional[str] = None


class FollowUpDue(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    lead: SalesLead
    stage: FollowUpStage
    days_since_last_email: int
    is_warm: bool  # opened but hasn't replied


class ResponseDetected(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    lead: SalesLead
    response_email: Email


class LeadStatistics(BaseModel):
    total: int = 0
    active: int = 0
    responded: int = 0
    cold: int = 0


class SurfacedMeetingStatistics(BaseModel):
    total: int = 0
    surfaced: int = 0
    skipped: int = 0
    sent: int = 0
