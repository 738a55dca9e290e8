"""Calendar, email and meeting-notes schemas exchanged with the provider."""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class EmailAddress(BaseModel):
    email: str
    name: Optional[str] = None


class Email(BaseModel):
    id: str
    subject: Optional[str] = None
    from_address: Optional[EmailAddress] = None
    to: List[EmailAddress] = Field(default_factory=list)
    date: Optional[datetime] = None
    body: Optional[str] = None


class CalendarEvent(BaseModel):
    """A raw calendar event as the provider reports it."""
    id: str
    title: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    attendees: List[EmailAddress] = Field(default_factory=list)
    description: Optional[str] = None
    meeting_url: Optional[str] = None


class MeetingAttendee(BaseModel):
    email: str
    name: Optional[str] = None
    is_external: bool


class EndedMeeting(BaseModel):
    id: str
    title: str
    start_time: datetime
    end_time: datetime
    attendees: List[MeetingAttendee]
    description: Optional[str] = None
    meeting_url: Optional[str] = None

    @property
    def external_attendees(self) -> List[MeetingAttendee]:
        return [a for a in self.attendees if a.is_external]

    @property
    def primary_recipient(self) -> Optional[MeetingAttendee]:
        external = self.external_attendees
        return external[0] if external else None


class ParsedNotes(BaseModel):
    key_points: List[str] = Field(default_factory=list)
    action_items: List[str] = Field(default_factory=list)
    next_steps: List[str] = Field(default_factory=list)


class MeetingNotes(ParsedNotes):
    id: str
    subject: str
    body: str
    received_at: datetime


MeetingClassificationLabel = Literal["sales", "skip"]


class MeetingClassification(BaseModel):
    classification: MeetingClassificationLabel
    reason: str
    priority: Literal["high", "medium", "low"] = "low"


class Draft(BaseModel):
    subject: str
    body: str
    to: List[str] = Field(default_factory=list)


class BackfillResult(BaseModel):
    processed: int = 0
    surfaced: int = 0
    skipped: int = 0
