"""SQLAlchemy 2.0 ORM models for the outreach engine.

Covers 3 independent tables (no foreign keys between them):
  - activity_counts:   per-day, per-activity-type counters
  - sales_leads:       prospects moving through the email follow-up cadence
  - surfaced_meetings: one idempotency row per calendar event already handled
"""

from datetime import date as date_type, datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Index,
    Integer,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func
from sqlalchemy.types import TypeDecorator


# ---------------------------------------------------------------------------
# Shared base
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on every back-end.

    SQLite hands back naive values; they are re-tagged as UTC on load.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Allowed values used in CHECK constraints
# ---------------------------------------------------------------------------

ACTIVITY_TYPES = ("invitation", "profile_view", "comment", "like", "message", "search")
LEAD_STATUSES = ("active", "responded", "cold")
RESPONSE_CHANNELS = ("email", "linkedin")
SURFACED_MEETING_STATUSES = ("surfaced", "skipped", "sent")


def _in_check(column: str, values: tuple) -> str:
    return f"{column} IN (" + ", ".join(f"'{v}'" for v in values) + ")"


# ===========================================================================
# Activity ledger
# ===========================================================================


class ActivityCount(Base):
    """activity_counts — one row per (date, activity type)."""

    __tablename__ = "activity_counts"
    __table_args__ = (
        CheckConstraint(_in_check("type", ACTIVITY_TYPES), name="ck_activity_type"),
        CheckConstraint("count >= 0", name="ck_activity_count_non_negative"),
    )

    date: Mapped[date_type] = mapped_column(Date, primary_key=True)
    type: Mapped[str] = mapped_column(Text, primary_key=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ===========================================================================
# Lead ledger
# ===========================================================================


class SalesLead(Base):
    """sales_leads — a prospect pursued through the email follow-up cadence."""

    __tablename__ = "sales_leads"
    __table_args__ = (
        CheckConstraint(_in_check("status", LEAD_STATUSES), name="ck_lead_status"),
        CheckConstraint(
            "responded_via IS NULL OR " + _in_check("responded_via", RESPONSE_CHANNELS),
            name="ck_lead_responded_via",
        ),
        CheckConstraint("email_followup_count >= 0", name="ck_lead_followup_count"),
        Index("idx_sales_leads_email", "email"),
        Index("idx_sales_leads_status", "status"),
        Index("idx_sales_leads_last_email", "last_email_date"),
        Index("idx_sales_leads_meeting", "meeting_id"),
        Index("idx_sales_leads_thread", "email_thread_id"),
    )

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    email: Mapped[str] = mapped_column(Text, nullable=False)
    name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    company: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    linkedin_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    linkedin_connected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Meeting context
    meeting_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meeting_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    meeting_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meeting_notes_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meeting_notes_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Email tracking
    email_thread_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    last_email_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    email_followup_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    snoozed_until: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Open tracking
    first_opened_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    last_opened_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    open_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # LinkedIn tracking
    linkedin_request_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    linkedin_message_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_linkedin_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Status
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
    responded_via: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True, default=_utcnow, onupdate=_utcnow
    )

    @property
    def is_warm(self) -> bool:
        """Opened an email but never replied on any channel."""
        return self.status == "active" and self.open_count > 0 and self.responded_via is None


# ===========================================================================
# Meeting idempotency ledger
# ===========================================================================


class SurfacedMeeting(Base):
    """surfaced_meetings — a calendar event already classified or presented."""

    __tablename__ = "surfaced_meetings"
    __table_args__ = (
        CheckConstraint(
            _in_check("status", SURFACED_MEETING_STATUSES),
            name="ck_surfaced_meeting_status",
        ),
        Index("idx_surfaced_meetings_status", "status"),
    )

    meeting_id: Mapped[str] = mapped_column(Text, primary_key=True)
    recipient_email: Mapped[str] = mapped_column(Text, nullable=False)
    recipient_name: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    meeting_title: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="surfaced")
    draft_subject: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    draft_body: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    # Meeting context carried onto the lead when the draft is sent
    meeting_end: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    notes_id: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notes_summary: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    surfaced_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        UTCDateTime, nullable=True, default=_utcnow, onupdate=_utcnow
    )
