from .activity import (
    ActivityType,
    ActivityLimits,
    ActivityCheck,
    ActivityUsage,
    ActivitySummary,
    ThrottleDecision,
    ACTIVITY_LIMITS,
    DELAY_WINDOWS,
    THROTTLEABLE_TYPES,
)
from .lead import (
    CADENCE,
    MAX_AUTOMATIC_FOLLOWUPS,
    CadenceStep,
    FollowUpDue,
    FollowUpStage,
    LeadCreate,
    LeadStatistics,
    ResponseDetected,
    SurfacedMeetingStatistics,
)
from .meeting import (
    BackfillResult,
    CalendarEvent,
    Draft,
    Email,
    EmailAddress,
    EndedMeeting,
    MeetingAttendee,
    MeetingClassification,
    MeetingNotes,
    ParsedNotes,
)

__all__ = [
    "ActivityType", "ActivityLimits", "ActivityCheck", "ActivityUsage",
    "ActivitySummary", "ThrottleDecision",
    "ACTIVITY_LIMITS", "DELAY_WINDOWS", "THROTTLEABLE_TYPES",
    "CADENCE", "MAX_AUTOMATIC_FOLLOWUPS", "CadenceStep", "FollowUpDue", "FollowUpStage",
    "LeadCreate", "LeadStatistics", "ResponseDetected", "SurfacedMeetingStatistics",
    "BackfillResult", "CalendarEvent", "Draft", "Email", "EmailAddress", "EndedMeeting",
    "MeetingAttendee", "MeetingClassification", "MeetingNotes", "ParsedNotes",
]
