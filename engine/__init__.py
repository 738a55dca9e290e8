from .activity_governor import ActivityGovernor
from .cadence import CadenceEngine
from .errors import UnknownLeadError, UnknownMeetingError
from .meeting_followup import MeetingFollowUpService
from .notes_matching import (
    find_best_match,
    find_matching_meeting_notes,
    parse_meeting_notes_content,
    score_candidate,
)
from .orchestrator import OutreachEngine
from .scheduler import TaskScheduler

__all__ = [
    "ActivityGovernor", "CadenceEngine", "UnknownLeadError", "UnknownMeetingError",
    "MeetingFollowUpService", "find_best_match", "find_matching_meeting_notes",
    "parse_meeting_notes_content", "score_candidate", "OutreachEngine", "TaskScheduler",
]
