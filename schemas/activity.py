"""Activity governance schemas and static platform limits."""
from enum import Enum
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ActivityType(str, Enum):
    INVITATION = "invitation"
    PROFILE_VIEW = "profile_view"
    COMMENT = "comment"
    LIKE = "like"
    MESSAGE = "message"
    SEARCH = "search"


class ActivityLimits(BaseModel):
    daily: int = Field(gt=0)
    weekly: Optional[int] = Field(default=None, gt=0)
    recommended: Optional[int] = Field(default=None, gt=0)  # safer daily limit

    @property
    def safe_daily(self) -> int:
        return self.recommended or self.daily


class DelayWindow(BaseModel):
    min_seconds: int = Field(ge=0)
    max_seconds: int = Field(ge=0)


# LinkedIn best-practice limits. Invitations are the one weekly-capped type:
# 200/week over 5 working days is 40/day, recommended stays under at 35.
ACTIVITY_LIMITS: Dict[ActivityType, ActivityLimits] = {
    ActivityType.INVITATION: ActivityLimits(daily=80, weekly=200, recommended=35),
    ActivityType.PROFILE_VIEW: ActivityLimits(daily=100, recommended=40),
    ActivityType.COMMENT: ActivityLimits(daily=30, recommended=10),
    ActivityType.LIKE: ActivityLimits(daily=100, recommended=30),
    ActivityType.MESSAGE: ActivityLimits(daily=100, recommended=20),
    # Searches are tracked for observability, not really limited
    ActivityType.SEARCH: ActivityLimits(daily=500, recommended=200),
}

DELAY_WINDOWS: Dict[ActivityType, DelayWindow] = {
    ActivityType.INVITATION: DelayWindow(min_seconds=30, max_seconds=120),
    ActivityType.PROFILE_VIEW: DelayWindow(min_seconds=5, max_seconds=30),
    ActivityType.COMMENT: DelayWindow(min_seconds=60, max_seconds=300),
    ActivityType.LIKE: DelayWindow(min_seconds=5, max_seconds=30),
    ActivityType.MESSAGE: DelayWindow(min_seconds=30, max_seconds=120),
    ActivityType.SEARCH: DelayWindow(min_seconds=10, max_seconds=60),
}

# Outbound engagement is what gets an account flagged; searches and
# profile views never trip the throttle.
THROTTLEABLE_TYPES = (
    ActivityType.INVITATION,
    ActivityType.COMMENT,
    ActivityType.LIKE,
    ActivityType.MESSAGE,
)

ActivityStatus = Literal["ok", "warning", "limit_reached"]


class ActivityCheck(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    daily_count: int
    daily_limit: int
    weekly_count: Optional[int] = None
    weekly_limit: Optional[int] = None
    smart_budget: Optional[int] = None


class ActivityUsage(BaseModel):
    type: ActivityType
    count: int
    daily_limit: int
    weekly_count: Optional[int] = None
    weekly_limit: Optional[int] = None
    percent_used: int
    status: ActivityStatus


class ActivitySummary(BaseModel):
    date: str  # YYYY-MM-DD
    activities: List[ActivityUsage]


class ThrottleDecision(BaseModel):
    throttle: bool
    reason: Optional[str] = None
