from datetime import datetime
from typing import Optional

from .accounts import Child, Profile
from .base import ApiModel


class ProgressStats(ApiModel):
    total_exercises: int = 0
    correct_exercises: int = 0
    success_rate: int = 0
    total_video_time: int = 0


class ChildWithStats(Child):
    stats: ProgressStats


class SubscriptionSummary(ApiModel):
    tier: Optional[str] = None
    status: Optional[str] = None
    trial_ends_at: Optional[datetime] = None
    is_trial_active: bool = False


class DashboardStatsResponse(ApiModel):
    profile: Profile
    children: list[ChildWithStats]
    totals: ProgressStats
    subscription: SubscriptionSummary
