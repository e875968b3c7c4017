from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class FriendTimeStatsOut(BaseModel):
    friend_id: int
    username: str
    total_seconds: int
    total_hours: float
    session_count: int
    last_seen: Optional[datetime] = None
    is_together: bool = False


class PeriodStatsOut(BaseModel):
    start: datetime
    end: datetime
    total_seconds: int
    total_hours: float
    friend_count: int
    top_friend_id: Optional[int] = None


class MonthlyStatsOut(BaseModel):
    month: str  # "YYYY-MM"
    friend_id: int
    total_seconds: int
    total_hours: float


class ActiveSessionOut(BaseModel):
    session_id: int
    friend_id: int
    started_at: datetime
    live_duration_seconds: int
    live_duration: str
