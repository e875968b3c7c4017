from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class PositionFix(BaseModel):
    """Raw fix reported by a device. Range checks happen at ingest."""
    latitude: float
    longitude: float
    accuracy: Optional[float] = Field(None, description="Horizontal accuracy radius in meters")
    recorded_at: Optional[datetime] = Field(None, description="Device timestamp, server time if omitted")


class FixStatus(str, Enum):
    ACCEPTED = "accepted"
    DROPPED_ACCURACY = "dropped_accuracy"
    DROPPED_RATE_LIMITED = "dropped_rate_limited"


class NearbyFriend(BaseModel):
    friend_id: int
    distance_meters: float
    last_position_at: datetime


class FixOutcome(BaseModel):
    status: FixStatus
    opened_session_ids: list[int] = []
    closed_session_ids: list[int] = []
    proximity_checked: bool = False


class PositionOut(BaseModel):
    user_id: int
    latitude: float
    longitude: float
    accuracy: float
    recorded_at: datetime

    model_config = ConfigDict(from_attributes=True)
