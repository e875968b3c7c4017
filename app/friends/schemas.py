from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from app.friends.models import FriendshipStatus


class UserRef(BaseModel):
    id: int
    username: str
    name: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class FriendRequestCreate(BaseModel):
    requester_id: int
    recipient_id: int


class FriendshipOut(BaseModel):
    id: int
    requester_id: int
    recipient_id: int
    status: FriendshipStatus
    created_at: datetime
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FriendOut(BaseModel):
    friendship_id: int
    friend: UserRef
    since: datetime


class PendingRequestOut(BaseModel):
    id: int
    created_at: datetime
    requester: UserRef

    model_config = ConfigDict(from_attributes=True)
