from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import Integer, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Index, Enum as SQLEnum
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.clock import utcnow
from app.database import Base


class FriendshipStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class Friendship(Base):
    """
    Friend request between two users.

    Created by the requester, answered by the recipient. The (user_low, user_high)
    columns hold the normalized pair so that the database rejects a second row
    for the same two users whatever the direction of the request.
    """
    __tablename__ = "friendships"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    requester_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    recipient_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_low: Mapped[int] = mapped_column(Integer, nullable=False)
    user_high: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[FriendshipStatus] = mapped_column(
        SQLEnum(FriendshipStatus, name="friendshipstatus"), default=FriendshipStatus.PENDING, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    requester = relationship("User", foreign_keys="Friendship.requester_id")
    recipient = relationship("User", foreign_keys="Friendship.recipient_id")

    __table_args__ = (
        UniqueConstraint("user_low", "user_high", name="uq_friendship_pair"),
        CheckConstraint("user_low < user_high", name="ck_friendship_pair_order"),
        Index("ix_friendships_recipient_status", "recipient_id", "status"),
    )

    @property
    def pair(self) -> tuple[int, int]:
        return self.user_low, self.user_high

    def __repr__(self) -> str:
        return f"<Friendship {self.requester_id} -> {self.recipient_id} ({self.status.value})>"
