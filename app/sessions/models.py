from datetime import datetime
from typing import Optional

from sqlalchemy import Integer, Boolean, DateTime, ForeignKey, CheckConstraint, Index, text
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base


class TimeSession(Base):
    """
    Stretch of time two friends spent together.

    The pair is stored normalized (user_low < user_high). While active,
    ``ended_at`` and ``duration_seconds`` are NULL; closing sets both and the
    row is never touched again. The partial unique index allows at most one
    active row per pair, which is what serializes concurrent opens coming
    from both devices.
    """
    __tablename__ = "time_sessions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    user_low: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    user_high: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    started_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (
        CheckConstraint("user_low < user_high", name="ck_time_sessions_pair_order"),
        Index(
            "uq_time_sessions_active_pair",
            "user_low",
            "user_high",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_time_sessions_low_started", "user_low", "started_at"),
        Index("ix_time_sessions_high_started", "user_high", "started_at"),
        Index("ix_time_sessions_active", "is_active"),
    )

    @property
    def pair(self) -> tuple[int, int]:
        return self.user_low, self.user_high

    def __repr__(self) -> str:
        state = "active" if self.is_active else f"closed {self.duration_seconds}s"
        return f"<TimeSession id={self.id} pair=({self.user_low}, {self.user_high}) {state}>"
