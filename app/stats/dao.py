from collections import defaultdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from loguru import logger
from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import utcnow
from app.database import bounded_storage_call
from app.friends.dao import FriendDAO
from app.pairs import other_member
from app.sessions.dao import TimeSessionDAO
from app.sessions.manager import session_duration_seconds
from app.sessions.models import TimeSession
from app.stats.schemas import ActiveSessionOut, FriendTimeStatsOut, MonthlyStatsOut, PeriodStatsOut


def live_duration(started_at: datetime, now: datetime) -> int:
    """Elapsed seconds of an active session, never negative."""
    return session_duration_seconds(started_at, now)


def to_hours(seconds: int) -> float:
    """Hours rounded half-up to one decimal."""
    return float((Decimal(seconds) / Decimal(3600)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def format_duration(seconds: int) -> str:
    if seconds < 60:
        return f"{seconds}s"
    hours, minutes = seconds // 3600, (seconds % 3600) // 60
    if hours == 0:
        return f"{minutes} min"
    if minutes == 0:
        return f"{hours}h"
    return f"{hours}h {minutes}min"


def month_bounds(now: datetime) -> tuple[datetime, datetime]:
    """[first instant of the month, first instant of the next month)"""
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        return start, start.replace(year=start.year + 1, month=1)
    return start, start.replace(month=start.month + 1)


class StatsDAO:
    """Read-only views over time sessions. Nothing here writes."""

    @staticmethod
    @bounded_storage_call
    async def _closed_totals_by_pair(session: AsyncSession, user_id: int) -> dict[tuple[int, int], tuple[int, int, Optional[datetime]]]:
        q = (
            select(
                TimeSession.user_low,
                TimeSession.user_high,
                func.coalesce(func.sum(TimeSession.duration_seconds), 0).label("total_seconds"),
                func.count(TimeSession.id).label("session_count"),
                func.max(TimeSession.ended_at).label("last_ended_at"),
            )
            .where(
                or_(TimeSession.user_low == user_id, TimeSession.user_high == user_id),
                TimeSession.is_active.is_(False),
            )
            .group_by(TimeSession.user_low, TimeSession.user_high)
        )
        res = await session.execute(q)
        return {
            (row.user_low, row.user_high): (int(row.total_seconds or 0), row.session_count, row.last_ended_at)
            for row in res.all()
        }

    @staticmethod
    async def get_friend_time_stats(session: AsyncSession, user_id: int, now: Optional[datetime] = None) -> list[FriendTimeStatsOut]:
        """
        Time spent with each accepted friend, biggest total first.

        Closed sessions contribute their stored duration, an active session its
        live elapsed time. ``last_seen`` is ``now`` while together, otherwise the
        end of the latest closed session.
        """
        now = now or utcnow()
        friends = await FriendDAO.get_friends(session, user_id)
        if not friends:
            return []

        closed = {
            other_member(pair, user_id): totals
            for pair, totals in (await StatsDAO._closed_totals_by_pair(session, user_id)).items()
        }
        active = {
            other_member(s.pair, user_id): s
            for s in await TimeSessionDAO.list_active_sessions(session, user_id=user_id)
        }

        stats = []
        for _, friend in friends:
            total_seconds, session_count, last_seen = closed.get(friend.id, (0, 0, None))
            active_session = active.get(friend.id)
            if active_session is not None:
                total_seconds += live_duration(active_session.started_at, now)
                session_count += 1
                last_seen = now
            stats.append(FriendTimeStatsOut(
                friend_id=friend.id,
                username=friend.username,
                total_seconds=total_seconds,
                total_hours=to_hours(total_seconds),
                session_count=session_count,
                last_seen=last_seen,
                is_together=active_session is not None,
            ))

        return sorted(stats, key=lambda s: (-s.total_seconds, s.username))

    @staticmethod
    async def get_period_stats(
        session: AsyncSession, user_id: int, start: datetime, end: datetime, now: Optional[datetime] = None
    ) -> PeriodStatsOut:
        """
        Totals over [start, end).

        Closed sessions count when they started and ended inside the window.
        Active sessions that started inside it count their live time up to
        ``min(now, end)``.
        """
        now = now or utcnow()
        per_friend: dict[int, int] = defaultdict(int)

        for s in await TimeSessionDAO.list_closed_sessions(session, user_id, start=start, end=end):
            per_friend[other_member(s.pair, user_id)] += s.duration_seconds or 0

        for s in await TimeSessionDAO.list_active_sessions(session, user_id=user_id):
            if start <= s.started_at < end:
                per_friend[other_member(s.pair, user_id)] += live_duration(s.started_at, min(now, end))

        total_seconds = sum(per_friend.values())
        top_friend_id = None
        if per_friend:
            top_friend_id = max(per_friend.items(), key=lambda item: (item[1], -item[0]))[0]
        logger.debug(f"[STATS] user={user_id} {start}..{end}: {total_seconds}s with {len(per_friend)} friend(s)")

        return PeriodStatsOut(
            start=start,
            end=end,
            total_seconds=total_seconds,
            total_hours=to_hours(total_seconds),
            friend_count=len(per_friend),
            top_friend_id=top_friend_id,
        )

    @staticmethod
    async def get_current_month_stats(session: AsyncSession, user_id: int, now: Optional[datetime] = None) -> PeriodStatsOut:
        now = now or utcnow()
        start, end = month_bounds(now)
        return await StatsDAO.get_period_stats(session, user_id, start, end, now)

    @staticmethod
    async def get_monthly_stats(
        session: AsyncSession, user_id: int, friend_id: int, now: Optional[datetime] = None
    ) -> list[MonthlyStatsOut]:
        """Month-by-month time with one friend, newest month first. Sessions count in the month they started."""
        now = now or utcnow()
        per_month: dict[str, int] = defaultdict(int)

        for s in await TimeSessionDAO.list_closed_sessions(session, user_id, friend_id=friend_id):
            per_month[s.started_at.strftime("%Y-%m")] += s.duration_seconds or 0

        for s in await TimeSessionDAO.list_active_sessions(session, user_id=user_id):
            if other_member(s.pair, user_id) == friend_id:
                per_month[s.started_at.strftime("%Y-%m")] += live_duration(s.started_at, now)

        return [
            MonthlyStatsOut(month=month, friend_id=friend_id, total_seconds=seconds, total_hours=to_hours(seconds))
            for month, seconds in sorted(per_month.items(), reverse=True)
        ]

    @staticmethod
    async def get_active_sessions(session: AsyncSession, user_id: int, now: Optional[datetime] = None) -> list[ActiveSessionOut]:
        now = now or utcnow()
        result = []
        for s in await TimeSessionDAO.list_active_sessions(session, user_id=user_id):
            seconds = live_duration(s.started_at, now)
            result.append(ActiveSessionOut(
                session_id=s.id,
                friend_id=other_member(s.pair, user_id),
                started_at=s.started_at,
                live_duration_seconds=seconds,
                live_duration=format_duration(seconds),
            ))
        return result
