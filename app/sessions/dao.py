from datetime import datetime
from typing import Optional

from sqlalchemy import select, update as sa_update, or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.dao.base import BaseDAO
from app.database import bounded_storage_call
from app.exception import SessionInvariantViolation
from app.pairs import PairKey, normalize_pair
from app.sessions.models import TimeSession


def _involving(user_id: int):
    return or_(TimeSession.user_low == user_id, TimeSession.user_high == user_id)


class TimeSessionDAO(BaseDAO):
    model = TimeSession

    @staticmethod
    @bounded_storage_call
    async def find_active_session(session: AsyncSession, pair: PairKey) -> Optional[TimeSession]:
        """
        Returns the active session of ``pair`` or None.

        Raises SessionInvariantViolation if the store holds more than one.
        """
        low, high = pair
        q = (
            select(TimeSession)
            .where(TimeSession.user_low == low, TimeSession.user_high == high, TimeSession.is_active.is_(True))
            .order_by(TimeSession.started_at.desc(), TimeSession.id.desc())
        )
        res = await session.execute(q)
        rows = list(res.scalars().all())
        if len(rows) > 1:
            raise SessionInvariantViolation(pair, rows)
        return rows[0] if rows else None

    @staticmethod
    @bounded_storage_call
    async def insert_active_session(session: AsyncSession, pair: PairKey, started_at: datetime) -> Optional[TimeSession]:
        """
        Inserts an active session for ``pair``.

        Returns None when the pair already has an active row (the unique index
        rejected the insert), so a lost race is a no-op for the caller.
        """
        low, high = normalize_pair(*pair)
        time_session = TimeSession(user_low=low, user_high=high, started_at=started_at, is_active=True)
        session.add(time_session)
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return None
        except SQLAlchemyError:
            await session.rollback()
            raise
        await session.refresh(time_session)
        return time_session

    @staticmethod
    @bounded_storage_call
    async def close_session(session: AsyncSession, session_id: int, ended_at: datetime, duration_seconds: int) -> bool:
        """Closes an active row. Returns False if it was already closed (or does not exist)."""
        q = (
            sa_update(TimeSession)
            .where(TimeSession.id == session_id, TimeSession.is_active.is_(True))
            .values(ended_at=ended_at, duration_seconds=duration_seconds, is_active=False)
            .execution_options(synchronize_session="fetch")
        )
        try:
            res = await session.execute(q)
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise
        return bool(res.rowcount)

    @staticmethod
    @bounded_storage_call
    async def list_active_sessions(session: AsyncSession, user_id: Optional[int] = None) -> list[TimeSession]:
        q = select(TimeSession).where(TimeSession.is_active.is_(True))
        if user_id is not None:
            q = q.where(_involving(user_id))
        res = await session.execute(q.order_by(TimeSession.started_at.desc(), TimeSession.id.desc()))
        return list(res.scalars().all())

    @staticmethod
    @bounded_storage_call
    async def list_closed_sessions(
        session: AsyncSession,
        user_id: int,
        friend_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[TimeSession]:
        """
        Closed sessions of ``user_id`` (optionally with one friend only).

        With a date range, a session counts when it both started and ended
        inside [start, end).
        """
        q = select(TimeSession).where(TimeSession.is_active.is_(False))
        if friend_id is not None:
            low, high = normalize_pair(user_id, friend_id)
            q = q.where(TimeSession.user_low == low, TimeSession.user_high == high)
        else:
            q = q.where(_involving(user_id))
        if start is not None:
            q = q.where(TimeSession.started_at >= start)
        if end is not None:
            q = q.where(TimeSession.ended_at < end)
        res = await session.execute(q.order_by(TimeSession.started_at.desc(), TimeSession.id.desc()))
        return list(res.scalars().all())
