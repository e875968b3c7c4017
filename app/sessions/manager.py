"""
Session state machine.

Per normalized pair there are two states, No-Session and Active:

    No-Session --(friend within enter threshold)--> Active      insert row
    Active     --(friend within exit threshold)---> Active      no write
    Active     --(outside exit threshold / reaped)-> No-Session  close row

Closing is terminal. A later proximity event creates a new row.
"""
from dataclasses import dataclass, field
from datetime import datetime
from math import floor
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.exception import SessionInvariantViolation
from app.location.proximity import ProximityResolution
from app.pairs import PairKey, normalize_pair, other_member
from app.sessions.dao import TimeSessionDAO
from app.sessions.models import TimeSession


@dataclass
class SessionTransitions:
    opened: list[int] = field(default_factory=list)
    closed: list[int] = field(default_factory=list)


def session_duration_seconds(started_at: datetime, ended_at: datetime) -> int:
    """Whole seconds between two instants, clamped at 0 against clock skew."""
    return max(0, floor((ended_at - started_at).total_seconds()))


async def reconcile_active_sessions(
    session: AsyncSession, pair: PairKey, sessions: list[TimeSession], now: datetime
) -> TimeSession:
    """Keeps the most recently opened active row of ``pair`` and closes the others."""
    keep = max(sessions, key=lambda s: (s.started_at, s.id))
    logger.critical(
        f"[SESSION] Invariant violated: {len(sessions)} active sessions for pair {pair} "
        f"({[s.id for s in sessions]}), keeping {keep.id}"
    )
    for time_session in sessions:
        if time_session.id != keep.id:
            await close_session(session, time_session, now)
    return keep


async def get_active_session(session: AsyncSession, pair: PairKey, now: datetime) -> Optional[TimeSession]:
    try:
        return await TimeSessionDAO.find_active_session(session, pair)
    except SessionInvariantViolation as e:
        return await reconcile_active_sessions(session, e.pair, e.sessions, now)


async def open_session(session: AsyncSession, user_id: int, friend_id: int, now: datetime) -> Optional[TimeSession]:
    """
    Opens a session for the pair unless one is already active.

    Returns the new row, or None when the pair already had an active session,
    including the case where a concurrent opener won the insert.
    """
    pair = normalize_pair(user_id, friend_id)
    if await get_active_session(session, pair, now):
        logger.debug(f"[SESSION] pair {pair} already active, nothing to open")
        return None

    created = await TimeSessionDAO.insert_active_session(session, pair, started_at=now)
    if created is None:
        logger.info(f"[SESSION] pair {pair} opened concurrently by the other device")
        return None
    logger.info(f"[SESSION] Opened session {created.id} for pair {pair} at {now}")
    return created


async def close_session(session: AsyncSession, time_session: TimeSession, ended_at: datetime) -> bool:
    """
    Closes ``time_session`` at ``ended_at``. Closing a closed session is a no-op.

    Returns True only for the call that actually performed the close.
    """
    if not time_session.is_active:
        return False
    duration = session_duration_seconds(time_session.started_at, ended_at)
    closed = await TimeSessionDAO.close_session(session, time_session.id, ended_at, duration)
    if closed:
        logger.info(f"[SESSION] Closed session {time_session.id} for pair {time_session.pair} after {duration}s")
    else:
        logger.debug(f"[SESSION] Session {time_session.id} was already closed")
    return closed


async def close_session_by_id(session: AsyncSession, session_id: int, ended_at: datetime) -> bool:
    time_session = await TimeSessionDAO.find_one_or_none_by_id(session, session_id)
    if time_session is None:
        return False
    return await close_session(session, time_session, ended_at)


def _group_by_pair(sessions: list[TimeSession]) -> dict[PairKey, list[TimeSession]]:
    grouped: dict[PairKey, list[TimeSession]] = {}
    for time_session in sessions:
        grouped.setdefault(time_session.pair, []).append(time_session)
    return grouped


async def apply_proximity(session: AsyncSession, resolution: ProximityResolution, now: datetime) -> SessionTransitions:
    """
    Runs the state machine for every pair involving ``resolution.user_id``.

    Active sessions whose friend left the exit radius are closed, friends
    inside the enter radius without a session get one. Friends between the
    two radii keep whatever state they have.
    """
    user_id = resolution.user_id
    transitions = SessionTransitions()

    active_by_friend: dict[int, TimeSession] = {}
    for pair, rows in _group_by_pair(await TimeSessionDAO.list_active_sessions(session, user_id=user_id)).items():
        current = rows[0] if len(rows) == 1 else await reconcile_active_sessions(session, pair, rows, now)
        active_by_friend[other_member(pair, user_id)] = current

    for friend_id, time_session in active_by_friend.items():
        if resolution.keeps_open(friend_id):
            continue
        if await close_session(session, time_session, now):
            transitions.closed.append(time_session.id)

    for friend_id in resolution.within_enter:
        if friend_id in active_by_friend:
            continue
        created = await open_session(session, user_id, friend_id, now)
        if created is not None:
            transitions.opened.append(created.id)

    return transitions
