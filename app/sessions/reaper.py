import asyncio
from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import utcnow
from app.config import settings
from app.database import connection
from app.exception import TransientStorageException
from app.location.dao import PositionDAO
from app.location.proximity import is_stale
from app.sessions.dao import TimeSessionDAO
from app.sessions.manager import close_session


async def reap_stale_sessions(
    session: AsyncSession,
    now: Optional[datetime] = None,
    *,
    stale_after_seconds: float = settings.STALE_AFTER_SECONDS,
) -> int:
    """
    Force-closes active sessions whose two participants both went silent.

    A participant is silent when their last position is older than
    ``stale_after_seconds`` or missing. One fresh participant is enough to
    keep the session open. Returns the number of sessions closed.
    """
    now = now or utcnow()
    active = await TimeSessionDAO.list_active_sessions(session)
    if not active:
        return 0

    positions = await PositionDAO.get_for_users(session, [uid for s in active for uid in s.pair])

    def silent(user_id: int) -> bool:
        position = positions.get(user_id)
        return position is None or is_stale(position.recorded_at, now, stale_after_seconds)

    closed = 0
    for time_session in active:
        if silent(time_session.user_low) and silent(time_session.user_high):
            if await close_session(session, time_session, now):
                closed += 1

    if closed:
        logger.success(f"[REAPER] Closed {closed} stale session(s) out of {len(active)} active")
    else:
        logger.debug(f"[REAPER] No stale sessions among {len(active)} active")
    return closed


@connection
async def reap_once(session: AsyncSession) -> int:
    try:
        return await reap_stale_sessions(session)
    except TransientStorageException as e:
        logger.warning(f"[REAPER] Sweep skipped: {e.detail}")
        return 0


async def run_reaper(interval_seconds: float = settings.REAPER_INTERVAL_SECONDS):
    """Sweeps once immediately, then every ``interval_seconds`` until cancelled."""
    logger.info(f"[REAPER] Started, interval {interval_seconds}s")
    while True:
        try:
            await reap_once()
        except Exception as e:
            logger.exception(f"[REAPER] Sweep failed: {e}")
        await asyncio.sleep(interval_seconds)
