from datetime import datetime
from typing import Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import utcnow
from app.exception import TransientStorageException
from app.location.ingest import ingest_fix
from app.location.proximity import resolve_proximity
from app.location.rate_limit import FixRateLimiter
from app.location.schemas import FixOutcome, FixStatus, PositionFix
from app.sessions.manager import apply_proximity


async def handle_position_fix(
    session: AsyncSession,
    limiter: FixRateLimiter,
    user_id: int,
    fix: PositionFix,
    now: Optional[datetime] = None,
    **thresholds,
) -> FixOutcome:
    """
    Full pipeline for one fix of the acting user: ingest, proximity, sessions.

    ``thresholds`` are forwarded to the resolver (enter_threshold_m,
    exit_threshold_m, stale_after_seconds). A storage failure after the fix
    was persisted only skips this proximity cycle; the next fix runs it again.
    """
    now = now or utcnow()
    status = await ingest_fix(session, limiter, user_id, fix, now)
    outcome = FixOutcome(status=status)
    if status != FixStatus.ACCEPTED:
        return outcome

    try:
        resolution = await resolve_proximity(session, user_id, fix.latitude, fix.longitude, now, **thresholds)
        transitions = await apply_proximity(session, resolution, now)
    except TransientStorageException as e:
        logger.warning(f"[PROXIMITY] user={user_id} cycle skipped: {e.detail}")
        await session.rollback()
        return outcome

    outcome.proximity_checked = True
    outcome.opened_session_ids = transitions.opened
    outcome.closed_session_ids = transitions.closed
    return outcome


async def stop_tracking(limiter: FixRateLimiter, user_id: int) -> None:
    """
    Ends the user's tracking session.

    Active time sessions are left open on purpose: the other participant may
    still be confirming proximity, and the reaper closes them once both sides
    are silent.
    """
    await limiter.reset(user_id)
    logger.info(f"[INGEST] user={user_id} stopped tracking")
