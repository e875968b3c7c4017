import asyncio
from datetime import datetime
from math import isfinite
from typing import Optional

from loguru import logger
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from app.clock import as_naive_utc, utcnow
from app.config import settings
from app.exception import PositionValidationException, TransientStorageException
from app.location.dao import PositionDAO
from app.location.rate_limit import FixRateLimiter
from app.location.schemas import FixStatus, PositionFix


def validate_fix(fix: PositionFix) -> None:
    """Raises PositionValidationException for coordinates or accuracy that cannot be real."""
    for name, value in (("latitude", fix.latitude), ("longitude", fix.longitude)):
        if not isfinite(value):
            raise PositionValidationException(detail=f"{name} must be a finite number")
    if not -90.0 <= fix.latitude <= 90.0:
        raise PositionValidationException(detail=f"latitude {fix.latitude} out of range [-90, 90]")
    if not -180.0 <= fix.longitude <= 180.0:
        raise PositionValidationException(detail=f"longitude {fix.longitude} out of range [-180, 180]")
    if fix.accuracy is not None and (not isfinite(fix.accuracy) or fix.accuracy < 0):
        raise PositionValidationException(detail=f"accuracy must be a non-negative number, got {fix.accuracy}")


def fix_timestamp(fix: PositionFix, now: datetime) -> datetime:
    """Device timestamp as naive UTC, never later than ``now``."""
    recorded_at = as_naive_utc(fix.recorded_at) or now
    return min(recorded_at, now)


async def _upsert_with_retry(
    session: AsyncSession,
    user_id: int,
    fix: PositionFix,
    recorded_at: datetime,
    retries: int,
    backoff_seconds: float,
) -> None:
    for attempt in range(retries):
        try:
            await PositionDAO.upsert(
                session,
                user_id=user_id,
                latitude=fix.latitude,
                longitude=fix.longitude,
                accuracy=fix.accuracy or 0.0,
                recorded_at=recorded_at,
            )
            return
        except TransientStorageException as e:
            if attempt == retries - 1:
                logger.error(f"[INGEST] user={user_id} upsert failed after {retries} attempts: {e.detail}")
                raise
            delay = backoff_seconds * 2 ** attempt
            logger.warning(f"[INGEST] user={user_id} upsert attempt {attempt + 1} failed ({e.detail}), retry in {delay}s")
            await asyncio.sleep(delay)


async def ingest_fix(
    session: AsyncSession,
    limiter: FixRateLimiter,
    user_id: int,
    fix: PositionFix,
    now: Optional[datetime] = None,
    *,
    max_accuracy_meters: float = settings.MAX_ACCURACY_METERS,
    retries: int = settings.UPSERT_RETRIES,
    backoff_seconds: float = settings.UPSERT_BACKOFF_SECONDS,
) -> FixStatus:
    """
    Validates, filters and persists one fix of ``user_id``.

    Imprecise and redundant fixes are dropped without error. An accepted fix is
    upserted as the user's single Position row; if storage keeps failing after
    the retries, TransientStorageException propagates and the fix is lost.
    """
    validate_fix(fix)
    now = now or utcnow()
    recorded_at = fix_timestamp(fix, now)

    if fix.accuracy is not None and fix.accuracy > max_accuracy_meters:
        logger.debug(f"[INGEST] user={user_id} dropped: accuracy {fix.accuracy}m > {max_accuracy_meters}m")
        return FixStatus.DROPPED_ACCURACY

    try:
        accept = await limiter.should_accept(user_id, fix.latitude, fix.longitude, recorded_at)
    except RedisError as e:
        logger.warning(f"[INGEST] user={user_id} rate limiter unavailable ({e}), accepting fix")
        accept = True
    if not accept:
        logger.debug(f"[INGEST] user={user_id} dropped: rate limited")
        return FixStatus.DROPPED_RATE_LIMITED

    await _upsert_with_retry(session, user_id, fix, recorded_at, retries, backoff_seconds)

    try:
        await limiter.remember(user_id, fix.latitude, fix.longitude, recorded_at)
    except RedisError as e:
        logger.warning(f"[INGEST] user={user_id} could not store last fix: {e}")

    logger.info(f"[INGEST] user={user_id} accepted fix ({fix.latitude:.6f}, {fix.longitude:.6f}) at {recorded_at}")
    return FixStatus.ACCEPTED
