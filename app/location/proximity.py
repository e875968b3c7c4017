from dataclasses import dataclass, field
from datetime import datetime, timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.location.dao import PositionDAO
from app.location.schemas import NearbyFriend


@dataclass
class ProximityResolution:
    """
    Fresh accepted friends around one user's position.

    ``within_enter`` holds friends close enough to open a session,
    ``within_exit`` those close enough to keep one open (a superset).
    Both map friend_id -> distance in meters.
    """
    user_id: int
    within_enter: dict[int, float] = field(default_factory=dict)
    within_exit: dict[int, float] = field(default_factory=dict)

    def can_open(self, friend_id: int) -> bool:
        return friend_id in self.within_enter

    def keeps_open(self, friend_id: int) -> bool:
        return friend_id in self.within_exit


def is_stale(last_position_at: datetime, now: datetime, stale_after_seconds: float = settings.STALE_AFTER_SECONDS) -> bool:
    return now - last_position_at > timedelta(seconds=stale_after_seconds)


def partition_nearby(
    user_id: int,
    candidates: list[NearbyFriend],
    now: datetime,
    enter_threshold_m: float,
    exit_threshold_m: float,
    stale_after_seconds: float,
) -> ProximityResolution:
    if exit_threshold_m < enter_threshold_m:
        raise ValueError(f"exit threshold {exit_threshold_m}m is below enter threshold {enter_threshold_m}m")

    resolution = ProximityResolution(user_id=user_id)
    for candidate in candidates:
        # a friend without a recent fix counts as out of range
        if is_stale(candidate.last_position_at, now, stale_after_seconds):
            continue
        if candidate.distance_meters <= exit_threshold_m:
            resolution.within_exit[candidate.friend_id] = candidate.distance_meters
        if candidate.distance_meters <= enter_threshold_m:
            resolution.within_enter[candidate.friend_id] = candidate.distance_meters
    return resolution


async def resolve_proximity(
    session: AsyncSession,
    user_id: int,
    latitude: float,
    longitude: float,
    now: datetime,
    *,
    enter_threshold_m: float = settings.PROXIMITY_ENTER_METERS,
    exit_threshold_m: float = settings.PROXIMITY_EXIT_METERS,
    stale_after_seconds: float = settings.STALE_AFTER_SECONDS,
) -> ProximityResolution:
    """Runs a single nearby query at the exit threshold and splits the result by both thresholds."""
    candidates = await PositionDAO.query_nearby(session, user_id, latitude, longitude, max(exit_threshold_m, enter_threshold_m))
    resolution = partition_nearby(user_id, candidates, now, enter_threshold_m, exit_threshold_m, stale_after_seconds)
    logger.debug(
        f"[PROXIMITY] user={user_id} candidates={len(candidates)} "
        f"enter={sorted(resolution.within_enter)} exit={sorted(resolution.within_exit)}"
    )
    return resolution
