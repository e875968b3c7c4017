from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from app.config import settings
from app.location.distance import haversine_distance
from app.redis_dao.custom_redis import CustomRedis


class LastFix(BaseModel):
    latitude: float
    longitude: float
    recorded_at: datetime


class FixRateLimiter:
    """
    Decides whether a fix is worth persisting, based on the last accepted fix
    of the same user during the current tracking session.

    A fix passes when there is no previous fix, when ``min_interval_seconds``
    elapsed since the previous one, or when the device moved at least
    ``min_distance_meters``. Fixes recorded before the previous one are
    always dropped.
    """

    key_prefix = "tracking:last_fix"

    def __init__(
        self,
        redis: CustomRedis,
        min_interval_seconds: float = settings.FIX_MIN_INTERVAL_SECONDS,
        min_distance_meters: float = settings.FIX_MIN_DISTANCE_METERS,
        ttl_seconds: int = settings.TRACKING_STATE_TTL_SECONDS,
    ):
        self.redis = redis
        self.min_interval_seconds = min_interval_seconds
        self.min_distance_meters = min_distance_meters
        self.ttl_seconds = ttl_seconds

    def _key(self, user_id: int) -> str:
        return f"{self.key_prefix}:{user_id}"

    async def last_fix(self, user_id: int) -> Optional[LastFix]:
        data = await self.redis.get_json(self._key(user_id))
        return LastFix.model_validate(data) if data else None

    async def should_accept(self, user_id: int, latitude: float, longitude: float, recorded_at: datetime) -> bool:
        previous = await self.last_fix(user_id)
        if previous is None:
            return True
        elapsed = (recorded_at - previous.recorded_at).total_seconds()
        if elapsed < 0:
            return False
        if elapsed >= self.min_interval_seconds:
            return True
        moved = haversine_distance(previous.latitude, previous.longitude, latitude, longitude)
        return moved >= self.min_distance_meters

    async def remember(self, user_id: int, latitude: float, longitude: float, recorded_at: datetime):
        fix = LastFix(latitude=latitude, longitude=longitude, recorded_at=recorded_at)
        await self.redis.set_json_with_ttl(self._key(user_id), fix.model_dump(mode="json"), self.ttl_seconds)

    async def reset(self, user_id: int):
        await self.redis.delete_key(self._key(user_id))
