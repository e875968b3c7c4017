from typing import Optional

from loguru import logger

from app.config import settings
from app.redis_dao.custom_redis import CustomRedis


class RedisManager:
    def __init__(self):
        self.client: Optional[CustomRedis] = None

    async def connect(self):
        if self.client is None:
            self.client = CustomRedis(
                host=settings.REDIS_HOST,
                port=settings.REDIS_PORT,
                db=settings.REDIS_DB,
                decode_responses=True,
                socket_timeout=settings.STORAGE_TIMEOUT_SECONDS,
                socket_connect_timeout=settings.STORAGE_TIMEOUT_SECONDS,
            )
            logger.info(f"Redis connected: {settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}")

    async def close(self):
        if self.client is not None:
            await self.client.aclose()
            self.client = None
            logger.info("Redis connection closed")


redis_manager = RedisManager()


async def get_redis() -> CustomRedis:
    if redis_manager.client is None:
        await redis_manager.connect()
    return redis_manager.client
