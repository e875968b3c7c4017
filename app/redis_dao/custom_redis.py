import json
from typing import Any, Optional

from loguru import logger
from redis.asyncio import Redis


class CustomRedis(Redis):
    """Redis client with JSON helpers."""

    async def delete_key(self, key: str):
        await self.delete(key)
        logger.debug(f"Key {key} deleted")

    async def get_value(self, key: str) -> Optional[str]:
        value = await self.get(key)
        if value is None:
            logger.debug(f"Key {key} not found")
            return None
        if isinstance(value, (bytes, bytearray)):
            value = value.decode()
        return value

    async def set_value_with_ttl(self, key: str, value: str, ttl: int):
        await self.setex(key, ttl, value)

    async def get_json(self, key: str) -> Optional[dict[str, Any]]:
        """
        Returns the decoded JSON value stored under ``key``.

        A value that is not valid JSON is treated as missing and removed.
        """
        raw = await self.get_value(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Key {key} holds invalid JSON, dropping it")
            await self.delete_key(key)
            return None

    async def set_json_with_ttl(self, key: str, data: dict[str, Any], ttl: int):
        await self.set_value_with_ttl(key, json.dumps(data, default=str), ttl)
