import logging

from redis import asyncio as aioredis

from wishlist_payments.core.config import Settings

logger = logging.getLogger(__name__)


class RedisClient:
    """Small string cache on top of redis.asyncio, used for gateway tokens."""

    def __init__(self, settings: Settings):
        self._client = aioredis.from_url(
            settings.REDIS_URL,
            password=settings.REDIS_PASSWORD or None,
            decode_responses=True,
        )

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        await self._client.set(key, value, ex=ttl)

    async def delete(self, key: str) -> None:
        await self._client.delete(key)

    async def close(self) -> None:
        await self._client.aclose()
