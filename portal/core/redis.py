# ============================================================================
# Redis Connection
# ============================================================================
import json
import logging
from typing import Any, Optional

import redis.asyncio as redis
from portal.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

redis_client = redis.from_url(
    settings.REDIS_URL,
    encoding="utf-8",
    decode_responses=True
)

class RedisCache:
    """
    Redis caching utility for public read models.

    The portal is fully functional without Redis: connection problems are
    logged and treated as cache misses.
    """

    def __init__(self, client: redis.Redis, enabled: bool = True, default_ttl: int = 300):
        self.client = client
        self.enabled = enabled
        self.default_ttl = default_ttl

    async def get_json(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            data = await self.client.get(key)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Cache read failed for {key}: {e}")
            return None
        return json.loads(data) if data else None

    async def set_json(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if not self.enabled:
            return
        try:
            await self.client.setex(key, ttl or self.default_ttl, json.dumps(value, default=str))
        except redis.RedisError as e:
            logger.warning(f"⚠️ Cache write failed for {key}: {e}")

    async def invalidate(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``. Returns the number removed."""
        if not self.enabled:
            return 0
        removed = 0
        try:
            async for key in self.client.scan_iter(match=f"{prefix}*"):
                removed += await self.client.delete(key)
        except redis.RedisError as e:
            logger.warning(f"⚠️ Cache invalidation failed for {prefix}: {e}")
        return removed

cache = RedisCache(
    redis_client,
    enabled=settings.CACHE_ENABLED,
    default_ttl=settings.CACHE_TTL_SECONDS
)
