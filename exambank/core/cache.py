import json
import logging
from typing import Any, Optional

import redis

from exambank.core.config import settings

logger = logging.getLogger(__name__)


def pool_analytics_key(pool_id: str) -> str:
    return f"analytics:pool:{pool_id}"


def exam_analytics_key(exam_id: str) -> str:
    return f"analytics:exam:{exam_id}"


class AnalyticsCache:
    """JSON read-through cache for analytics payloads.

    Redis failures are logged and behave like misses.
    """

    def __init__(self, client: Optional[redis.Redis] = None, enabled: Optional[bool] = None, ttl: Optional[int] = None):
        self._client = client
        self.enabled = settings.ANALYTICS_CACHE_ENABLED if enabled is None else enabled
        self.ttl = ttl or settings.ANALYTICS_CACHE_TTL

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)
        return self._client

    def get(self, key: str) -> Optional[Any]:
        if not self.enabled:
            return None
        try:
            raw = self.client.get(key)
        except redis.RedisError as e:
            logger.error(f"Cache get error for {key}: {e}")
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            return None

    def set(self, key: str, value: Any, expire: Optional[int] = None) -> bool:
        if not self.enabled:
            return False
        try:
            return bool(self.client.set(key, json.dumps(value, default=str), ex=expire or self.ttl))
        except redis.RedisError as e:
            logger.error(f"Cache set error for {key}: {e}")
            return False

    def invalidate(self, *keys: str) -> int:
        if not self.enabled or not keys:
            return 0
        try:
            return self.client.delete(*keys)
        except redis.RedisError as e:
            logger.error(f"Cache delete error: {e}")
            return 0


analytics_cache = AnalyticsCache()


def get_analytics_cache() -> AnalyticsCache:
    return analytics_cache
