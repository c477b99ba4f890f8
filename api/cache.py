import hashlib
import json
import logging
import os
from typing import Optional

import redis

logger = logging.getLogger(__name__)

REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379")
CACHE_TTL = int(os.getenv("CACHE_TTL_SECONDS", "3600"))  # 1 hour default


def url_digest(url: str) -> str:
    # use a short hash so keys stay small regardless of URL length
    return hashlib.sha256(url.encode()).hexdigest()[:16]


class PreviewCache:
    """
    Short-lived cache of full extractions, keyed by normalized URL.

    Degrades gracefully: with no client every lookup misses and writes are dropped.
    """

    def __init__(self, client: Optional[redis.Redis], ttl: int = CACHE_TTL):
        self._client = client
        self.ttl = ttl

    @staticmethod
    def key(url: str) -> str:
        return f"scrape:{url_digest(url)}"

    def get(self, url: str) -> Optional[dict]:
        if self._client is None:
            return None
        try:
            raw = self._client.get(self.key(url))
            return json.loads(raw) if raw else None
        except (redis.RedisError, ValueError) as exc:
            logger.warning("Cache read error: %s", exc)
            return None

    def set(self, url: str, extraction: dict) -> None:
        if self._client is None:
            return
        try:
            self._client.setex(self.key(url), self.ttl, json.dumps(extraction))
        except (redis.RedisError, TypeError) as exc:
            logger.warning("Cache write error: %s", exc)

    def healthy(self) -> bool:
        if self._client is None:
            return False
        try:
            return bool(self._client.ping())
        except redis.RedisError:
            return False


_cache: Optional[PreviewCache] = None


def get_cache() -> PreviewCache:
    global _cache
    if _cache is None:
        client: Optional[redis.Redis] = redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=2)
        try:
            client.ping()
        except redis.RedisError as exc:
            logger.warning("Redis unavailable, caching disabled: %s", exc)
            client = None
        _cache = PreviewCache(client)
    return _cache
