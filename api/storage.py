import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import redis

from scraper.models import RefinedRecord
from .cache import REDIS_URL, url_digest

logger = logging.getLogger(__name__)

RECORD_PREFIX = "scraped:record:"
URL_PREFIX = "scraped:url:"
INDEX_KEY = "scraped:index"     # sorted set: record id -> scraped_at timestamp


class DuplicateRecordError(Exception):
    """A record for this URL has already been saved."""

    def __init__(self, url: str):
        super().__init__(f"Scraped data for {url} already exists")
        self.url = url


def _timestamp(value: Optional[str], fallback: datetime) -> float:
    if value:
        try:
            return datetime.fromisoformat(value).timestamp()
        except ValueError:
            logger.debug("Unparseable scraped_at %r, using creation time", value)
    return fallback.timestamp()


class RecordStore:
    """
    Refined records kept as JSON documents in Redis.

    Records are immutable: there is create / read / delete, no update.
    Unlike the preview cache, Redis errors propagate to the caller.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    def create(self, record: RefinedRecord, owner_id: Optional[str]) -> dict[str, Any]:
        record_id = uuid.uuid4().hex
        url_key = f"{URL_PREFIX}{url_digest(record.url)}"
        # claim the url first so two concurrent saves cannot both succeed
        if not self._client.set(url_key, record_id, nx=True):
            raise DuplicateRecordError(record.url)

        now = datetime.now(timezone.utc)
        document = record.to_dict()
        document["scraped_at"] = document["scraped_at"] or now.isoformat()
        document.update(
            id=record_id,
            scraped_by=owner_id,
            created_at=now.isoformat(),
            updated_at=now.isoformat(),
        )

        pipe = self._client.pipeline()
        pipe.set(f"{RECORD_PREFIX}{record_id}", json.dumps(document))
        pipe.zadd(INDEX_KEY, {record_id: _timestamp(document["scraped_at"], now)})
        try:
            pipe.execute()
        except redis.RedisError:
            # a url claim must never outlive a failed write
            logger.error("Failed to store record for %s, releasing url claim", record.url)
            self._client.delete(url_key)
            raise
        logger.info("Stored scraped record %s for %s", record_id, record.url)
        return document

    def find_by_id(self, record_id: str) -> Optional[dict[str, Any]]:
        raw = self._client.get(f"{RECORD_PREFIX}{record_id}")
        return json.loads(raw) if raw else None

    def find_many(self, url_filter: Optional[str] = None, limit: int = 50, offset: int = 0) -> tuple[list[dict], int]:
        """Newest first. `url_filter` is a case-insensitive substring match on the url."""
        if not url_filter:
            total = self._client.zcard(INDEX_KEY)
            ids = self._client.zrevrange(INDEX_KEY, offset, offset + limit - 1)
            return self._load(ids), total

        needle = url_filter.lower()
        matches = [
            doc for doc in self._load(self._client.zrevrange(INDEX_KEY, 0, -1))
            if needle in doc.get("url", "").lower()
        ]
        return matches[offset:offset + limit], len(matches)

    def delete_by_id(self, record_id: str) -> bool:
        document = self.find_by_id(record_id)
        if document is None:
            return False
        pipe = self._client.pipeline()
        pipe.delete(f"{RECORD_PREFIX}{record_id}")
        pipe.delete(f"{URL_PREFIX}{url_digest(document['url'])}")
        pipe.zrem(INDEX_KEY, record_id)
        pipe.execute()
        logger.info("Deleted scraped record %s", record_id)
        return True

    def _load(self, ids: list[str]) -> list[dict]:
        if not ids:
            return []
        raws = self._client.mget([f"{RECORD_PREFIX}{record_id}" for record_id in ids])
        return [json.loads(raw) for raw in raws if raw]


_store: Optional[RecordStore] = None


def get_store() -> RecordStore:
    global _store
    if _store is None:
        _store = RecordStore(redis.from_url(REDIS_URL, decode_responses=True, socket_connect_timeout=2))
    return _store
