import os
from collections import defaultdict

import pytest

# keep the scrape limiter out of the way of the API tests
os.environ.setdefault("RATE_LIMIT_REQUESTS", "1000")


class FakeRedis:
    """Just enough of the redis-py client surface for the cache and record store."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.zsets: dict[str, dict[str, float]] = defaultdict(dict)

    def ping(self):
        return True

    def get(self, key):
        return self.values.get(key)

    def mget(self, keys):
        return [self.values.get(key) for key in keys]

    def set(self, key, value, nx=False):
        if nx and key in self.values:
            return None
        self.values[key] = value
        return True

    def setex(self, key, ttl, value):
        self.values[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        return sum(self.values.pop(key, None) is not None for key in keys)

    def zadd(self, key, mapping):
        self.zsets[key].update(mapping)
        return len(mapping)

    def zcard(self, key):
        return len(self.zsets[key])

    def zrem(self, key, *members):
        return sum(self.zsets[key].pop(member, None) is not None for member in members)

    def zrevrange(self, key, start, end):
        ordered = [m for m, _ in sorted(self.zsets[key].items(), key=lambda kv: (kv[1], kv[0]), reverse=True)]
        if end < 0:
            end = len(ordered) + end
        return ordered[start:end + 1]

    def pipeline(self):
        return FakePipeline(self)


class FakePipeline:
    def __init__(self, client):
        self._client = client
        self._queued = []

    def __getattr__(self, name):
        def queue(*args, **kwargs):
            self._queued.append((name, args, kwargs))
            return self
        return queue

    def execute(self):
        results = [getattr(self._client, name)(*args, **kwargs) for name, args, kwargs in self._queued]
        self._queued = []
        return results


@pytest.fixture
def fake_redis():
    return FakeRedis()
