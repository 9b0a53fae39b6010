"""Pytest configuration and fixtures."""

import os
from collections.abc import Awaitable, Callable, Generator
from typing import Any

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import WatchError

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("ORDERS_INDEX_KEY", "orders")


class FakeRedis:
    """In-memory stand-in for the redis.asyncio commands the repository uses.

    Sorted sets order members by (score, member) like Redis does. Every
    write bumps a per-key version so WATCH can detect concurrent changes.
    Set ``unavailable`` to make every command fail with a connection error.
    Values may be stored as raw bytes; reads decode them as UTF-8 the way a
    client created with ``decode_responses=True`` does.
    """

    def __init__(self) -> None:
        self.strings: dict[str, str | bytes] = {}
        self.zsets: dict[str, dict[str, float]] = {}
        self.versions: dict[str, int] = {}
        self.unavailable = False
        self.before_exec: Callable[[], Awaitable[None]] | None = None
        self.executed_transactions = 0

    def _check(self) -> None:
        if self.unavailable:
            raise RedisConnectionError("Error 111 connecting to localhost:6379. Connection refused.")

    @staticmethod
    def _decode(value: str | bytes | None) -> str | None:
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    def _touch(self, key: str) -> None:
        self.versions[key] = self.versions.get(key, 0) + 1

    async def ping(self) -> bool:
        self._check()
        return True

    async def get(self, key: str) -> str | None:
        self._check()
        return self._decode(self.strings.get(key))

    async def set(self, key: str, value: str, nx: bool = False, xx: bool = False) -> bool | None:
        self._check()
        exists = key in self.strings
        if (nx and exists) or (xx and not exists):
            return None
        self.strings[key] = value
        self._touch(key)
        return True

    async def exists(self, *keys: str) -> int:
        self._check()
        return sum(1 for key in keys if key in self.strings or key in self.zsets)

    async def delete(self, *keys: str) -> int:
        self._check()
        removed = 0
        for key in keys:
            if self.strings.pop(key, None) is not None or self.zsets.pop(key, None) is not None:
                removed += 1
                self._touch(key)
        return removed

    async def mget(self, keys: list[str]) -> list[str | None]:
        self._check()
        return [self._decode(self.strings.get(key)) for key in keys]

    async def zadd(self, name: str, mapping: dict[str, int | float]) -> int:
        self._check()
        zset = self.zsets.setdefault(name, {})
        added = sum(1 for member in mapping if member not in zset)
        for member, score in mapping.items():
            zset[member] = float(score)
        self._touch(name)
        return added

    async def zrem(self, name: str, *members: str) -> int:
        self._check()
        zset = self.zsets.get(name, {})
        removed = sum(1 for member in members if zset.pop(member, None) is not None)
        if removed:
            self._touch(name)
        if name in self.zsets and not zset:
            del self.zsets[name]
        return removed

    async def zcard(self, name: str) -> int:
        self._check()
        return len(self.zsets.get(name, {}))

    async def zrange(self, name: str, start: int, end: int) -> list[str]:
        self._check()
        members = [m for m, _ in sorted(self.zsets.get(name, {}).items(), key=lambda kv: (kv[1], kv[0]))]
        size = len(members)
        if start < 0:
            start = max(size + start, 0)
        if end < 0:
            end = size + end
        if start > end or start >= size:
            return []
        return members[start : end + 1]

    def pipeline(self, transaction: bool = True) -> "FakePipeline":
        return FakePipeline(self)

    def index(self, name: str = "orders") -> list[str]:
        """Members of a sorted set in rank order."""
        return [m for m, _ in sorted(self.zsets.get(name, {}).items(), key=lambda kv: (kv[1], kv[0]))]


class FakePipeline:
    """MULTI/EXEC pipeline over FakeRedis with optimistic WATCH."""

    def __init__(self, redis: FakeRedis) -> None:
        self._redis = redis
        self._queue: list[tuple[str, tuple[Any, ...], dict[str, Any]]] = []
        self._watched: dict[str, int] = {}
        self.reset_called = False

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.reset()

    async def reset(self) -> None:
        self._queue = []
        self._watched = {}
        self.reset_called = True

    async def watch(self, *keys: str) -> bool:
        self._redis._check()
        for key in keys:
            self._watched[key] = self._redis.versions.get(key, 0)
        return True

    async def exists(self, *keys: str) -> int:
        return await self._redis.exists(*keys)

    def multi(self) -> None:
        self._queue = []

    def _queue_command(self, name: str, *args: Any, **kwargs: Any) -> "FakePipeline":
        self._queue.append((name, args, kwargs))
        return self

    def set(self, *args: Any, **kwargs: Any) -> "FakePipeline":
        return self._queue_command("set", *args, **kwargs)

    def zadd(self, *args: Any, **kwargs: Any) -> "FakePipeline":
        return self._queue_command("zadd", *args, **kwargs)

    def delete(self, *args: Any, **kwargs: Any) -> "FakePipeline":
        return self._queue_command("delete", *args, **kwargs)

    def zrem(self, *args: Any, **kwargs: Any) -> "FakePipeline":
        return self._queue_command("zrem", *args, **kwargs)

    async def execute(self) -> list[Any]:
        if self._redis.before_exec is not None:
            await self._redis.before_exec()

        self._redis._check()
        for key, version in self._watched.items():
            if self._redis.versions.get(key, 0) != version:
                raise WatchError("Watched variable changed.")

        results = []
        for name, args, kwargs in self._queue:
            results.append(await getattr(self._redis, name)(*args, **kwargs))
        self._redis.executed_transactions += 1
        return results


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Provide an empty in-memory Redis double."""
    return FakeRedis()


@pytest.fixture
def order_repository(fake_redis: FakeRedis) -> Any:
    """Provide an OrderRepository bound to the in-memory Redis double."""
    from src.services.order_repository import OrderRepository

    return OrderRepository(redis_client=fake_redis, index_key="orders")


@pytest.fixture
def client(order_repository: Any) -> Generator[TestClient, None, None]:
    """Provide a test client whose routes use the in-memory order repository.

    Args:
        order_repository: Repository fixture backed by FakeRedis.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app
    from src.services.order_repository import get_order_repository

    app.dependency_overrides[get_order_repository] = lambda: order_repository
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
