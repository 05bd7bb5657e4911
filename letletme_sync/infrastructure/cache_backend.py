"""Key-value cache backends."""

import logging
from collections.abc import Mapping, Sequence
from types import TracebackType
from typing import Protocol, Self

import redis.asyncio as redis
from redis.exceptions import RedisError

from letletme_sync.errors import CacheOperationError

logger = logging.getLogger(__name__)


class CacheBackend(Protocol):
    """String key-value store used by CacheAsideStore.

    Implementations raise CacheOperationError on backend failure.
    """

    async def get(self, key: str) -> str | None: ...

    async def get_many(self, keys: Sequence[str]) -> list[str | None]: ...

    async def set(self, key: str, value: str, ttl: int | None = None) -> None: ...

    async def set_many(self, items: Mapping[str, str], ttl: int | None = None) -> None: ...

    async def delete(self, *keys: str) -> int: ...

    async def exists(self, key: str) -> bool: ...


class RedisCacheBackend:
    """Redis backend; batched writes go through a MULTI/EXEC pipeline.

    Constructed once at startup and passed to every cache that needs it.
    """

    def __init__(self, url: str, socket_timeout: float = 5.0) -> None:
        self.url = url
        self.socket_timeout = socket_timeout
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = redis.from_url(
            self.url,
            decode_responses=True,
            socket_timeout=self.socket_timeout,
            socket_connect_timeout=self.socket_timeout,
        )
        try:
            await self._client.ping()
        except RedisError as e:
            raise CacheOperationError(f"Failed to connect to redis: {e}") from e
        logger.info("Connected to redis cache backend")

    async def close(self) -> None:
        if self._client is None:
            return
        await self._client.aclose()
        self._client = None
        logger.info("Redis cache backend closed")

    async def __aenter__(self) -> Self:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise CacheOperationError("Redis cache backend is not connected")
        return self._client

    async def get(self, key: str) -> str | None:
        try:
            return await self.client.get(key)
        except RedisError as e:
            raise CacheOperationError(f"GET {key} failed: {e}") from e

    async def get_many(self, keys: Sequence[str]) -> list[str | None]:
        if not keys:
            return []
        try:
            return await self.client.mget(list(keys))
        except RedisError as e:
            raise CacheOperationError(f"MGET of {len(keys)} keys failed: {e}") from e

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        try:
            await self.client.set(key, value, ex=ttl)
        except RedisError as e:
            raise CacheOperationError(f"SET {key} failed: {e}") from e

    async def set_many(self, items: Mapping[str, str], ttl: int | None = None) -> None:
        if not items:
            return
        try:
            async with self.client.pipeline(transaction=True) as pipe:
                for key, value in items.items():
                    pipe.set(key, value, ex=ttl)
                await pipe.execute()
        except RedisError as e:
            raise CacheOperationError(f"Pipelined SET of {len(items)} keys failed: {e}") from e

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        try:
            return await self.client.delete(*keys)
        except RedisError as e:
            raise CacheOperationError(f"DEL of {len(keys)} keys failed: {e}") from e

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self.client.exists(key))
        except RedisError as e:
            raise CacheOperationError(f"EXISTS {key} failed: {e}") from e
