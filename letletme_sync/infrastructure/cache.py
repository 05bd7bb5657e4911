"""Generic cache-aside store over a key-value backend.

The durable store is the source of truth. Cache failures are logged and
never surfaced to callers: reads fall through to the loader, writes after a
successful durable write are best-effort.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from letletme_sync.errors import CacheOperationError
from letletme_sync.infrastructure.cache_backend import CacheBackend

logger = logging.getLogger(__name__)

V = TypeVar("V")
T = TypeVar("T")

CacheKey = str | int


class CacheEntry(BaseModel, Generic[V]):
    value: V
    cached_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class CacheAsideStore(Generic[T]):
    """Read-through / write-through cache for one kind of value.

    Keys are namespaced as ``{prefix}::{partition}:{key}``. The partition is a
    coarse dimension (season, gameweek) so that a context rollover is a key
    namespace change rather than a bulk invalidation.

    Example:
        events = CacheAsideStore(backend, "event", EventData, partition="2025")
        current = await events.get_or_load("current", repository.find_current)
    """

    def __init__(
        self,
        backend: CacheBackend,
        prefix: str,
        value_type: type[T],
        partition: str | int = "",
        default_ttl: int | None = None,
        key_of: Callable[[T], CacheKey] | None = None,
        warm_batch_size: int = 100,
    ) -> None:
        if not prefix or not prefix.strip():
            raise ValueError("Cache prefix is required")
        if default_ttl is not None and default_ttl <= 0:
            raise ValueError("default_ttl must be positive")

        self.backend = backend
        self.prefix = prefix.strip()
        self.value_type = value_type
        self.partition = str(partition)
        self.default_ttl = default_ttl
        self.key_of = key_of
        self.warm_batch_size = warm_batch_size
        self._entry_model: type[CacheEntry[Any]] = CacheEntry[value_type]  # type: ignore[valid-type]

    @property
    def base_key(self) -> str:
        return f"{self.prefix}::{self.partition}"

    def make_key(self, key: CacheKey) -> str:
        key_str = str(key).strip()
        if not key_str:
            raise ValueError("Cache key must not be empty")
        return f"{self.base_key}:{key_str}"

    def with_partition(self, partition: str | int) -> "CacheAsideStore[T]":
        """Same cache over another partition, sharing the backend."""
        return CacheAsideStore(
            self.backend,
            self.prefix,
            self.value_type,
            partition=partition,
            default_ttl=self.default_ttl,
            key_of=self.key_of,
            warm_batch_size=self.warm_batch_size,
        )

    def _serialize(self, value: T) -> str:
        return self._entry_model(value=value).model_dump_json()

    def _deserialize(self, raw: str) -> T:
        return self._entry_model.model_validate_json(raw).value

    def _decode(self, full_key: str, raw: str | None) -> tuple[bool, T | None]:
        """Returns (hit, value); corrupt entries count as a miss."""
        if raw is None:
            return False, None
        try:
            return True, self._deserialize(raw)
        except PydanticValidationError as e:
            logger.warning(f"Discarding undecodable cache entry {full_key}: {e}")
            return False, None

    def _resolve_ttl(self, ttl: int | None) -> int | None:
        resolved = ttl if ttl is not None else self.default_ttl
        if resolved is not None and resolved <= 0:
            raise ValueError("ttl must be positive")
        return resolved

    async def get(self, key: CacheKey) -> T | None:
        """Cached value, or None on miss, corrupt entry or backend failure."""
        full_key = self.make_key(key)
        try:
            raw = await self.backend.get(full_key)
        except CacheOperationError as e:
            logger.warning(f"Cache read failed for {full_key}: {e}")
            return None
        _, value = self._decode(full_key, raw)
        return value

    async def set(self, key: CacheKey, value: T, ttl: int | None = None) -> bool:
        """Populate one key. Returns False (and logs) if the backend failed."""
        full_key = self.make_key(key)
        resolved_ttl = self._resolve_ttl(ttl)
        try:
            await self.backend.set(full_key, self._serialize(value), resolved_ttl)
        except CacheOperationError as e:
            logger.error(f"Cache write failed for {full_key}: {e}")
            return False
        return True

    async def cache_many(self, items: Mapping[CacheKey, T], ttl: int | None = None) -> bool:
        """Populate many keys in one pipelined round trip."""
        if not items:
            return True
        resolved_ttl = self._resolve_ttl(ttl)
        payload = {self.make_key(key): self._serialize(value) for key, value in items.items()}
        try:
            await self.backend.set_many(payload, resolved_ttl)
        except CacheOperationError as e:
            logger.error(f"Cache batch write of {len(payload)} keys under {self.base_key} failed: {e}")
            return False
        return True

    async def get_or_load(
        self,
        key: CacheKey,
        loader: Callable[[], Awaitable[T | None]],
        ttl: int | None = None,
    ) -> T | None:
        """Cache hit, or exactly one ``loader()`` call followed by best-effort populate.

        Loader errors propagate; cache errors never do.
        """
        full_key = self.make_key(key)
        try:
            raw = await self.backend.get(full_key)
        except CacheOperationError as e:
            logger.warning(f"Cache read failed for {full_key}, falling back to loader: {e}")
            raw = None

        hit, value = self._decode(full_key, raw)
        if hit:
            return value

        loaded = await loader()
        if loaded is not None:
            await self.set(key, loaded, ttl)
        return loaded

    async def get_all_or_load(
        self,
        keys: Sequence[CacheKey],
        loader: Callable[[list[CacheKey]], Awaitable[Mapping[CacheKey, T]]],
        ttl: int | None = None,
    ) -> dict[CacheKey, T]:
        """Bulk variant of get_or_load.

        The loader is invoked at most once, with every key that missed.
        Keys the loader does not return are absent from the result.
        """
        if not keys:
            return {}

        full_keys = [self.make_key(key) for key in keys]
        try:
            raws = await self.backend.get_many(full_keys)
        except CacheOperationError as e:
            logger.warning(f"Cache bulk read under {self.base_key} failed: {e}")
            raws = [None] * len(full_keys)

        found: dict[CacheKey, T] = {}
        missing: list[CacheKey] = []
        for key, full_key, raw in zip(keys, full_keys, raws, strict=True):
            hit, value = self._decode(full_key, raw)
            if hit:
                found[key] = value  # type: ignore[assignment]
            else:
                missing.append(key)

        if not missing:
            return found

        logger.debug(f"{len(missing)}/{len(keys)} keys missed under {self.base_key}")
        loaded = dict(await loader(missing))
        if loaded:
            await self.cache_many(loaded, ttl)

        for key in missing:
            if key in loaded:
                found[key] = loaded[key]
        return found

    async def invalidate(self, key: CacheKey) -> bool:
        full_key = self.make_key(key)
        try:
            await self.backend.delete(full_key)
        except CacheOperationError as e:
            logger.error(f"Cache invalidation failed for {full_key}: {e}")
            return False
        return True

    async def invalidate_many(self, keys: Iterable[CacheKey]) -> bool:
        full_keys = [self.make_key(key) for key in keys]
        if not full_keys:
            return True
        try:
            await self.backend.delete(*full_keys)
        except CacheOperationError as e:
            logger.error(f"Cache invalidation of {len(full_keys)} keys failed: {e}")
            return False
        return True

    async def write_through(
        self,
        key: CacheKey,
        writer: Callable[[], Awaitable[T]],
        ttl: int | None = None,
    ) -> T:
        """Durable write first, then cache populate. Durable errors propagate."""
        value = await writer()
        await self.set(key, value, ttl)
        return value

    async def write_through_many(
        self,
        writer: Callable[[], Awaitable[Sequence[T]]],
        ttl: int | None = None,
    ) -> Sequence[T]:
        key_of = self._require_key_of()
        values = await writer()
        await self.cache_many({key_of(value): value for value in values}, ttl)
        return values

    async def warm_up(
        self,
        loader: Callable[[], Awaitable[Iterable[T]]],
        ttl: int | None = None,
    ) -> int:
        """Load every value and populate the cache in batches.

        Returns the number of values cached. Loader errors propagate.
        """
        key_of = self._require_key_of()
        values = list(await loader())
        cached = 0
        for start in range(0, len(values), self.warm_batch_size):
            batch = values[start : start + self.warm_batch_size]
            if await self.cache_many({key_of(value): value for value in batch}, ttl):
                cached += len(batch)

        logger.info(f"Warmed {cached}/{len(values)} entries under {self.base_key}")
        return cached

    def _require_key_of(self) -> Callable[[T], CacheKey]:
        if self.key_of is None:
            raise ValueError(f"Cache {self.prefix} has no key_of function")
        return self.key_of
