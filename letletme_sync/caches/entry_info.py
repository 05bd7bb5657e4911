"""Entry info cache, partitioned by season."""

from collections.abc import Awaitable, Callable, Mapping, Sequence

from letletme_sync.infrastructure.cache import CacheAsideStore, CacheKey
from letletme_sync.infrastructure.cache_backend import CacheBackend
from letletme_sync.upstream.dto import EntryInfoData
from letletme_sync.utils import current_season

ENTRY_INFO_PREFIX = "entry_info"


class EntryInfoCache:
    """Entry snapshots keyed ``entry_info::{season}:{entry_id}``."""

    def __init__(self, backend: CacheBackend, season: str | None = None, ttl: int | None = None) -> None:
        self._season = season
        self._store: CacheAsideStore[EntryInfoData] = CacheAsideStore(
            backend,
            ENTRY_INFO_PREFIX,
            EntryInfoData,
            default_ttl=ttl,
            key_of=lambda info: info.id,
        )

    @property
    def season(self) -> str:
        """Pinned season, else the season of the current date."""
        return self._season or current_season()

    @property
    def store(self) -> CacheAsideStore[EntryInfoData]:
        return self._store.with_partition(self.season)

    async def get(self, entry_id: int) -> EntryInfoData | None:
        return await self.store.get(entry_id)

    async def get_or_load(
        self, entry_id: int, loader: Callable[[], Awaitable[EntryInfoData | None]]
    ) -> EntryInfoData | None:
        return await self.store.get_or_load(entry_id, loader)

    async def get_many_or_load(
        self,
        entry_ids: Sequence[int],
        loader: Callable[[list[CacheKey]], Awaitable[Mapping[CacheKey, EntryInfoData]]],
    ) -> dict[CacheKey, EntryInfoData]:
        return await self.store.get_all_or_load(entry_ids, loader)

    async def write_through(
        self, entry_id: int, writer: Callable[[], Awaitable[EntryInfoData]]
    ) -> EntryInfoData:
        return await self.store.write_through(entry_id, writer)

    async def invalidate(self, entry_id: int) -> bool:
        return await self.store.invalidate(entry_id)
