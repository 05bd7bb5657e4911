"""Event (gameweek) cache, partitioned by season."""

from collections.abc import Awaitable, Callable, Iterable, Sequence

from letletme_sync.infrastructure.cache import CacheAsideStore
from letletme_sync.infrastructure.cache_backend import CacheBackend
from letletme_sync.upstream.dto import EventData
from letletme_sync.utils import current_season

EVENT_PREFIX = "event"
CURRENT_KEY = "current"
# current event flips at each deadline; keep it short-lived
CURRENT_EVENT_TTL = 60 * 60


class EventCache:
    """Current gameweek plus every event of the season, by id.

    Keys: ``event::{season}:current`` and ``event::{season}:{event_id}``.
    """

    def __init__(
        self,
        backend: CacheBackend,
        season: str | None = None,
        ttl: int | None = None,
        current_ttl: int = CURRENT_EVENT_TTL,
    ) -> None:
        self._season = season
        self.current_ttl = current_ttl
        self._store: CacheAsideStore[EventData] = CacheAsideStore(
            backend,
            EVENT_PREFIX,
            EventData,
            default_ttl=ttl,
            key_of=lambda event: event.id,
        )

    @property
    def season(self) -> str:
        """Pinned season, else the season of the current date.

        Resolved on every call so a long-running process moves to the new
        season's keys at the August rollover.
        """
        return self._season or current_season()

    @property
    def store(self) -> CacheAsideStore[EventData]:
        return self._store.with_partition(self.season)

    async def get_current(
        self, loader: Callable[[], Awaitable[EventData | None]]
    ) -> EventData | None:
        """Cached current event, else ``loader()``. A None result is not cached."""
        return await self.store.get_or_load(CURRENT_KEY, loader, ttl=self.current_ttl)

    async def set_current(self, event: EventData) -> bool:
        return await self.store.set(CURRENT_KEY, event, ttl=self.current_ttl)

    async def invalidate_current(self) -> bool:
        return await self.store.invalidate(CURRENT_KEY)

    async def get(self, event_id: int) -> EventData | None:
        return await self.store.get(event_id)

    async def cache_events(self, events: Iterable[EventData]) -> bool:
        return await self.store.cache_many({event.id: event for event in events})

    async def warm_up(self, loader: Callable[[], Awaitable[Sequence[EventData]]]) -> int:
        """Populate every event of the season and the current one from ``loader``."""
        events: list[EventData] = []

        async def load() -> list[EventData]:
            events.extend(await loader())
            return events

        cached = await self.store.warm_up(load)
        current = next((event for event in events if event.is_current), None)
        if current is not None:
            await self.set_current(current)
        return cached
