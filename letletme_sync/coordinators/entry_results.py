"""Per-entry gameweek results: picks plus live points, upserted per (entry, event)."""

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

from letletme_sync.db.unit_of_work import UOWFactoryType
from letletme_sync.errors import ValidationError
from letletme_sync.shared.repositories.entry_event_result import entry_event_result_from_picks
from letletme_sync.upstream.dto import EventData
from letletme_sync.upstream.fpl import FplApi

logger = logging.getLogger(__name__)

CurrentEventLoader = Callable[[], Awaitable[EventData | None]]


class EntryResultsSyncer:
    """Domain sync function for one entry's gameweek result.

    Live points are shared by every entry of a job, so they are fetched once per
    event and reused for ``live_ttl`` seconds.
    """

    def __init__(
        self,
        api: FplApi,
        uow_factory: UOWFactoryType,
        current_event: CurrentEventLoader | None = None,
        live_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self._uow_factory = uow_factory
        self._current_event = current_event
        self._live_ttl = live_ttl
        self._clock = clock
        self._live: dict[int, tuple[float, dict[int, int]]] = {}
        self._live_lock = asyncio.Lock()

    async def sync_entry_results(self, entry_id: int, event_id: int | None = None) -> int:
        """Returns the stored event points. Raises on fetch or database failure."""
        event_id = await self._resolve_event(event_id)
        picks = await self._api.get_entry_event_picks(entry_id, event_id)
        live_points = await self.live_points(event_id)

        row = entry_event_result_from_picks(picks, live_points)
        async with self._uow_factory() as uow:
            await uow.entry_event_results.upsert(row)

        logger.debug(
            f"Synced entry {entry_id} event {event_id}: "
            f"{row.event_points} points, captain {row.event_played_captain}"
        )
        return row.event_points

    async def live_points(self, event_id: int) -> dict[int, int]:
        async with self._live_lock:
            cached = self._live.get(event_id)
            if cached is not None and self._clock() - cached[0] < self._live_ttl:
                return cached[1]

            points = await self._api.get_event_live_points(event_id)
            self._live[event_id] = (self._clock(), points)
            return points

    async def _resolve_event(self, event_id: int | None) -> int:
        if event_id is not None:
            return event_id
        current = await self._current_event() if self._current_event else None
        if current is None:
            raise ValidationError("No event id given and no current event known")
        return current.id
