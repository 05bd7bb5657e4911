"""Per-entry sync: fetch from FPL, upsert, refresh the cache."""

import logging

from letletme_sync.caches.entry_info import EntryInfoCache
from letletme_sync.db.unit_of_work import UOWFactoryType
from letletme_sync.orchestration.batch_orchestrator import IdProvider
from letletme_sync.shared.repositories.entry_info import entry_info_to_data
from letletme_sync.upstream.dto import EntryInfoData
from letletme_sync.upstream.fpl import FplApi

logger = logging.getLogger(__name__)


class EntryInfoSyncer:
    """Domain sync function for one entry; safe to call repeatedly for the same id."""

    def __init__(
        self,
        api: FplApi,
        uow_factory: UOWFactoryType,
        cache: EntryInfoCache | None = None,
    ) -> None:
        self._api = api
        self._uow_factory = uow_factory
        self._cache = cache

    async def sync_entry_info(self, entry_id: int, event_id: int | None = None) -> EntryInfoData:
        """Raises on fetch or database failure; cache failures are only logged."""
        data = await self._api.get_entry_info(entry_id)

        async def write() -> EntryInfoData:
            async with self._uow_factory() as uow:
                row = await uow.entry_infos.upsert(data)
            return entry_info_to_data(row)

        if self._cache is None:
            stored = await write()
        else:
            stored = await self._cache.write_through(entry_id, write)

        logger.debug(f"Synced entry {entry_id} ({stored.entry_name}) for event {event_id}")
        return stored


def find_entry_ids(uow_factory: UOWFactoryType) -> IdProvider:
    """Id provider paging through every known entry."""

    async def _find(offset: int, limit: int) -> list[int]:
        async with uow_factory() as uow:
            return await uow.entry_infos.find_ids(offset=offset, limit=limit)

    return _find
