"""Event (gameweek) sync from bootstrap-static."""

import logging

from letletme_sync.caches.event import EventCache
from letletme_sync.db.unit_of_work import UOWFactoryType
from letletme_sync.shared.repositories.event import event_to_data
from letletme_sync.upstream.dto import EventData
from letletme_sync.upstream.fpl import FplApi

logger = logging.getLogger(__name__)


async def sync_events(
    api: FplApi,
    uow_factory: UOWFactoryType,
    cache: EventCache | None = None,
) -> list[EventData]:
    """Upsert every event of the season, then refresh the event cache."""
    events = await api.get_bootstrap_events()
    if not events:
        logger.warning("No events returned from bootstrap-static")
        return []

    async with uow_factory() as uow:
        await uow.events.upsert_many(events)

    current = next((event for event in events if event.is_current), None)
    if cache is not None:
        await cache.cache_events(events)
        if current is not None:
            await cache.set_current(current)
        else:
            await cache.invalidate_current()

    logger.info(
        f"Event sync completed: {len(events)} events, "
        f"current={current.id if current else None}"
    )
    return events


async def get_current_event(
    uow_factory: UOWFactoryType,
    cache: EventCache | None = None,
) -> EventData | None:
    """Current gameweek from the cache, falling back to the database."""

    async def load() -> EventData | None:
        async with uow_factory() as uow:
            event = await uow.events.find_current()
        return event_to_data(event) if event else None

    if cache is None:
        return await load()
    return await cache.get_current(load)
