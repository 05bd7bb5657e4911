"""Bootstrap for the letletme sync service.

Builds every client once (HTTP, Redis, database) and wires them into the
coordinators, one orchestrator per entry job and the scheduler.
"""

import logging
from dataclasses import dataclass

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from letletme_sync.caches import EntryInfoCache, EventCache
from letletme_sync.coordinators import (
    EntryInfoSyncer,
    EntryResultsSyncer,
    find_entry_ids,
    get_current_event,
    sync_events,
)
from letletme_sync.db.unit_of_work import UOWFactoryType, create_uow_factory
from letletme_sync.errors import CacheOperationError
from letletme_sync.infrastructure.cache_backend import RedisCacheBackend
from letletme_sync.infrastructure.http_client import ResilientHTTPClient
from letletme_sync.infrastructure.rate_limiter import TokenBucketRateLimiter
from letletme_sync.orchestration import (
    BatchSyncOrchestrator,
    SyncJob,
    SyncJobQueue,
    SyncSource,
)
from letletme_sync.runtime import RuntimeConfig
from letletme_sync.upstream.dto import EventData
from letletme_sync.upstream.fpl import FplApi
from letletme_sync.utils import is_fpl_season

logger = logging.getLogger(__name__)

ENTRY_INFO_JOB = "entry-info"
ENTRY_RESULTS_JOB = "entry-results"


@dataclass
class SyncService:
    """Everything main() needs to run the scheduler or a one-off job."""

    scheduler: AsyncIOScheduler
    orchestrators: dict[str, BatchSyncOrchestrator]
    api: FplApi
    uow_factory: UOWFactoryType
    event_cache: EventCache
    http_client: ResilientHTTPClient
    cache_backend: RedisCacheBackend

    async def sync_events(self) -> list[EventData]:
        """Scheduled event sync; skipped off-season."""
        if not is_fpl_season():
            logger.info("Off-season, skipping event sync")
            return []
        return await sync_events(self.api, self.uow_factory, self.event_cache)

    async def enqueue_entry_sync(
        self,
        job_name: str,
        entry_ids: list[int] | None = None,
        source: SyncSource = SyncSource.CRON,
        event_id: int | None = None,
    ) -> SyncJob | None:
        """Queue an entry job for ``event_id`` (default: the current event).

        Cron jobs are skipped off-season. Results jobs need an event and are
        skipped when none is known yet.

        Raises:
            KeyError: If ``job_name`` has no orchestrator
        """
        orchestrator = self.orchestrators[job_name]
        if source == SyncSource.CRON and not is_fpl_season():
            logger.info(f"Off-season, skipping {job_name} sync")
            return None
        if event_id is None:
            current = await get_current_event(self.uow_factory, self.event_cache)
            event_id = current.id if current else None
        if event_id is None and job_name == ENTRY_RESULTS_JOB:
            logger.warning(f"No current event, skipping {job_name} sync")
            return None
        return orchestrator.queue.enqueue(entry_ids, source=source, event_id=event_id)

    async def close(self) -> None:
        for orchestrator in self.orchestrators.values():
            orchestrator.stop()
            orchestrator.queue.close()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        await self.http_client.close()
        await self.cache_backend.close()


async def bootstrap(config: RuntimeConfig) -> SyncService:
    """Set up clients, orchestrators and scheduler jobs.

    Jobs registered:
    - events_sync: daily at 06:35 (bootstrap-static events upsert + cache)
    - entry_info_sync: daily at 07:00 (enqueue a cron job for all entries)
    - entry_results_sync: daily at 10:30 (current gameweek results for all entries)

    The caller starts the scheduler and runs ``serve()`` on every orchestrator.

    Raises:
        ValueError: If rate limiter or orchestrator options are invalid
    """
    rate_limiter = TokenBucketRateLimiter(
        capacity=config.rate_limiter_capacity,
        tokens_per_interval=config.rate_limiter_refill_rate,
        interval=config.rate_limiter_interval,
    )
    http_client = ResilientHTTPClient(
        config.fpl_base_url,
        rate_limiter=rate_limiter,
        retry_policy=config.retry_policy,
        timeout=config.http_timeout,
        wait_for_tokens=config.wait_for_tokens,
        cache_bust=True,
    )
    await http_client.connect()

    cache_backend = RedisCacheBackend(config.redis_url, socket_timeout=config.redis_socket_timeout)
    try:
        await cache_backend.connect()
    except CacheOperationError as e:
        # caches degrade to misses; the database stays authoritative
        logger.error(f"Redis unavailable, continuing without cache: {e}")

    uow_factory = create_uow_factory(
        config.db_connection,
        session_kwargs=config.db_session_kwargs,
        engine_kwargs=config.db_engine_kwargs,
    )

    api = FplApi(http_client)
    event_cache = EventCache(cache_backend, ttl=config.cache_ttl)
    entry_info_cache = EntryInfoCache(cache_backend, ttl=config.cache_ttl)
    info_syncer = EntryInfoSyncer(api, uow_factory, cache=entry_info_cache)
    results_syncer = EntryResultsSyncer(
        api,
        uow_factory,
        current_event=lambda: get_current_event(uow_factory, event_cache),
    )

    sync_fns = {
        ENTRY_INFO_JOB: info_syncer.sync_entry_info,
        ENTRY_RESULTS_JOB: results_syncer.sync_entry_results,
    }
    orchestrators = {
        name: BatchSyncOrchestrator(
            name,
            sync_fn,
            SyncJobQueue(name),
            find_entry_ids(uow_factory),
            max_retry_cycles=config.max_retry_cycles,
            concurrency=config.concurrency,
            throttle=config.throttle,
            chunk_size=config.chunk_size,
            retry_base_delay=config.retry_base_delay,
            retry_max_delay=config.retry_max_delay,
        )
        for name, sync_fn in sync_fns.items()
    }

    scheduler = AsyncIOScheduler(
        timezone="UTC",
        job_defaults={
            "coalesce": True,  # Skip missed runs if overlapping
            "max_instances": 1,  # Only one instance per job at a time
            "misfire_grace_time": 3600,  # Allow delayed starts within 1 hour
        },
    )

    service = SyncService(
        scheduler=scheduler,
        orchestrators=orchestrators,
        api=api,
        uow_factory=uow_factory,
        event_cache=event_cache,
        http_client=http_client,
        cache_backend=cache_backend,
    )

    scheduler.add_job(
        service.sync_events,
        trigger=CronTrigger(hour=6, minute=35),
        name="events_sync",
    )
    logger.info("Registered events sync (daily at 06:35)")

    scheduler.add_job(
        service.enqueue_entry_sync,
        trigger=CronTrigger(hour=7, minute=0),
        args=[ENTRY_INFO_JOB],
        name="entry_info_sync",
    )
    logger.info("Registered entry info sync (daily at 07:00)")

    scheduler.add_job(
        service.enqueue_entry_sync,
        trigger=CronTrigger(hour=10, minute=30),
        args=[ENTRY_RESULTS_JOB],
        name="entry_results_sync",
    )
    logger.info("Registered entry results sync (daily at 10:30)")

    logger.info(
        f"Bootstrap complete: concurrency={config.concurrency}, "
        f"max_retry_cycles={config.max_retry_cycles}, "
        f"{len(scheduler.get_jobs())} job(s) registered"
    )
    return service
