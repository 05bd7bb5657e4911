"""In-process queue of SyncJobs with delayed delivery for retries."""

import asyncio
import logging
from collections.abc import Iterable

from letletme_sync.orchestration.models import SyncJob, SyncSource

logger = logging.getLogger(__name__)


class SyncJobQueue:
    """FIFO of SyncJobs for one orchestrator.

    Jobs enqueued with a delay are held by the event loop and delivered when
    the delay elapses; ``pending`` counts them until then.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._queue: asyncio.Queue[SyncJob] = asyncio.Queue()
        self._delayed: set[asyncio.TimerHandle] = set()
        self._delayed_delivered = asyncio.Event()

    def enqueue(
        self,
        entity_ids: Iterable[int] | None = None,
        source: SyncSource = SyncSource.MANUAL,
        retry_count: int = 0,
        *,
        event_id: int | None = None,
        chunk_offset: int = 0,
        chunk_size: int | None = None,
        concurrency: int | None = None,
        throttle: float | None = None,
        delay: float = 0.0,
    ) -> SyncJob:
        """Create a SyncJob and put it on the queue (after ``delay`` seconds)."""
        job = SyncJob(
            entity_ids=tuple(entity_ids) if entity_ids is not None else None,
            source=source,
            retry_count=retry_count,
            event_id=event_id,
            chunk_offset=chunk_offset,
            chunk_size=chunk_size,
            concurrency=concurrency,
            throttle=throttle,
        )
        self.submit(job, delay=delay)
        return job

    def submit(self, job: SyncJob, delay: float = 0.0) -> None:
        target = "all entities" if job.entity_ids is None else f"{len(job.entity_ids)} entities"
        if delay <= 0:
            self._queue.put_nowait(job)
            logger.info(
                f"[{self.name}] Enqueued job {job.job_id} ({job.source}, retry {job.retry_count}) "
                f"for {target}"
            )
            return

        loop = asyncio.get_running_loop()
        handle: asyncio.TimerHandle

        def _deliver() -> None:
            self._delayed.discard(handle)
            self._queue.put_nowait(job)
            self._delayed_delivered.set()

        handle = loop.call_later(delay, _deliver)
        self._delayed.add(handle)
        logger.info(
            f"[{self.name}] Scheduled job {job.job_id} ({job.source}, retry {job.retry_count}) "
            f"for {target} in {delay:.0f}s"
        )

    async def get(self) -> SyncJob:
        return await self._queue.get()

    def get_nowait(self) -> SyncJob | None:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    async def join(self) -> None:
        """Block until every delivered job has been processed."""
        await self._queue.join()

    @property
    def size(self) -> int:
        return self._queue.qsize()

    @property
    def pending(self) -> int:
        return len(self._delayed)

    async def wait_for_delayed(self) -> None:
        """Block until at least one delayed job has been delivered."""
        if not self._delayed:
            return
        self._delayed_delivered.clear()
        await self._delayed_delivered.wait()

    def close(self) -> None:
        """Drop delayed jobs that have not been delivered yet."""
        for handle in self._delayed:
            handle.cancel()
        if self._delayed:
            logger.warning(f"[{self.name}] Dropped {len(self._delayed)} delayed jobs on close")
        self._delayed.clear()
