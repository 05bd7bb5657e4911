"""Bounded-retry batch sync orchestrator."""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence

from letletme_sync.errors import PartialBatchFailure
from letletme_sync.orchestration.job_queue import SyncJobQueue
from letletme_sync.orchestration.models import (
    JobState,
    SyncJob,
    SyncOutcome,
    SyncUnit,
    WorkflowContext,
)

logger = logging.getLogger(__name__)

# sync_fn(entity_id, event_id) -> anything; raises on failure
SyncFunction = Callable[[int, int | None], Awaitable[object]]
# id_provider(offset, limit) -> known entity ids, ordered
IdProvider = Callable[[int, int], Awaitable[Sequence[int]]]

DEFAULT_MAX_RETRY_CYCLES = 2


class BatchSyncOrchestrator:
    """Drives one domain sync function over many independent entities.

    A failure for one entity never aborts the rest of the batch. After the
    full pass, failed ids are re-enqueued as a new job with
    ``retry_count + 1`` until ``max_retry_cycles`` is reached; residual
    failures after that are logged as terminal for this cycle.

    The sync function must be idempotent (natural-key upsert): an id can
    appear in several retry generations.
    """

    def __init__(
        self,
        name: str,
        sync_fn: SyncFunction,
        queue: SyncJobQueue,
        id_provider: IdProvider,
        max_retry_cycles: int = DEFAULT_MAX_RETRY_CYCLES,
        concurrency: int = 1,
        throttle: float = 0.0,
        chunk_size: int = 500,
        retry_base_delay: float = 300.0,
        retry_max_delay: float = 1800.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_retry_cycles < 0:
            raise ValueError("max_retry_cycles must be >= 0")
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")

        self.name = name
        self._sync_fn = sync_fn
        self._queue = queue
        self._id_provider = id_provider
        self.max_retry_cycles = max_retry_cycles
        self.concurrency = concurrency
        self.throttle = throttle
        self.chunk_size = chunk_size
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self._sleep = sleep
        self._stopping = asyncio.Event()

    @property
    def queue(self) -> SyncJobQueue:
        return self._queue

    async def run_sync_job(self, job: SyncJob) -> SyncOutcome:
        """Process one job to completion and decide on a follow-up retry job.

        Never raises for per-entity failures; callers only see the aggregate.
        """
        context = WorkflowContext.start(self.name)
        tag = f"[{self.name}:{context.workflow_id}]"
        logger.info(
            f"{tag} Job {job.job_id} {JobState.RECEIVED} "
            f"(source={job.source}, retry={job.retry_count})"
        )

        entity_ids, has_more = await self._resolve_entity_ids(job)
        if has_more:
            self._enqueue_next_chunk(job, len(entity_ids), tag)

        if not entity_ids:
            logger.info(f"{tag} No entities to sync")
            return SyncOutcome.empty()

        concurrency = job.concurrency or self.concurrency
        throttle = job.throttle if job.throttle is not None else self.throttle
        logger.info(
            f"{tag} Job {job.job_id} {JobState.RUNNING}: {len(entity_ids)} entities, "
            f"concurrency={concurrency}, throttle={throttle}s"
        )
        failed_ids = await self._sync_entities(entity_ids, job.event_id, tag, concurrency, throttle)

        total = len(entity_ids)
        if not failed_ids:
            outcome = SyncOutcome(total=total, succeeded=total, failed=0)
        else:
            failure = PartialBatchFailure(self.name, failed_ids, job.retry_count)
            state = self._handle_partial_failure(job, failure, tag)
            outcome = SyncOutcome(
                total=total,
                succeeded=total - len(failed_ids),
                failed=len(failed_ids),
                failed_ids=failed_ids,
                state=state,
            )

        logger.info(
            f"{tag} Job {job.job_id} finished in {context.elapsed():.1f}s: "
            f"{outcome.succeeded}/{outcome.total} succeeded, {outcome.failed} failed "
            f"({outcome.state})"
        )
        return outcome

    async def _resolve_entity_ids(self, job: SyncJob) -> tuple[list[int], bool]:
        """Explicit ids, or one chunk of all known ids plus a has-more flag."""
        if job.entity_ids is not None:
            return list(job.entity_ids), False

        chunk_size = job.chunk_size or self.chunk_size
        ids = list(await self._id_provider(job.chunk_offset, chunk_size))
        return ids, len(ids) == chunk_size

    def _enqueue_next_chunk(self, job: SyncJob, loaded: int, tag: str) -> None:
        next_offset = job.chunk_offset + loaded
        next_job = self._queue.enqueue(
            None,
            source=job.source,
            event_id=job.event_id,
            chunk_offset=next_offset,
            chunk_size=job.chunk_size or self.chunk_size,
            concurrency=job.concurrency,
            throttle=job.throttle,
        )
        logger.info(f"{tag} Next chunk at offset {next_offset} enqueued as {next_job.job_id}")

    async def _sync_entities(
        self,
        entity_ids: list[int],
        event_id: int | None,
        tag: str,
        concurrency: int,
        throttle: float,
    ) -> list[int]:
        """Run the sync function for every id; returns ids that failed."""
        semaphore = asyncio.Semaphore(concurrency)
        failed_ids: list[int] = []

        async def process(unit: SyncUnit) -> None:
            async with semaphore:
                try:
                    await self._sync_fn(unit.entity_id, unit.event_id)
                except Exception as e:
                    failed_ids.append(unit.entity_id)
                    logger.error(
                        f"{tag} Sync failed for entity {unit.entity_id}: "
                        f"{type(e).__name__}: {e}",
                        exc_info=logger.isEnabledFor(logging.DEBUG),
                    )
                if throttle > 0:
                    await self._sleep(throttle)

        await asyncio.gather(
            *(process(SyncUnit(entity_id, event_id)) for entity_id in entity_ids)
        )
        return failed_ids

    def _handle_partial_failure(
        self, job: SyncJob, failure: PartialBatchFailure, tag: str
    ) -> JobState:
        logger.warning(f"{tag} {JobState.PARTIALLY_FAILED}: {failure}")

        if job.retry_count >= self.max_retry_cycles:
            logger.error(
                f"{tag} Retry limit reached ({self.max_retry_cycles}); giving up on "
                f"{len(failure.failed_ids)} entities for this cycle: {failure.failed_ids}"
            )
            return JobState.EXHAUSTED

        retry_count = job.retry_count + 1
        retry_job = self._queue.enqueue(
            failure.failed_ids,
            source=job.source,
            retry_count=retry_count,
            event_id=job.event_id,
            concurrency=job.concurrency,
            throttle=job.throttle,
            delay=self.retry_delay(retry_count),
        )
        logger.info(
            f"{tag} Retry {retry_count}/{self.max_retry_cycles} enqueued as "
            f"{retry_job.job_id} for {len(failure.failed_ids)} entities"
        )
        return JobState.RETRY_SCHEDULED

    def retry_delay(self, retry_count: int) -> float:
        """Linear backoff between retry generations, capped."""
        return min(self.retry_base_delay * max(retry_count, 1), self.retry_max_delay)

    async def serve(self) -> None:
        """Consume the queue until stop() is called."""
        logger.info(f"[{self.name}] Worker started")
        self._stopping.clear()
        while not self._stopping.is_set():
            get_job = asyncio.create_task(self._queue.get())
            stop = asyncio.create_task(self._stopping.wait())
            done, _ = await asyncio.wait({get_job, stop}, return_when=asyncio.FIRST_COMPLETED)
            if get_job not in done:
                get_job.cancel()
                break
            stop.cancel()
            await self._run_queued(get_job.result())
        logger.info(f"[{self.name}] Worker stopped")

    def stop(self) -> None:
        self._stopping.set()

    async def drain(self) -> list[SyncOutcome]:
        """Process queued jobs, waiting for delayed retries, until none remain."""
        outcomes: list[SyncOutcome] = []
        while True:
            job = self._queue.get_nowait()
            if job is None:
                if not self._queue.pending:
                    return outcomes
                await self._queue.wait_for_delayed()
                continue
            outcomes.append(await self._run_queued(job))

    async def _run_queued(self, job: SyncJob) -> SyncOutcome:
        try:
            return await self.run_sync_job(job)
        except Exception as e:
            # e.g. id provider failure; reported as FAILED, the worker keeps going
            logger.error(f"[{self.name}] Job {job.job_id} {JobState.FAILED}: {e}", exc_info=True)
            failed_ids = list(job.entity_ids or ())
            return SyncOutcome(
                total=len(failed_ids),
                succeeded=0,
                failed=len(failed_ids),
                failed_ids=failed_ids,
                state=JobState.FAILED,
            )
        finally:
            self._queue.task_done()
