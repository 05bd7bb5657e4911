"""Tests for BatchSyncOrchestrator and SyncJobQueue."""

import asyncio
import logging

import pytest

from letletme_sync.orchestration import (
    BatchSyncOrchestrator,
    JobState,
    SyncJob,
    SyncJobQueue,
    SyncOutcome,
    SyncSource,
)


class InMemoryEntryStore:
    """Durable store keyed by natural key; records every write."""

    def __init__(self) -> None:
        self.rows: dict[int, dict] = {}
        self.writes = 0

    async def sync(self, entity_id: int, event_id: int | None = None) -> None:
        self.writes += 1
        self.rows[entity_id] = {"id": entity_id, "event_id": event_id, "name": f"entry-{entity_id}"}


class FlakySync:
    """Sync function failing for the given ids, optionally only the first N times."""

    def __init__(self, failing_ids: set[int], failures_per_id: int | None = None) -> None:
        self.failing_ids = failing_ids
        self.failures_per_id = failures_per_id
        self.calls: list[int] = []
        self._failures: dict[int, int] = {}

    async def __call__(self, entity_id: int, event_id: int | None = None) -> None:
        self.calls.append(entity_id)
        if entity_id not in self.failing_ids:
            return
        failed = self._failures.get(entity_id, 0)
        if self.failures_per_id is None or failed < self.failures_per_id:
            self._failures[entity_id] = failed + 1
            raise RuntimeError(f"upstream refused entity {entity_id}")


async def no_ids(offset: int, limit: int) -> list[int]:
    return []


def make_orchestrator(sync_fn, queue, id_provider=no_ids, **kwargs) -> BatchSyncOrchestrator:
    kwargs.setdefault("retry_base_delay", 0.0)
    kwargs.setdefault("retry_max_delay", 0.0)
    return BatchSyncOrchestrator("entry-info", sync_fn, queue, id_provider, **kwargs)


class TestRunSyncJob:
    async def test_single_failure_outcome_and_retry_job(self):
        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(FlakySync({2}), queue)

        outcome = await orchestrator.run_sync_job(SyncJob(entity_ids=(1, 2, 3), retry_count=0))

        assert (outcome.total, outcome.succeeded, outcome.failed) == (3, 2, 1)
        assert outcome.failed_ids == [2]
        assert outcome.state == JobState.RETRY_SCHEDULED

        retry_job = queue.get_nowait()
        assert retry_job is not None
        assert retry_job.entity_ids == (2,)
        assert retry_job.retry_count == 1
        assert retry_job.source == SyncSource.MANUAL
        assert queue.get_nowait() is None

    async def test_all_success_enqueues_nothing(self):
        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(FlakySync(set()), queue)

        outcome = await orchestrator.run_sync_job(SyncJob(entity_ids=(1, 2)))

        assert outcome == SyncOutcome(total=2, succeeded=2, failed=0)
        assert queue.size == 0 and queue.pending == 0

    async def test_empty_job(self):
        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(FlakySync(set()), queue)

        assert await orchestrator.run_sync_job(SyncJob(entity_ids=())) == SyncOutcome.empty()

    async def test_failures_are_isolated_under_concurrency(self):
        queue = SyncJobQueue("entry-info")
        sync = FlakySync({1, 4})
        orchestrator = make_orchestrator(sync, queue, concurrency=3)

        outcome = await orchestrator.run_sync_job(SyncJob(entity_ids=tuple(range(1, 7))))

        assert sorted(sync.calls) == [1, 2, 3, 4, 5, 6]
        assert sorted(outcome.failed_ids) == [1, 4]
        assert outcome.succeeded == 4

    async def test_event_id_is_passed_to_sync_function(self):
        seen: list[tuple[int, int | None]] = []

        async def sync(entity_id, event_id=None):
            seen.append((entity_id, event_id))

        orchestrator = make_orchestrator(sync, SyncJobQueue("entry-info"))
        await orchestrator.run_sync_job(SyncJob(entity_ids=(5,), event_id=3))

        assert seen == [(5, 3)]

    async def test_throttle_between_entities(self, sleeper):
        orchestrator = make_orchestrator(
            FlakySync(set()), SyncJobQueue("entry-info"), throttle=0.25, sleep=sleeper
        )
        await orchestrator.run_sync_job(SyncJob(entity_ids=(1, 2, 3)))

        assert sleeper.delays == [0.25, 0.25, 0.25]

    async def test_retry_keeps_source_and_event(self):
        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(FlakySync({9}), queue)

        await orchestrator.run_sync_job(
            SyncJob(entity_ids=(9,), source=SyncSource.CRON, event_id=12)
        )

        retry_job = queue.get_nowait()
        assert retry_job.source == SyncSource.CRON
        assert retry_job.event_id == 12


class TestPerJobOverrides:
    async def test_job_throttle_overrides_default(self, sleeper):
        orchestrator = make_orchestrator(
            FlakySync(set()), SyncJobQueue("entry-info"), throttle=0.25, sleep=sleeper
        )

        await orchestrator.run_sync_job(SyncJob(entity_ids=(1, 2), throttle=0.5))
        await orchestrator.run_sync_job(SyncJob(entity_ids=(3,), throttle=0.0))

        assert sleeper.delays == [0.5, 0.5]

    async def test_job_concurrency_overrides_default(self):
        in_flight = 0
        peak = 0

        async def sync(entity_id: int, event_id: int | None = None) -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1

        orchestrator = make_orchestrator(sync, SyncJobQueue("entry-info"), concurrency=5)

        await orchestrator.run_sync_job(SyncJob(entity_ids=(1, 2, 3, 4), concurrency=1))
        assert peak == 1

        await orchestrator.run_sync_job(SyncJob(entity_ids=(1, 2, 3, 4)))
        assert peak == 4

    async def test_retry_job_carries_overrides(self):
        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(FlakySync({2}), queue)

        await orchestrator.run_sync_job(SyncJob(entity_ids=(1, 2), concurrency=2, throttle=0.1))

        retry_job = queue.get_nowait()
        assert retry_job.entity_ids == (2,)
        assert (retry_job.concurrency, retry_job.throttle) == (2, 0.1)

    async def test_next_chunk_job_carries_overrides(self):
        async def id_provider(offset: int, limit: int) -> list[int]:
            return list(range(offset + 1, offset + limit + 1))

        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(FlakySync(set()), queue, id_provider, chunk_size=2)

        await orchestrator.run_sync_job(SyncJob(concurrency=3, throttle=0.2))

        next_job = queue.get_nowait()
        assert next_job.entity_ids is None
        assert next_job.chunk_offset == 2
        assert (next_job.concurrency, next_job.throttle) == (3, 0.2)


class TestIdempotence:
    async def test_running_same_job_twice_leaves_same_state(self):
        store = InMemoryEntryStore()
        orchestrator = make_orchestrator(store.sync, SyncJobQueue("entry-info"))
        job_ids = (11, 12, 13)

        await orchestrator.run_sync_job(SyncJob(entity_ids=job_ids, event_id=1))
        after_first = {key: dict(row) for key, row in store.rows.items()}
        await orchestrator.run_sync_job(SyncJob(entity_ids=job_ids, event_id=1))

        assert store.rows == after_first
        assert store.writes == 6


class TestBoundedRetries:
    async def test_always_failing_entity_produces_exactly_max_retry_jobs(self, caplog):
        queue = SyncJobQueue("entry-info")
        sync = FlakySync({7})
        orchestrator = make_orchestrator(sync, queue, max_retry_cycles=2)
        queue.enqueue([7, 8])

        with caplog.at_level(logging.ERROR):
            outcomes = await orchestrator.drain()

        assert len(outcomes) == 3
        assert [o.state for o in outcomes] == [
            JobState.RETRY_SCHEDULED,
            JobState.RETRY_SCHEDULED,
            JobState.EXHAUSTED,
        ]
        assert outcomes[-1].failed_ids == [7]
        assert sync.calls == [7, 8, 7, 7]
        assert "Retry limit reached" in caplog.text

    async def test_zero_retry_cycles_is_terminal_immediately(self):
        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(FlakySync({1}), queue, max_retry_cycles=0)

        outcome = await orchestrator.run_sync_job(SyncJob(entity_ids=(1,)))

        assert outcome.state == JobState.EXHAUSTED
        assert queue.size == 0 and queue.pending == 0

    async def test_transient_failure_recovers_on_retry(self):
        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(FlakySync({3}, failures_per_id=1), queue)
        queue.enqueue([1, 2, 3])

        outcomes = await orchestrator.drain()

        assert [o.failed for o in outcomes] == [1, 0]
        assert outcomes[-1].state == JobState.COMPLETED

    def test_retry_delay_is_linear_and_capped(self):
        orchestrator = BatchSyncOrchestrator(
            "entry-info", FlakySync(set()), SyncJobQueue("entry-info"), no_ids,
            retry_base_delay=300.0, retry_max_delay=800.0,
        )
        assert [orchestrator.retry_delay(n) for n in (0, 1, 2, 3)] == [300.0, 300.0, 600.0, 800.0]

    async def test_retry_jobs_are_delayed(self):
        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(
            FlakySync({1}), queue, retry_base_delay=60.0, retry_max_delay=60.0
        )

        await orchestrator.run_sync_job(SyncJob(entity_ids=(1,)))

        assert queue.size == 0
        assert queue.pending == 1
        queue.close()
        assert queue.pending == 0


class TestChunkedLoading:
    async def test_all_entities_are_loaded_chunk_by_chunk(self):
        known = list(range(1, 8))
        requested: list[tuple[int, int]] = []

        async def id_provider(offset: int, limit: int) -> list[int]:
            requested.append((offset, limit))
            return known[offset : offset + limit]

        sync = FlakySync(set())
        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(sync, queue, id_provider, chunk_size=3)
        queue.enqueue(None, source=SyncSource.CRON)

        outcomes = await orchestrator.drain()

        assert requested == [(0, 3), (3, 3), (6, 3)]
        assert sorted(sync.calls) == known
        assert [o.total for o in outcomes] == [3, 3, 1]

    async def test_id_provider_failure_does_not_stop_the_worker(self):
        async def broken(offset: int, limit: int) -> list[int]:
            raise RuntimeError("database unavailable")

        queue = SyncJobQueue("entry-info")
        orchestrator = make_orchestrator(FlakySync(set()), queue, broken)
        queue.enqueue(None)
        queue.enqueue([1])

        outcomes = await orchestrator.drain()

        assert [o.state for o in outcomes] == [JobState.FAILED, JobState.COMPLETED]
        assert outcomes[0].total == 0
        assert outcomes[1].total == 1


class TestValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [{"max_retry_cycles": -1}, {"concurrency": 0}, {"chunk_size": 0}],
    )
    def test_rejects_invalid_options(self, kwargs):
        with pytest.raises(ValueError):
            BatchSyncOrchestrator("x", FlakySync(set()), SyncJobQueue("x"), no_ids, **kwargs)

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"retry_count": -1},
            {"chunk_offset": -1},
            {"chunk_size": 0},
            {"concurrency": 0},
            {"throttle": -0.5},
        ],
    )
    def test_sync_job_rejects_invalid_fields(self, kwargs):
        with pytest.raises(ValueError):
            SyncJob(**kwargs)


class TestServe:
    async def test_serve_processes_jobs_until_stopped(self):
        queue = SyncJobQueue("entry-info")
        store = InMemoryEntryStore()
        orchestrator = make_orchestrator(store.sync, queue)
        worker = asyncio.create_task(orchestrator.serve())

        queue.enqueue([1, 2])
        await asyncio.wait_for(queue.join(), timeout=1)
        orchestrator.stop()
        await asyncio.wait_for(worker, timeout=1)

        assert set(store.rows) == {1, 2}
