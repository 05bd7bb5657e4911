"""Job and outcome types for batch synchronization."""

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum


class SyncSource(StrEnum):
    MANUAL = "manual"
    CRON = "cron"
    CASCADE = "cascade"
    RETRY = "retry"


class JobState(StrEnum):
    RECEIVED = "received"
    RUNNING = "running"
    COMPLETED = "completed"
    PARTIALLY_FAILED = "partially_failed"
    RETRY_SCHEDULED = "retry_scheduled"
    EXHAUSTED = "exhausted"
    # the job raised before its entities ran (e.g. id lookup failed)
    FAILED = "failed"


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True)
class SyncUnit:
    """One entity's sync request; recreated for every attempt."""

    entity_id: int
    event_id: int | None = None


@dataclass(frozen=True)
class SyncJob:
    """A unit of batch work, consumed exactly once.

    ``entity_ids=None`` means "all known entities", read in chunks of
    ``chunk_size`` starting at ``chunk_offset``. ``concurrency`` and
    ``throttle`` override the orchestrator defaults and carry over to the
    retry and next-chunk jobs this job spawns. A partially failed job is
    never resubmitted; a new job with ``retry_count + 1`` covers its failures.
    """

    entity_ids: tuple[int, ...] | None = None
    source: SyncSource = SyncSource.MANUAL
    retry_count: int = 0
    triggered_at: datetime = field(default_factory=_now)
    event_id: int | None = None
    chunk_offset: int = 0
    chunk_size: int | None = None
    concurrency: int | None = None
    throttle: float | None = None  # seconds
    job_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def __post_init__(self) -> None:
        if self.retry_count < 0:
            raise ValueError("retry_count must be >= 0")
        if self.chunk_offset < 0:
            raise ValueError("chunk_offset must be >= 0")
        if self.chunk_size is not None and self.chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        if self.throttle is not None and self.throttle < 0:
            raise ValueError("throttle must be >= 0")


@dataclass(frozen=True)
class SyncOutcome:
    total: int
    succeeded: int
    failed: int
    failed_ids: list[int] = field(default_factory=list)
    state: JobState = JobState.COMPLETED

    @classmethod
    def empty(cls) -> "SyncOutcome":
        return cls(total=0, succeeded=0, failed=0)


@dataclass(frozen=True)
class WorkflowContext:
    """Correlation data for one traceable operation; read-only."""

    workflow_id: str
    start_time: datetime

    @classmethod
    def start(cls, name: str) -> "WorkflowContext":
        return cls(workflow_id=f"{name}-{uuid.uuid4().hex[:8]}", start_time=_now())

    def elapsed(self) -> float:
        return (_now() - self.start_time).total_seconds()
