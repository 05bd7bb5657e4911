"""Orchestration layer for FPL sync.

Sits between the scheduler and the coordinators:
- Scheduler (or CLI) enqueues SyncJobs on a SyncJobQueue
- BatchSyncOrchestrator runs a coordinator's per-entity sync function over
  each job and schedules bounded retry jobs for failed ids

Example:
    queue = SyncJobQueue("entry-info")
    orchestrator = BatchSyncOrchestrator("entry-info", syncer.sync_entry_info, queue, ids)
    queue.enqueue([1, 2, 3])
    outcomes = await orchestrator.drain()
"""

from letletme_sync.orchestration.batch_orchestrator import BatchSyncOrchestrator
from letletme_sync.orchestration.job_queue import SyncJobQueue
from letletme_sync.orchestration.models import (
    JobState,
    SyncJob,
    SyncOutcome,
    SyncSource,
    SyncUnit,
    WorkflowContext,
)

__all__ = [
    "BatchSyncOrchestrator",
    "SyncJobQueue",
    "JobState",
    "SyncJob",
    "SyncOutcome",
    "SyncSource",
    "SyncUnit",
    "WorkflowContext",
]
