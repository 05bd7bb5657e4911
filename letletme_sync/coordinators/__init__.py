"""Coordinators wiring the FPL API, the database and the caches.

- entry_sync: per-entry info sync function driven by the batch orchestrator
- entry_results: per-entry gameweek results (picks and live points)
- event_sync: season events upsert and current-event lookup
"""

from letletme_sync.coordinators.entry_results import EntryResultsSyncer
from letletme_sync.coordinators.entry_sync import EntryInfoSyncer, find_entry_ids
from letletme_sync.coordinators.event_sync import get_current_event, sync_events

__all__ = [
    "EntryInfoSyncer",
    "EntryResultsSyncer",
    "find_entry_ids",
    "sync_events",
    "get_current_event",
]
