"""Database models for FPL sync."""

from letletme_sync.shared.models.base import NaturalKeyModel
from letletme_sync.shared.models.entry_event_result import EntryEventResult
from letletme_sync.shared.models.entry_info import EntryInfo
from letletme_sync.shared.models.event import Event

__all__ = [
    # Base class
    "NaturalKeyModel",
    # Models
    "EntryEventResult",
    "EntryInfo",
    "Event",
]
