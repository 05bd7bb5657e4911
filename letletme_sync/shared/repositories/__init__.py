"""Repository layer for database access using the Repository pattern."""

from letletme_sync.shared.repositories.base import Repository
from letletme_sync.shared.repositories.entry_event_result import EntryEventResultRepository
from letletme_sync.shared.repositories.entry_info import EntryInfoRepository
from letletme_sync.shared.repositories.event import EventRepository

__all__ = [
    # Base
    "Repository",
    # Repositories
    "EntryEventResultRepository",
    "EntryInfoRepository",
    "EventRepository",
]
