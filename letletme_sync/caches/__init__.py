"""Domain caches built on CacheAsideStore."""

from letletme_sync.caches.entry_info import EntryInfoCache
from letletme_sync.caches.event import EventCache

__all__ = ["EntryInfoCache", "EventCache"]
