"""FPL upstream API adapter and its DTOs."""

from letletme_sync.upstream.dto import EntryEventPicksData, EntryInfoData, EventData
from letletme_sync.upstream.fpl import FplApi

__all__ = ["FplApi", "EntryEventPicksData", "EntryInfoData", "EventData"]
