"""Data Transfer Objects for the FPL upstream API."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class EventData:
    id: int
    name: str
    deadline_time: datetime
    finished: bool = False
    is_previous: bool = False
    is_current: bool = False
    is_next: bool = False
    average_entry_score: int = 0
    highest_score: int | None = None


@dataclass
class EntryInfoData:
    id: int
    entry_name: str
    player_name: str
    region: str | None = None
    started_event: int | None = None
    overall_points: int | None = None
    overall_rank: int | None = None
    bank: int | None = None  # tenths of a million
    team_value: int | None = None  # tenths of a million
    total_transfers: int | None = None


@dataclass
class EntryEventPicksData:
    """One entry's team and score for one gameweek."""

    entry_id: int
    event_id: int
    points: int
    total_points: int
    event_transfers: int = 0
    event_transfers_cost: int = 0
    points_on_bench: int | None = None
    rank: int | None = None
    overall_rank: int | None = None
    bank: int | None = None  # tenths of a million
    team_value: int | None = None  # tenths of a million
    active_chip: str | None = None
    picks: list[dict[str, Any]] = field(default_factory=list)
    automatic_subs: list[dict[str, Any]] = field(default_factory=list)

    @property
    def captain(self) -> dict[str, Any] | None:
        return next((pick for pick in self.picks if pick.get("is_captain")), None)
