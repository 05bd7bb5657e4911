from typing import Any

from sqlalchemy import JSON, Column
from sqlmodel import Field

from letletme_sync.shared.models.base import NaturalKeyModel


class EntryInfo(NaturalKeyModel, table=True):
    """Current snapshot of an FPL entry plus the previous snapshot's values.

    Monetary fields are tenths of a million, as delivered upstream.
    """

    __tablename__: str = "entry_info"

    entry_name: str
    player_name: str
    region: str | None = None
    started_event: int | None = None
    overall_points: int | None = None
    overall_rank: int | None = None
    bank: int | None = None
    team_value: int | None = None
    total_transfers: int | None = None

    last_entry_name: str | None = None
    last_overall_points: int = 0
    last_overall_rank: int = 0
    last_bank: int = 0
    last_team_value: int = 0
    used_entry_names: list[Any] = Field(
        default_factory=list, sa_column=Column(JSON, server_default="[]")
    )

    def snapshot(self) -> tuple[Any, ...]:
        return (
            self.entry_name,
            self.overall_points,
            self.overall_rank,
            self.bank,
            self.team_value,
        )
