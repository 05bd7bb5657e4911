import datetime
from typing import Any

import sqlalchemy
from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class EntryEventResult(SQLModel, table=True):
    """One entry's result for one gameweek, keyed by (entry_id, event_id)."""

    __tablename__: str = "entry_event_result"

    entry_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    event_id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    event_points: int = 0
    event_transfers: int = 0
    event_transfers_cost: int = 0
    event_net_points: int = 0
    event_bench_points: int | None = None
    event_rank: int | None = None
    event_chip: str | None = None
    event_played_captain: int | None = None
    event_captain_points: int = 0
    event_picks: list[Any] = Field(
        default_factory=list, sa_column=Column(JSON, server_default="[]")
    )
    event_auto_sub: list[Any] = Field(
        default_factory=list, sa_column=Column(JSON, server_default="[]")
    )
    overall_points: int = 0
    overall_rank: int = 0
    team_value: int | None = None
    bank: int | None = None
    updated_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC),
        sa_type=sqlalchemy.DateTime(timezone=True),  # type: ignore[call-overload]
    )
