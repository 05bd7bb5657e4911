import datetime

import sqlalchemy
from sqlmodel import Field

from letletme_sync.shared.models.base import NaturalKeyModel


class Event(NaturalKeyModel, table=True):
    """FPL gameweek."""

    __tablename__: str = "event"

    name: str
    deadline_time: datetime.datetime = Field(
        sa_type=sqlalchemy.DateTime(timezone=True),  # type: ignore[call-overload]
    )
    finished: bool = False
    is_previous: bool = False
    is_current: bool = Field(default=False, index=True)
    is_next: bool = False
    average_entry_score: int = 0
    highest_score: int | None = None
