import datetime

import sqlalchemy
from sqlmodel import Field, SQLModel


class NaturalKeyModel(SQLModel, table=False):
    """Row keyed by the upstream id, so re-syncing an entity overwrites it."""

    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    updated_at: datetime.datetime = Field(
        default_factory=lambda: datetime.datetime.now(datetime.UTC),
        sa_type=sqlalchemy.DateTime(timezone=True),  # type: ignore[call-overload]
    )

    def __hash__(self) -> int:
        return hash(self.id)
