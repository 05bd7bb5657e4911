from collections.abc import Iterable, Sequence
from typing import Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import select

from letletme_sync.shared.models.base import NaturalKeyModel
from letletme_sync.shared.repositories.utils import bulk_insert, updatable_fields


M = TypeVar("M", bound=NaturalKeyModel)


class Repository(Generic[M]):
    _model: type[M]

    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_by_id(self, id: int) -> M | None:
        return await self._session.get(self._model, id)

    async def find_by_ids(self, ids: Iterable[int]) -> Sequence[M]:
        stmt = select(self._model).where(self._model.id.in_(list(ids)))  # type: ignore[attr-defined]
        result = await self._session.execute(stmt)
        return result.scalars().all()

    async def _upsert_rows(self, rows: Iterable[M]) -> int:
        """Natural-key upsert: every column but ``id`` is overwritten on conflict."""
        return await bulk_insert(
            self._session,
            self._model,
            rows,
            conflict_target=["id"],
            on_conflict="update",
            update_fields=updatable_fields(self._model, ["id"]),
        )
