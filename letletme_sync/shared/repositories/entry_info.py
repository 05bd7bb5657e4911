from collections.abc import Iterable

from sqlalchemy.sql.expression import select

from letletme_sync.shared.models.entry_info import EntryInfo
from letletme_sync.shared.repositories.base import Repository
from letletme_sync.upstream.dto import EntryInfoData


def merge_entry_info(data: EntryInfoData, existing: EntryInfo | None) -> EntryInfo:
    """Build the row to store for ``data``.

    The previous snapshot moves into the ``last_*`` fields only when the
    snapshot actually changed, so writing the same data twice is a no-op.
    """
    row = EntryInfo(
        id=data.id,
        entry_name=data.entry_name,
        player_name=data.player_name,
        region=data.region,
        started_event=data.started_event,
        overall_points=data.overall_points,
        overall_rank=data.overall_rank,
        bank=data.bank if data.bank is not None else (existing.bank if existing else None),
        team_value=(
            data.team_value
            if data.team_value is not None
            else (existing.team_value if existing else None)
        ),
        total_transfers=data.total_transfers,
    )

    if existing is None:
        row.used_entry_names = [data.entry_name]
        return row

    names = list(existing.used_entry_names or [])
    for name in (existing.entry_name, data.entry_name):
        if name and name not in names:
            names.append(name)
    row.used_entry_names = names

    if existing.snapshot() == row.snapshot():
        row.last_entry_name = existing.last_entry_name
        row.last_overall_points = existing.last_overall_points
        row.last_overall_rank = existing.last_overall_rank
        row.last_bank = existing.last_bank
        row.last_team_value = existing.last_team_value
    else:
        row.last_entry_name = existing.entry_name
        row.last_overall_points = existing.overall_points or 0
        row.last_overall_rank = existing.overall_rank or 0
        row.last_bank = existing.bank or 0
        row.last_team_value = existing.team_value or 0
    return row


def entry_info_to_data(row: EntryInfo) -> EntryInfoData:
    return EntryInfoData(
        id=row.id,
        entry_name=row.entry_name,
        player_name=row.player_name,
        region=row.region,
        started_event=row.started_event,
        overall_points=row.overall_points,
        overall_rank=row.overall_rank,
        bank=row.bank,
        team_value=row.team_value,
        total_transfers=row.total_transfers,
    )


class EntryInfoRepository(Repository[EntryInfo]):
    _model = EntryInfo

    async def upsert(self, data: EntryInfoData) -> EntryInfo:
        rows = await self.upsert_many([data])
        return rows[0]

    async def upsert_many(self, entries: Iterable[EntryInfoData]) -> list[EntryInfo]:
        """Keyed by entry id; the last occurrence wins for duplicate ids."""
        by_id = {data.id: data for data in entries}
        if not by_id:
            return []

        existing = {row.id: row for row in await self.find_by_ids(by_id)}
        rows = [merge_entry_info(data, existing.get(entry_id)) for entry_id, data in by_id.items()]
        await self._upsert_rows(rows)
        return rows

    async def find_ids(self, offset: int = 0, limit: int = 500) -> list[int]:
        """Known entry ids in ascending order, one page at a time."""
        stmt = select(EntryInfo.id).order_by(EntryInfo.id).offset(offset).limit(limit)  # type: ignore[arg-type]
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
