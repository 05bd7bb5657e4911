from collections.abc import Iterable

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.expression import select

from letletme_sync.shared.models.entry_event_result import EntryEventResult
from letletme_sync.shared.repositories.utils import bulk_insert, updatable_fields
from letletme_sync.upstream.dto import EntryEventPicksData

CONFLICT_TARGET = ["entry_id", "event_id"]


def entry_event_result_from_picks(
    picks: EntryEventPicksData, live_points: dict[int, int]
) -> EntryEventResult:
    """Build the row for one gameweek; captain points use the pick multiplier."""
    captain = picks.captain
    played_captain = None
    captain_points = 0
    if captain is not None:
        played_captain = int(captain["element"])
        captain_points = live_points.get(played_captain, 0) * int(captain.get("multiplier", 2))

    return EntryEventResult(
        entry_id=picks.entry_id,
        event_id=picks.event_id,
        event_points=picks.points,
        event_transfers=picks.event_transfers,
        event_transfers_cost=picks.event_transfers_cost,
        event_net_points=picks.points - picks.event_transfers_cost,
        event_bench_points=picks.points_on_bench,
        event_rank=picks.rank,
        event_chip=picks.active_chip,
        event_played_captain=played_captain,
        event_captain_points=captain_points,
        event_picks=list(picks.picks),
        event_auto_sub=list(picks.automatic_subs),
        overall_points=picks.total_points,
        overall_rank=picks.overall_rank or 0,
        team_value=picks.team_value,
        bank=picks.bank,
    )


class EntryEventResultRepository:
    """Keyed by (entry_id, event_id); re-syncing a gameweek overwrites its row."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def upsert(self, row: EntryEventResult) -> EntryEventResult:
        await self.upsert_many([row])
        return row

    async def upsert_many(self, rows: Iterable[EntryEventResult]) -> int:
        by_key = {(row.entry_id, row.event_id): row for row in rows}
        return await bulk_insert(
            self._session,
            EntryEventResult,
            by_key.values(),
            conflict_target=CONFLICT_TARGET,
            on_conflict="update",
            update_fields=updatable_fields(EntryEventResult, CONFLICT_TARGET),
        )

    async def find(self, entry_id: int, event_id: int) -> EntryEventResult | None:
        return await self._session.get(EntryEventResult, (entry_id, event_id))

    async def find_by_event(self, event_id: int) -> list[EntryEventResult]:
        stmt = (
            select(EntryEventResult)
            .where(EntryEventResult.event_id == event_id)
            .order_by(EntryEventResult.entry_id)  # type: ignore[arg-type]
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
