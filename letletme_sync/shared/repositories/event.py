from collections.abc import Iterable, Sequence

from sqlalchemy.sql.expression import select

from letletme_sync.shared.models.event import Event
from letletme_sync.shared.repositories.base import Repository
from letletme_sync.upstream.dto import EventData


def event_from_data(data: EventData) -> Event:
    return Event(
        id=data.id,
        name=data.name,
        deadline_time=data.deadline_time,
        finished=data.finished,
        is_previous=data.is_previous,
        is_current=data.is_current,
        is_next=data.is_next,
        average_entry_score=data.average_entry_score,
        highest_score=data.highest_score,
    )


def event_to_data(event: Event) -> EventData:
    return EventData(
        id=event.id,
        name=event.name,
        deadline_time=event.deadline_time,
        finished=event.finished,
        is_previous=event.is_previous,
        is_current=event.is_current,
        is_next=event.is_next,
        average_entry_score=event.average_entry_score,
        highest_score=event.highest_score,
    )


class EventRepository(Repository[Event]):
    _model = Event

    async def upsert_many(self, events: Iterable[EventData]) -> list[Event]:
        rows = [event_from_data(data) for data in events]
        await self._upsert_rows(rows)
        return rows

    async def find_current(self) -> Event | None:
        stmt = select(Event).where(Event.is_current == True).limit(1)  # noqa: E712
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_all(self) -> Sequence[Event]:
        stmt = select(Event).order_by(Event.id)  # type: ignore[arg-type]
        result = await self._session.execute(stmt)
        return result.scalars().all()
