"""Shared pytest fixtures for letletme sync tests."""

from collections.abc import Iterable, Mapping, Sequence
from types import TracebackType

import pytest

from letletme_sync.errors import CacheOperationError
from letletme_sync.shared.models import EntryEventResult, EntryInfo, Event
from letletme_sync.shared.repositories.entry_info import merge_entry_info
from letletme_sync.shared.repositories.event import event_from_data
from letletme_sync.upstream.dto import EntryInfoData, EventData


class ManualClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordedSleep:
    """Async sleep replacement: records delays and advances the manual clock."""

    def __init__(self, clock: ManualClock | None = None) -> None:
        self.clock = clock
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)


class InMemoryCacheBackend:
    """Dict-backed CacheBackend; ``failing = True`` makes every call raise."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int | None] = {}
        self.failing = False
        self.calls: list[str] = []

    def _check(self, op: str) -> None:
        self.calls.append(op)
        if self.failing:
            raise CacheOperationError(f"{op} failed: backend down")

    async def get(self, key: str) -> str | None:
        self._check("get")
        return self.data.get(key)

    async def get_many(self, keys: Sequence[str]) -> list[str | None]:
        self._check("get_many")
        return [self.data.get(key) for key in keys]

    async def set(self, key: str, value: str, ttl: int | None = None) -> None:
        self._check("set")
        self.data[key] = value
        self.ttls[key] = ttl

    async def set_many(self, items: Mapping[str, str], ttl: int | None = None) -> None:
        self._check("set_many")
        for key, value in items.items():
            self.data[key] = value
            self.ttls[key] = ttl

    async def delete(self, *keys: str) -> int:
        self._check("delete")
        removed = 0
        for key in keys:
            if self.data.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def exists(self, key: str) -> bool:
        self._check("exists")
        return key in self.data


class FakeEntryInfoRepository:
    def __init__(self) -> None:
        self.rows: dict[int, EntryInfo] = {}

    async def upsert(self, data: EntryInfoData) -> EntryInfo:
        row = merge_entry_info(data, self.rows.get(data.id))
        self.rows[data.id] = row
        return row

    async def find_by_id(self, id: int) -> EntryInfo | None:
        return self.rows.get(id)

    async def find_ids(self, offset: int = 0, limit: int = 500) -> list[int]:
        return sorted(self.rows)[offset : offset + limit]


class FakeEventRepository:
    def __init__(self) -> None:
        self.rows: dict[int, Event] = {}
        self.find_current_calls = 0

    async def upsert_many(self, events: Iterable[EventData]) -> list[Event]:
        rows = [event_from_data(data) for data in events]
        for row in rows:
            self.rows[row.id] = row
        return rows

    async def find_current(self) -> Event | None:
        self.find_current_calls += 1
        return next((row for row in self.rows.values() if row.is_current), None)


class FakeEntryEventResultRepository:
    def __init__(self) -> None:
        self.rows: dict[tuple[int, int], EntryEventResult] = {}

    async def upsert(self, row: EntryEventResult) -> EntryEventResult:
        self.rows[(row.entry_id, row.event_id)] = row
        return row

    async def find(self, entry_id: int, event_id: int) -> EntryEventResult | None:
        return self.rows.get((entry_id, event_id))


class FakeUnitOfWork:
    """Shares repositories across instances so writes survive the block."""

    def __init__(self, database: "FakeDatabase") -> None:
        self.entry_infos = database.entry_infos
        self.events = database.events
        self.entry_event_results = database.entry_event_results

    async def __aenter__(self) -> "FakeUnitOfWork":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        return None


class FakeDatabase:
    def __init__(self) -> None:
        self.entry_infos = FakeEntryInfoRepository()
        self.events = FakeEventRepository()
        self.entry_event_results = FakeEntryEventResultRepository()

    def uow_factory(self) -> FakeUnitOfWork:
        return FakeUnitOfWork(self)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sleeper(clock: ManualClock) -> RecordedSleep:
    return RecordedSleep(clock)


@pytest.fixture
def cache_backend() -> InMemoryCacheBackend:
    return InMemoryCacheBackend()


@pytest.fixture
def fake_db() -> FakeDatabase:
    return FakeDatabase()
