"""Tests for the FPL API adapter."""

import random

import httpx
import pytest
import respx

from letletme_sync.errors import EntryNotFoundError, RetryExhaustedError, ValidationError
from letletme_sync.infrastructure.http_client import ResilientHTTPClient
from letletme_sync.infrastructure.rate_limiter import TokenBucketRateLimiter
from letletme_sync.infrastructure.retry import RetryPolicy
from letletme_sync.upstream.fpl import (
    FplApi,
    parse_entry_event_picks,
    parse_entry_info,
    parse_event_live_points,
)

BASE_URL = "https://fpl.test/api"

ENTRY_PAYLOAD = {
    "id": 42,
    "name": "Kloppites",
    "player_first_name": "Ada",
    "player_last_name": "Lovelace",
    "player_region_name": "England",
    "started_event": 1,
    "summary_overall_points": 1234,
    "summary_overall_rank": 5678,
    "last_deadline_bank": 15,
    "last_deadline_value": 1012,
    "last_deadline_total_transfers": 9,
    "leagues": {"classic": []},
}

BOOTSTRAP_PAYLOAD = {
    "events": [
        {
            "id": 1,
            "name": "Gameweek 1",
            "deadline_time": "2025-08-15T17:30:00Z",
            "finished": True,
            "is_previous": True,
            "is_current": False,
            "is_next": False,
            "average_entry_score": 54,
            "highest_score": 127,
        },
        {
            "id": 2,
            "name": "Gameweek 2",
            "deadline_time": "2025-08-22T17:30:00Z",
            "finished": False,
            "is_current": True,
            "average_entry_score": None,
            "highest_score": None,
        },
    ],
    "teams": [],
}


@pytest.fixture
async def api(sleeper, clock):
    client = ResilientHTTPClient(
        BASE_URL,
        rate_limiter=TokenBucketRateLimiter(50, 50, 1.0, clock=clock),
        retry_policy=RetryPolicy(max_attempts=2, base_delay=0.0, max_delay=0.0, jitter_max=0.0),
        sleep=sleeper,
        rng=random.Random(0),
    )
    async with client:
        yield FplApi(client)


class TestBootstrapEvents:
    async def test_parses_events(self, api):
        with respx.mock(base_url=BASE_URL) as router:
            router.get("/bootstrap-static/").mock(
                return_value=httpx.Response(200, json=BOOTSTRAP_PAYLOAD)
            )
            events = await api.get_bootstrap_events()

        assert [event.id for event in events] == [1, 2]
        assert events[0].finished and events[0].is_previous
        assert events[0].highest_score == 127
        assert events[1].is_current
        assert events[1].average_entry_score == 0
        assert events[1].deadline_time.year == 2025
        assert events[1].deadline_time.utcoffset() is not None

    async def test_missing_events_list_is_a_validation_error(self, api):
        with respx.mock(base_url=BASE_URL) as router:
            router.get("/bootstrap-static/").mock(return_value=httpx.Response(200, json={}))
            with pytest.raises(ValidationError):
                await api.get_bootstrap_events()

    async def test_malformed_event_is_a_validation_error(self, api):
        payload = {"events": [{"id": 1, "name": "Gameweek 1", "deadline_time": "soon"}]}
        with respx.mock(base_url=BASE_URL) as router:
            router.get("/bootstrap-static/").mock(return_value=httpx.Response(200, json=payload))
            with pytest.raises(ValidationError):
                await api.get_bootstrap_events()

    async def test_server_errors_surface_after_retries(self, api):
        with respx.mock(base_url=BASE_URL) as router:
            route = router.get("/bootstrap-static/").mock(return_value=httpx.Response(503))
            with pytest.raises(RetryExhaustedError):
                await api.get_bootstrap_events()

        assert route.call_count == 2


class TestEntryInfo:
    async def test_parses_entry(self, api):
        with respx.mock(base_url=BASE_URL) as router:
            router.get("/entry/42/").mock(return_value=httpx.Response(200, json=ENTRY_PAYLOAD))
            entry = await api.get_entry_info(42)

        assert entry.id == 42
        assert entry.entry_name == "Kloppites"
        assert entry.player_name == "Ada Lovelace"
        assert entry.region == "England"
        assert entry.overall_points == 1234
        assert entry.overall_rank == 5678
        assert entry.bank == 15
        assert entry.team_value == 1012
        assert entry.total_transfers == 9

    async def test_not_found_raises_without_retry(self, api):
        with respx.mock(base_url=BASE_URL) as router:
            route = router.get("/entry/404/").mock(return_value=httpx.Response(404))
            with pytest.raises(EntryNotFoundError) as exc_info:
                await api.get_entry_info(404)

        assert route.call_count == 1
        assert exc_info.value.status == 404

    async def test_invalid_id_is_rejected_before_any_call(self, api):
        with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
            route = router.get("/entry/0/")
            with pytest.raises(ValidationError):
                await api.get_entry_info(0)

        assert route.call_count == 0

    def test_live_values_used_before_first_deadline(self):
        payload = {**ENTRY_PAYLOAD, "last_deadline_bank": None, "bank": 20, "value": 1000}
        del payload["last_deadline_value"]

        entry = parse_entry_info(payload)

        assert entry.bank == 20
        assert entry.team_value == 1000

    def test_missing_name_is_a_validation_error(self):
        payload = {key: value for key, value in ENTRY_PAYLOAD.items() if key != "name"}
        with pytest.raises(ValidationError):
            parse_entry_info(payload)


PICKS_PAYLOAD = {
    "active_chip": "3xc",
    "automatic_subs": [{"element_in": 300, "element_out": 12, "event": 5}],
    "entry_history": {
        "event": 5,
        "points": 78,
        "total_points": 345,
        "rank": 120000,
        "overall_rank": 250000,
        "bank": 12,
        "value": 1015,
        "event_transfers": 2,
        "event_transfers_cost": 4,
        "points_on_bench": 9,
    },
    "picks": [
        {"element": 12, "position": 1, "multiplier": 1, "is_captain": False, "is_vice_captain": False},
        {"element": 100, "position": 2, "multiplier": 3, "is_captain": True, "is_vice_captain": False},
        {"element": 200, "position": 3, "multiplier": 1, "is_captain": False, "is_vice_captain": True},
    ],
}

LIVE_PAYLOAD = {
    "elements": [
        {"id": 100, "stats": {"total_points": 13, "minutes": 90}},
        {"id": 200, "stats": {"total_points": 2, "minutes": 60}},
    ]
}


class TestEntryEventPicks:
    async def test_parses_picks_and_history(self, api):
        with respx.mock(base_url=BASE_URL) as router:
            router.get("/entry/42/event/5/picks/").mock(
                return_value=httpx.Response(200, json=PICKS_PAYLOAD)
            )
            picks = await api.get_entry_event_picks(42, 5)

        assert (picks.entry_id, picks.event_id) == (42, 5)
        assert picks.points == 78
        assert picks.total_points == 345
        assert picks.event_transfers_cost == 4
        assert picks.points_on_bench == 9
        assert picks.team_value == 1015
        assert picks.active_chip == "3xc"
        assert picks.captain["element"] == 100
        assert picks.automatic_subs[0]["element_in"] == 300

    async def test_missing_picks_raise_not_found(self, api):
        with respx.mock(base_url=BASE_URL) as router:
            router.get("/entry/42/event/5/picks/").mock(return_value=httpx.Response(404))
            with pytest.raises(EntryNotFoundError):
                await api.get_entry_event_picks(42, 5)

    async def test_invalid_event_is_rejected_before_any_call(self, api):
        with pytest.raises(ValidationError):
            await api.get_entry_event_picks(42, 0)

    def test_missing_history_is_a_validation_error(self):
        payload = {key: value for key, value in PICKS_PAYLOAD.items() if key != "entry_history"}
        with pytest.raises(ValidationError):
            parse_entry_event_picks(42, 5, payload)

    def test_no_captain_when_picks_are_empty(self):
        picks = parse_entry_event_picks(42, 5, {**PICKS_PAYLOAD, "picks": []})
        assert picks.captain is None


class TestEventLive:
    async def test_points_keyed_by_element(self, api):
        with respx.mock(base_url=BASE_URL) as router:
            router.get("/event/5/live/").mock(return_value=httpx.Response(200, json=LIVE_PAYLOAD))
            points = await api.get_event_live_points(5)

        assert points == {100: 13, 200: 2}

    async def test_missing_elements_is_a_validation_error(self, api):
        with respx.mock(base_url=BASE_URL) as router:
            router.get("/event/5/live/").mock(return_value=httpx.Response(200, json={}))
            with pytest.raises(ValidationError):
                await api.get_event_live_points(5)

    def test_element_without_stats_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            parse_event_live_points([{"id": 1}])
