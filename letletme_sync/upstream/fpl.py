"""Fantasy Premier League API adapter.

All calls go through the shared ResilientHTTPClient, so they are rate limited
and retried. Only the fields mapped into the DTOs are read; anything else in
the payload is ignored.
"""

import logging
from datetime import datetime
from typing import Any

from letletme_sync.errors import EntryNotFoundError, ValidationError
from letletme_sync.infrastructure.http_client import ResilientHTTPClient
from letletme_sync.infrastructure.outcome import Failure, HTTPResult, JsonValue, RetryExhausted
from letletme_sync.upstream.dto import EntryEventPicksData, EntryInfoData, EventData

logger = logging.getLogger(__name__)

BOOTSTRAP_PATH = "/bootstrap-static/"
ENTRY_PATH = "/entry/{entry_id}/"
ENTRY_EVENT_PICKS_PATH = "/entry/{entry_id}/event/{event_id}/picks/"
EVENT_LIVE_PATH = "/event/{event_id}/live/"


class FplApi:
    """Typed access to the FPL endpoints the sync jobs need."""

    def __init__(self, client: ResilientHTTPClient) -> None:
        self._client = client

    async def get_bootstrap_events(self) -> list[EventData]:
        body = await self._get_json(BOOTSTRAP_PATH)
        if not isinstance(body, dict) or not isinstance(body.get("events"), list):
            raise ValidationError("bootstrap-static payload has no events list")
        return [parse_event(raw) for raw in body["events"]]

    async def get_entry_info(self, entry_id: int) -> EntryInfoData:
        if entry_id <= 0:
            raise ValidationError(f"Invalid entry id: {entry_id}")

        path = ENTRY_PATH.format(entry_id=entry_id)
        result = await self._client.get(path)
        if isinstance(result, Failure) and result.status == 404:
            raise EntryNotFoundError(f"Entry {entry_id} not found", status=404)

        body = _unwrap(path, result)
        if not isinstance(body, dict):
            raise ValidationError(f"Entry {entry_id} payload is not an object")
        return parse_entry_info(body)

    async def get_entry_event_picks(self, entry_id: int, event_id: int) -> EntryEventPicksData:
        if entry_id <= 0 or event_id <= 0:
            raise ValidationError(f"Invalid entry/event id: {entry_id}/{event_id}")

        path = ENTRY_EVENT_PICKS_PATH.format(entry_id=entry_id, event_id=event_id)
        result = await self._client.get(path)
        if isinstance(result, Failure) and result.status == 404:
            raise EntryNotFoundError(
                f"No picks for entry {entry_id} in event {event_id}", status=404
            )

        body = _unwrap(path, result)
        if not isinstance(body, dict):
            raise ValidationError(f"Picks payload for entry {entry_id} is not an object")
        return parse_entry_event_picks(entry_id, event_id, body)

    async def get_event_live_points(self, event_id: int) -> dict[int, int]:
        """Total points per element (player id) for one gameweek."""
        if event_id <= 0:
            raise ValidationError(f"Invalid event id: {event_id}")

        body = await self._get_json(EVENT_LIVE_PATH.format(event_id=event_id))
        if not isinstance(body, dict) or not isinstance(body.get("elements"), list):
            raise ValidationError(f"Event {event_id} live payload has no elements list")
        return parse_event_live_points(body["elements"])

    async def _get_json(self, path: str) -> JsonValue:
        return _unwrap(path, await self._client.get(path))


def _unwrap(path: str, result: HTTPResult) -> JsonValue:
    if isinstance(result, RetryExhausted):
        logger.warning(f"GET {path} gave up after {result.attempts} attempts: {result.last.message}")
    return result.unwrap()


def parse_event(raw: Any) -> EventData:
    try:
        return EventData(
            id=int(raw["id"]),
            name=str(raw["name"]),
            deadline_time=datetime.fromisoformat(raw["deadline_time"]),
            finished=bool(raw.get("finished", False)),
            is_previous=bool(raw.get("is_previous", False)),
            is_current=bool(raw.get("is_current", False)),
            is_next=bool(raw.get("is_next", False)),
            average_entry_score=int(raw.get("average_entry_score") or 0),
            highest_score=raw.get("highest_score"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed event payload: {e!r}") from e


def parse_entry_info(raw: dict[str, Any]) -> EntryInfoData:
    try:
        first_name = raw.get("player_first_name") or ""
        last_name = raw.get("player_last_name") or ""
        return EntryInfoData(
            id=int(raw["id"]),
            entry_name=str(raw["name"]),
            player_name=f"{first_name} {last_name}".strip(),
            region=raw.get("player_region_name"),
            started_event=raw.get("started_event"),
            overall_points=raw.get("summary_overall_points"),
            overall_rank=raw.get("summary_overall_rank"),
            # last_deadline_* is the snapshot at the last deadline; fall back to live values
            bank=_first_present(raw, "last_deadline_bank", "bank"),
            team_value=_first_present(raw, "last_deadline_value", "value"),
            total_transfers=raw.get("last_deadline_total_transfers"),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed entry payload: {e!r}") from e


def parse_entry_event_picks(
    entry_id: int, event_id: int, raw: dict[str, Any]
) -> EntryEventPicksData:
    try:
        history = raw["entry_history"]
        picks = raw.get("picks") or []
        if not isinstance(picks, list):
            raise TypeError("picks is not a list")
        return EntryEventPicksData(
            entry_id=entry_id,
            event_id=event_id,
            points=int(history["points"]),
            total_points=int(history["total_points"]),
            event_transfers=int(history.get("event_transfers") or 0),
            event_transfers_cost=int(history.get("event_transfers_cost") or 0),
            points_on_bench=history.get("points_on_bench"),
            rank=history.get("rank"),
            overall_rank=history.get("overall_rank"),
            bank=history.get("bank"),
            team_value=history.get("value"),
            active_chip=raw.get("active_chip"),
            picks=picks,
            automatic_subs=raw.get("automatic_subs") or [],
        )
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed picks payload: {e!r}") from e


def parse_event_live_points(elements: list[Any]) -> dict[int, int]:
    try:
        return {
            int(element["id"]): int(element["stats"]["total_points"]) for element in elements
        }
    except (KeyError, TypeError, ValueError) as e:
        raise ValidationError(f"Malformed event live payload: {e!r}") from e


def _first_present(raw: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None
