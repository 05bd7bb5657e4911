"""Season helpers."""

from datetime import UTC, datetime

# FPL seasons start in August and finish in May
SEASON_START_MONTH = 8
SEASON_END_MONTH = 5


def current_season(now: datetime | None = None) -> str:
    """Season code such as ``"2526"`` for the 2025/26 season."""
    now = now or datetime.now(UTC)
    start_year = now.year if now.month >= SEASON_START_MONTH else now.year - 1
    return f"{start_year % 100:02d}{(start_year + 1) % 100:02d}"


def is_fpl_season(now: datetime | None = None) -> bool:
    """False during the June/July break, when scheduled syncs are skipped."""
    now = now or datetime.now(UTC)
    return now.month >= SEASON_START_MONTH or now.month <= SEASON_END_MONTH
