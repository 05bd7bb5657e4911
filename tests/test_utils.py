from datetime import UTC, datetime

import pytest

from letletme_sync.utils import current_season, is_fpl_season


@pytest.mark.parametrize(
    ("now", "season"),
    [
        (datetime(2025, 8, 1, tzinfo=UTC), "2526"),
        (datetime(2026, 5, 24, tzinfo=UTC), "2526"),
        (datetime(2026, 7, 31, tzinfo=UTC), "2526"),
        (datetime(2099, 12, 1, tzinfo=UTC), "9900"),
    ],
)
def test_current_season(now, season):
    assert current_season(now) == season


@pytest.mark.parametrize(
    ("month", "expected"),
    [(1, True), (5, True), (6, False), (7, False), (8, True), (12, True)],
)
def test_is_fpl_season(month, expected):
    assert is_fpl_season(datetime(2025, month, 15, tzinfo=UTC)) is expected
