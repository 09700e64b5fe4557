import pytest

from caporslap.domain.calendar import day_key, next_week_key, week_key, week_key_start_ms
from helpers import NEXT_WEEK_KEY, NOW_MS, WEEK_KEY


def test_day_and_week_keys():
    assert day_key(NOW_MS) == "2025-10-20"
    assert week_key(NOW_MS) == WEEK_KEY
    assert next_week_key(NOW_MS) == NEXT_WEEK_KEY


def test_week_starts_on_sunday():
    sunday_midnight = 1_760_832_000_000  # 2025-10-19 00:00 UTC
    assert week_key(sunday_midnight) == WEEK_KEY
    assert week_key(sunday_midnight - 1) == "2025-41"
    assert week_key_start_ms(WEEK_KEY) == sunday_midnight


def test_week_spanning_new_year_keeps_one_key():
    # 2025-12-28 (Sunday) and 2026-01-02 (Friday) are the same week
    assert week_key(1_766_880_000_000) == week_key(1_767_312_000_000) == "2025-52"


@pytest.mark.parametrize("key", ["week-one", "2025-4", "25-42", "2025-99"])
def test_malformed_week_key_is_rejected(key):
    with pytest.raises(ValueError):
        week_key_start_ms(key)
