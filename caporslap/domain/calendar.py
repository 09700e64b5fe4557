"""UTC day and week keys.

Weeks start on Sunday 00:00 UTC, so ``%U`` is used for the week number.
"""

import re
from datetime import datetime, timedelta, timezone

MS_PER_HOUR = 3_600_000
MS_PER_DAY = 24 * MS_PER_HOUR
WEEK_KEY_PATTERN = r"^\d{4}-\d{2}$"


def to_datetime(timestamp_ms: int) -> datetime:
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc)


def day_key(timestamp_ms: int) -> str:
    return to_datetime(timestamp_ms).strftime("%Y-%m-%d")


def week_key(timestamp_ms: int) -> str:
    # Keyed by the week's Sunday so a week spanning New Year keeps one key.
    return week_start(timestamp_ms).strftime("%Y-%U")


def week_start(timestamp_ms: int) -> datetime:
    moment = to_datetime(timestamp_ms)
    days_since_sunday = (moment.weekday() + 1) % 7
    start = moment - timedelta(days=days_since_sunday)
    return start.replace(hour=0, minute=0, second=0, microsecond=0)


def next_week_key(timestamp_ms: int) -> str:
    following = week_start(timestamp_ms) + timedelta(days=7)
    return following.strftime("%Y-%U")


def week_key_start_ms(key: str) -> int:
    """Epoch ms of the Sunday a ``YYYY-WW`` key starts on.

    Raises:
        ValueError: ``key`` is not a ``YYYY-WW`` week key
    """
    if re.fullmatch(WEEK_KEY_PATTERN, key) is None:
        raise ValueError(f"Invalid week key: {key!r}")
    moment = datetime.strptime(f"{key}-0", "%Y-%U-%w").replace(tzinfo=timezone.utc)
    return int(moment.timestamp() * 1000)
