"""Wall-clock helpers. Time is handled as integer milliseconds since epoch."""

import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]

SECOND_MS = 1_000
MINUTE_MS = 60 * SECOND_MS
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS


def current_time_millis() -> int:
    return time.time_ns() // 1_000_000


def millis_to_datetime(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
