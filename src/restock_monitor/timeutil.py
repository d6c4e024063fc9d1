from __future__ import annotations

import time
from datetime import datetime, timezone


NANOS_PER_SECOND = 1_000_000_000


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def now_ns() -> int:
    return time.time_ns()


def seconds_to_ns(seconds: float) -> int:
    return int(round(seconds * NANOS_PER_SECOND))


def clock_label(ts_ns: int) -> str:
    """Local wall-clock time (HH:MM:SS) for a nanosecond timestamp."""
    return datetime.fromtimestamp(ts_ns / NANOS_PER_SECOND).strftime("%H:%M:%S")
