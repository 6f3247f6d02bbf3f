"""Time utilities for the types package.

Navigation timestamps are epoch milliseconds (floats), matching the units
used for cache TTLs and inter-click deltas.
"""

from __future__ import annotations

import time
from datetime import datetime


def now_ms() -> float:
    """Return the current wall-clock time in epoch milliseconds."""
    return time.time() * 1000.0


def _ms_to_datetime(timestamp_ms: float) -> datetime:
    """Convert epoch milliseconds to a local datetime."""
    return datetime.fromtimestamp(timestamp_ms / 1000.0)


def hour_of_day(timestamp_ms: float) -> int:
    """Return the local hour of day (0-23) for an epoch-millisecond timestamp."""
    return _ms_to_datetime(timestamp_ms).hour
