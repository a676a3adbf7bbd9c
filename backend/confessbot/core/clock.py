"""Epoch-millisecond clock. Components take a `Clock` so tests can move time."""
import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]


def system_clock_ms() -> int:
    return int(time.time() * 1000)


def ms_to_datetime(epoch_ms: int) -> datetime:
    return datetime.fromtimestamp(epoch_ms / 1000, tz=timezone.utc)


def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything here is stored in UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
