import datetime
from typing import Callable

Clock = Callable[[], datetime.datetime]


def system_clock() -> datetime.datetime:
    return datetime.datetime.now()


def fixed_clock(now: datetime.datetime) -> Clock:
    """Clock that always returns `now`, for deterministic tests and replays."""
    return lambda: now
