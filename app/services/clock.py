"""Clock and wall-clock time arithmetic.

Reservation slots are stored as restaurant-local ``date`` + ``time`` values,
so all arithmetic here works on wall-clock minutes and wraps at midnight.
"""

import time as _time
from abc import ABC, abstractmethod
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.services.errors import ValidationError

MINUTES_PER_DAY = 24 * 60


class Clock(ABC):
    """Source of the current restaurant-local time"""

    @abstractmethod
    def now(self) -> datetime:
        pass

    @abstractmethod
    def monotonic(self) -> float:
        pass

    def today(self) -> date:
        return self.now().date()

    def current_time(self) -> time:
        return self.now().time().replace(microsecond=0)


class SystemClock(Clock):
    """Wall clock in a restaurant's timezone"""

    def __init__(self, timezone: Optional[str] = None):
        self.tz = None
        if timezone:
            try:
                self.tz = ZoneInfo(timezone)
            except (ZoneInfoNotFoundError, ValueError):
                raise ValidationError(f"Unknown timezone: {timezone}")

    def now(self) -> datetime:
        # Naive local time, comparable with the stored slot values
        return datetime.now(self.tz).replace(tzinfo=None)

    def monotonic(self) -> float:
        return _time.monotonic()


class FixedClock(Clock):
    """Clock pinned to a given instant; advanced explicitly"""

    def __init__(self, current: datetime):
        self.current = current
        self._elapsed = 0.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self._elapsed

    def advance(self, minutes: float = 0, seconds: float = 0) -> None:
        delta = timedelta(minutes=minutes, seconds=seconds)
        self.current += delta
        self._elapsed += delta.total_seconds()


def to_minutes(t: time) -> int:
    """Minutes since midnight"""
    return t.hour * 60 + t.minute


def minutes_between(start: time, end: time) -> int:
    """Minutes from start to end, wrapping past midnight"""
    diff = to_minutes(end) - to_minutes(start)
    if diff < 0:
        diff += MINUTES_PER_DAY
    return diff


def add_minutes(t: time, minutes: int) -> time:
    """Wall-clock addition modulo 24h"""
    total = (to_minutes(t) + minutes) % MINUTES_PER_DAY
    return time(total // 60, total % 60, t.second)


def slot_end(start: time, duration_minutes: int, end: Optional[time] = None) -> time:
    """End of a service slot, defaulting to start + duration"""
    if end is not None:
        return end
    return add_minutes(start, duration_minutes)


def within_window(now: time, start: time, end: time) -> bool:
    """True if start <= now < end, treating end < start as crossing midnight"""
    if start <= end:
        return start <= now < end
    return now >= start or now < end


def slot_time(t: time) -> time:
    """Slots are whole minutes; seconds are dropped"""
    return t.replace(second=0, microsecond=0)


def parse_time(value) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a slot time"""
    if isinstance(value, time):
        return slot_time(value)
    if not isinstance(value, str):
        raise ValidationError("Invalid time format, expected HH:MM")
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return slot_time(datetime.strptime(value.strip(), fmt).time())
        except ValueError:
            continue
    raise ValidationError("Invalid time format, expected HH:MM")


def parse_date(value) -> date:
    """Parse ``YYYY-MM-DD``"""
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(str(value).strip(), "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError("Invalid date format, expected YYYY-MM-DD")
