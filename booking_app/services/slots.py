"""Availability window parsing and slot division."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time

CLOCK_FMT = "%H:%M"
DEFAULT_SLOT_MINUTES = 30


@dataclass(frozen=True, order=True)
class TimeRange:
    """Half-open time-of-day interval ``[start, end)``."""

    start: time
    end: time

    @property
    def label(self) -> str:
        return f"{self.start.strftime(CLOCK_FMT)}-{self.end.strftime(CLOCK_FMT)}"

    @property
    def minutes(self) -> int:
        return _to_minutes(self.end) - _to_minutes(self.start)

    def __str__(self) -> str:
        return self.label


def _to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def _from_minutes(total: int) -> time:
    return time(hour=total // 60, minute=total % 60)


def parse_clock(value: str | None) -> time | None:
    """Parse ``HH:MM`` (surrounding whitespace allowed); ``None`` when invalid."""

    if not isinstance(value, str):
        return None
    try:
        return datetime.strptime(value.strip(), CLOCK_FMT).time()
    except ValueError:
        return None


def parse_time_range(raw: str | None) -> TimeRange | None:
    """Parse ``"09:00-17:00"`` into a :class:`TimeRange`.

    Anything that is not exactly two valid clock values separated by ``-``,
    or whose start is not before its end, yields ``None``. Callers treat that
    as "no availability".
    """

    if not isinstance(raw, str):
        return None
    parts = raw.split("-")
    if len(parts) != 2:
        return None
    start = parse_clock(parts[0])
    end = parse_clock(parts[1])
    if start is None or end is None or start >= end:
        return None
    return TimeRange(start, end)


def divide_slots(start: time, end: time, interval_minutes: int = DEFAULT_SLOT_MINUTES) -> list[TimeRange]:
    """Split ``[start, end)`` into contiguous ``interval_minutes`` slots.

    A trailing remainder shorter than the interval is dropped, so every slot
    lies inside the window. ``start >= end`` gives an empty list.
    """

    if interval_minutes <= 0:
        raise ValueError("interval_minutes must be positive")
    slots: list[TimeRange] = []
    current = _to_minutes(start)
    limit = _to_minutes(end)
    while current < limit:
        slot_end = current + interval_minutes
        if slot_end > limit:
            break
        slots.append(TimeRange(_from_minutes(current), _from_minutes(slot_end)))
        current = slot_end
    return slots


def slots_for_window(raw: str | None, interval_minutes: int = DEFAULT_SLOT_MINUTES) -> list[TimeRange]:
    window = parse_time_range(raw)
    if window is None:
        return []
    return divide_slots(window.start, window.end, interval_minutes)
