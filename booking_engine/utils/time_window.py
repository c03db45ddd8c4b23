"""
Half-open time window arithmetic.

All windows are [start, end): a booking ending at 14:00 does not overlap one
starting at 14:00.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable, Mapping, Optional


@dataclass(frozen=True, order=True)
class TimeWindow:
    """An immutable [start, end) interval of naive wall-clock datetimes."""

    start: datetime
    end: datetime

    @classmethod
    def on(cls, day: date, start: time, end: time) -> "TimeWindow":
        end_dt = datetime.combine(day, end)
        # midnight as an end time means the end of the day
        if end == time(0, 0) and start != time(0, 0):
            end_dt += timedelta(days=1)
        return cls(datetime.combine(day, start), end_dt)

    @classmethod
    def from_duration(cls, start: datetime, minutes: int) -> "TimeWindow":
        return cls(start, start + timedelta(minutes=minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def is_empty(self) -> bool:
        return self.end <= self.start

    def overlaps(self, other: "TimeWindow") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeWindow") -> bool:
        return self.start <= other.start and other.end <= self.end

    def expand(self, minutes: int) -> "TimeWindow":
        """Grow the window by a buffer on both sides."""
        delta = timedelta(minutes=minutes)
        return TimeWindow(self.start - delta, self.end + delta)

    def shift_to(self, start: datetime) -> "TimeWindow":
        return TimeWindow(start, start + (self.end - self.start))

    def __str__(self) -> str:
        return f"{self.start.isoformat(timespec='minutes')}-{self.end.time().isoformat(timespec='minutes')}"


def parse_hhmm(value: Any) -> Optional[time]:
    """Parse 'HH:MM' (or a time) into a time; None for blank/invalid input."""
    if value is None:
        return None
    if isinstance(value, time):
        return value
    try:
        hour, minute = (int(part) for part in str(value).strip().split(":")[:2])
        if hour == 24 and minute == 0:
            return time(0, 0)
        return time(hour, minute)
    except (ValueError, AttributeError):
        return None


def parse_breaks(day: date, breaks: Optional[Iterable[Mapping[str, Any]]]) -> list[TimeWindow]:
    """Turn stored break rows ({"start": "13:00", "end": "14:00"}) into windows for a date."""
    windows: list[TimeWindow] = []
    for raw in breaks or []:
        start = parse_hhmm(raw.get("start") or raw.get("start_time"))
        end = parse_hhmm(raw.get("end") or raw.get("end_time"))
        if start is None or end is None:
            continue
        window = TimeWindow.on(day, start, end)
        if not window.is_empty:
            windows.append(window)
    return sorted(windows)


def any_overlap(window: TimeWindow, others: Iterable[TimeWindow]) -> bool:
    return any(window.overlaps(other) for other in others)


def covered_by(window: TimeWindow, others: Iterable[TimeWindow]) -> bool:
    """True when the union of ``others`` leaves no part of ``window`` uncovered."""
    cursor = window.start
    for other in sorted(others):
        if other.start > cursor:
            break
        cursor = max(cursor, other.end)
        if cursor >= window.end:
            return True
    return cursor >= window.end
