"""Fixed dates shared by the unit tests (tenant wall-clock time)."""

from datetime import date, datetime

# Monday 2026-10-19, 08:00
FROZEN_NOW = "2026-10-19 08:00:00"
MONDAY = date(2026, 10, 19)
TUESDAY = date(2026, 10, 20)
WEDNESDAY = date(2026, 10, 21)
SUNDAY = date(2026, 10, 25)


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime(day.year, day.month, day.day, hour, minute)


OPEN_MON_SAT = {
    day: {"is_open": True, "open": "09:00", "close": "20:00"}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday")
}
OPEN_MON_SAT["sunday"] = {"is_open": False}

RESTAURANT_HOURS = {
    day: {"is_open": True, "open": "11:00", "close": "22:00"}
    for day in ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
}
