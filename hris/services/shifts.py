from __future__ import annotations

from collections.abc import Iterable
from datetime import time
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from hris.models import Shift


class ShiftWindow(Protocol):
    start_time: time
    end_time: time
    is_overnight: bool


def _minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute


def _parse_hhmm(value: str) -> time:
    parts = value.strip().split(":")
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise ValueError(f"Invalid HH:MM value: {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid HH:MM value: {value!r}")
    return time(hour=hour, minute=minute)


def shift_matches(shift: ShiftWindow, clock_time: time) -> bool:
    current = _minutes_of_day(clock_time)
    start = _minutes_of_day(shift.start_time)
    end = _minutes_of_day(shift.end_time)
    if shift.is_overnight:
        return current >= start or current <= end
    return start <= current <= end


def detect_shift(shifts: Iterable[ShiftWindow], clock_time: time | str) -> ShiftWindow | None:
    """Return the first shift whose window contains ``clock_time``.

    Overlapping windows are resolved by list order, so callers control the
    tie-break through the order they pass shifts in. ``None`` means no shift
    is assigned; it is not an error.
    """
    if isinstance(clock_time, str):
        clock_time = _parse_hhmm(clock_time)
    for shift in shifts:
        if shift_matches(shift, clock_time):
            return shift
    return None


def list_shifts(db: Session) -> list[Shift]:
    return list(db.scalars(select(Shift).order_by(Shift.id.asc())).all())
