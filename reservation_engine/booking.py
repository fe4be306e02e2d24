from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any, Iterable
import re

_HHMM_RE = re.compile(r"(?<!\d)(?P<hour>\d{2}):(?P<minute>\d{2})(?::\d{2})?")


def normalize_hhmm(value: Any) -> str | None:
    """Return the canonical "HH:MM" form of a time-like value, or None.

    Accepts time/datetime objects and strings such as "09:00", "09:00:00" or
    "2025-12-29T09:00:00Z". The clock part is taken as written; no timezone
    conversion happens here.
    """
    if value is None:
        return None
    if isinstance(value, (datetime, time)):
        return f"{value.hour:02d}:{value.minute:02d}"

    text = str(value).strip()
    if not text:
        return None

    for match in _HHMM_RE.finditer(text):
        hour = int(match.group("hour"))
        minute = int(match.group("minute"))
        if hour <= 23 and minute <= 59:
            return f"{hour:02d}:{minute:02d}"
    return None


def parse_hhmm(value: Any) -> time | None:
    normalized = normalize_hhmm(value)
    if normalized is None:
        return None
    hour, minute = normalized.split(":")
    return time(int(hour), int(minute))


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if minutes < 0 or minutes >= 24 * 60:
        raise ValueError(f"minute of day out of range: {minutes}")
    return time(minutes // 60, minutes % 60)


@dataclass(frozen=True)
class CandidateSlot:
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError("Slot start time must be earlier than end time.")

    def to_dict(self) -> dict[str, str]:
        return {"start": self.start.strftime("%H:%M"), "end": self.end.strftime("%H:%M")}


def has_time_overlap(new_start: time, new_end: time, exist_start: time, exist_end: time) -> bool:
    """Return True when two time intervals overlap by even one minute.

    Intervals are treated as half-open ranges: [start, end)
    so touching boundaries (e.g. 10:00-11:00 and 11:00-12:00) do not overlap.
    """
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")
    if exist_start >= exist_end:
        raise ValueError("exist_start must be earlier than exist_end.")

    return new_start < exist_end and exist_start < new_end


def can_reserve(new_start: time, new_end: time, existing_intervals: Iterable[Any]) -> bool:
    """Return True if the requested interval does not overlap any existing interval.

    Items only need ``start`` and ``end`` attributes.
    """
    if new_start >= new_end:
        raise ValueError("new_start must be earlier than new_end.")

    for interval in existing_intervals:
        if has_time_overlap(new_start, new_end, interval.start, interval.end):
            return False
    return True


class ConflictChecker:
    """Overlap checks against confirmed reservations of one date.

    ``repository`` needs ``get_confirmed_on(target_date)`` returning records
    with ``start_time``/``end_time``. Display-time reads go straight to the
    repository without locking; the lifecycle calls ``has_overlap`` with rows
    it read while holding the date lock.
    """

    def __init__(self, repository: Any) -> None:
        self.repository = repository

    def has_overlap(self, target_date: date, start: time, end: time, existing: Iterable[Any]) -> bool:
        intervals = [
            CandidateSlot(record.start_time, record.end_time)
            for record in existing
            if record.date == target_date and record.is_confirmed
        ]
        return not can_reserve(start, end, intervals)

    def is_available(self, target_date: date, slot: CandidateSlot) -> bool:
        existing = self.repository.get_confirmed_on(target_date)
        return not self.has_overlap(target_date, slot.start, slot.end, existing)

    def filter_available(self, target_date: date, slots: Iterable[CandidateSlot]) -> list[CandidateSlot]:
        existing = self.repository.get_confirmed_on(target_date)
        return [slot for slot in slots if not self.has_overlap(target_date, slot.start, slot.end, existing)]
