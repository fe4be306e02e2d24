from __future__ import annotations

from datetime import date, datetime, time, timedelta

from .booking import CandidateSlot, from_minutes, to_minutes
from .business_hours import Closed, OperatingHours
from .config import SchedulingConfig
from .errors import ValidationError


def earliest_bookable_start(
    now: datetime,
    lead_time_minutes: int = 60,
    step_minutes: int = 15,
) -> datetime:
    """First start time a same-day booking may use.

    Seconds are dropped, the lead time is added, and the result is rounded
    up to the next step boundary (08:05 -> 09:15, 08:00 -> 09:00).
    """
    cutoff = now.replace(second=0, microsecond=0) + timedelta(minutes=lead_time_minutes)
    remainder = (cutoff.hour * 60 + cutoff.minute) % step_minutes
    if remainder:
        cutoff += timedelta(minutes=step_minutes - remainder)
    return cutoff


def violates_lead_time(target_date: date, start: time, now: datetime, config: SchedulingConfig) -> bool:
    """True when a same-day start falls before the lead-time cutoff. Other dates never do."""
    if target_date != now.date():
        return False
    cutoff = earliest_bookable_start(now, config.lead_time_minutes, config.slot_step_minutes)
    return datetime.combine(target_date, start) < cutoff


def is_on_grid(start: time, hours: OperatingHours, step_minutes: int) -> bool:
    offset = to_minutes(start) - hours.open_minutes
    return offset >= 0 and offset % step_minutes == 0


class SlotGenerator:
    """Start times allowed by operating hours and lead time.

    Existing bookings are not considered here; ConflictChecker filters the
    result for display.
    """

    def __init__(self, config: SchedulingConfig | None = None) -> None:
        self.config = config or SchedulingConfig()

    def generate(
        self,
        target_date: date,
        duration_minutes: int,
        hours: OperatingHours | Closed,
        now: datetime,
    ) -> list[CandidateSlot]:
        if isinstance(hours, Closed):
            raise ValueError("Cannot generate slots for a closed day.")
        if duration_minutes <= 0:
            raise ValidationError("Service duration must be greater than zero.", field="service_id")

        open_minutes = hours.open_minutes
        close_minutes = hours.close_minutes
        if close_minutes <= open_minutes:
            return []

        last_start = close_minutes - duration_minutes
        if last_start < open_minutes:
            return []

        slots: list[CandidateSlot] = []
        for start in range(open_minutes, last_start + 1, self.config.slot_step_minutes):
            candidate = CandidateSlot(from_minutes(start), from_minutes(start + duration_minutes))
            if violates_lead_time(target_date, candidate.start, now, self.config):
                continue
            slots.append(candidate)
        return slots
