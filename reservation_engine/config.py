from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo
import os

DEFAULT_TIMEZONE = "Asia/Tokyo"
DEFAULT_HOLIDAY_COUNTRY = "JP"
SLOT_STEP_MINUTES = 15
LEAD_TIME_MINUTES = 60
DEFAULT_SERVICE_DURATION_MINUTES = 30

# day_of_week value -> (open, close); None means closed all day
DEFAULT_WEEKLY_HOURS: dict[str, tuple[str, str] | None] = {
    "mon": ("09:00", "19:30"),
    "tue": ("09:00", "19:30"),
    "wed": ("09:00", "19:30"),
    "thu": ("09:00", "19:30"),
    "fri": ("09:00", "19:30"),
    "sat": ("09:00", "19:30"),
    "sun": None,
}


@dataclass(frozen=True)
class SchedulingConfig:
    """Operating settings shared by every scheduling component.

    The clock may return naive or aware datetimes. Aware values are converted
    to the operating timezone; naive values are taken as local wall time
    already, which is what tests inject.
    """

    timezone: str = DEFAULT_TIMEZONE
    slot_step_minutes: int = SLOT_STEP_MINUTES
    lead_time_minutes: int = LEAD_TIME_MINUTES
    default_service_duration_minutes: int = DEFAULT_SERVICE_DURATION_MINUTES
    holiday_country: str | None = DEFAULT_HOLIDAY_COUNTRY
    default_weekly_hours: dict[str, tuple[str, str] | None] = field(
        default_factory=lambda: dict(DEFAULT_WEEKLY_HOURS)
    )
    clock: Callable[[], datetime] | None = None

    def __post_init__(self) -> None:
        if self.slot_step_minutes <= 0:
            raise ValueError("slot_step_minutes must be greater than zero")
        if self.lead_time_minutes < 0:
            raise ValueError("lead_time_minutes must not be negative")
        ZoneInfo(self.timezone)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    def local_now(self) -> datetime:
        now = self.clock() if self.clock is not None else datetime.now(self.tzinfo)
        if now.tzinfo is None:
            return now
        return now.astimezone(self.tzinfo).replace(tzinfo=None)

    def with_clock(self, clock: Callable[[], datetime]) -> "SchedulingConfig":
        return SchedulingConfig(
            timezone=self.timezone,
            slot_step_minutes=self.slot_step_minutes,
            lead_time_minutes=self.lead_time_minutes,
            default_service_duration_minutes=self.default_service_duration_minutes,
            holiday_country=self.holiday_country,
            default_weekly_hours=dict(self.default_weekly_hours),
            clock=clock,
        )

    @staticmethod
    def from_env(clock: Callable[[], datetime] | None = None) -> "SchedulingConfig":
        country = os.getenv("RESERVATION_HOLIDAY_COUNTRY", DEFAULT_HOLIDAY_COUNTRY).strip()
        return SchedulingConfig(
            timezone=os.getenv("RESERVATION_TIMEZONE", DEFAULT_TIMEZONE),
            holiday_country=country or None,
            clock=clock,
        )
