from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, time
from typing import Any, Iterable, Union
import logging
import math

import holidays as pyholidays

from .booking import normalize_hhmm, parse_hhmm, to_minutes
from .config import SchedulingConfig
from .errors import ValidationError
from .models import BusinessHourRecord, DayOfWeek, as_bool

logger = logging.getLogger(__name__)

SEEDED_WEEKS = range(1, 6)
MAX_WEEK_OF_MONTH = 6
_HOLIDAY_CACHE: dict[tuple[str, int], set[date]] = {}


@dataclass(frozen=True)
class OperatingHours:
    open_time: time
    close_time: time

    @property
    def open_minutes(self) -> int:
        return to_minutes(self.open_time)

    @property
    def close_minutes(self) -> int:
        return to_minutes(self.close_time)

    def to_dict(self) -> dict[str, str]:
        return {"open_time": self.open_time.strftime("%H:%M"), "close_time": self.close_time.strftime("%H:%M")}


@dataclass(frozen=True)
class Closed:
    reason: str
    message: str


ResolvedHours = Union[OperatingHours, Closed]

CLOSED_ALL_DAY = "closed"
CLOSED_MISCONFIGURED = "misconfigured"


@dataclass(frozen=True)
class DaySchedule:
    date: date
    is_closed: bool
    open_time: str | None
    close_time: str | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date.isoformat(),
            "is_closed": self.is_closed,
            "open_time": self.open_time,
            "close_time": self.close_time,
        }


def week_of_month(target_date: date) -> int:
    """Monday-anchored week index of a date within its month.

    ceil((day + iso_weekday(first day of month) - 1) / 7), Sunday counting
    as 7. Client calendars compute the same number, so do not change it.
    """
    first_iso = target_date.replace(day=1).isoweekday()
    return math.ceil((target_date.day + first_iso - 1) / 7)


def date_for_week_slot(year: int, month: int, week: int, day_of_week: DayOfWeek) -> date | None:
    """Return the date a (week, weekday) pair denotes in a month, if it exists."""
    first_iso = date(year, month, 1).isoweekday()
    day = (week - 1) * 7 + day_of_week.iso_weekday - first_iso + 1
    if 1 <= day <= monthrange(year, month)[1]:
        return date(year, month, day)
    return None


def validate_year_month(year: int, month: int) -> None:
    if not 2000 <= year <= 2100:
        raise ValidationError("year must be between 2000 and 2100.", field="year")
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12.", field="month")


def is_national_holiday(target_date: date, country: str | None) -> bool:
    if not country:
        return False
    key = (country, target_date.year)
    if key not in _HOLIDAY_CACHE:
        holiday_map = pyholidays.country_holidays(country, years=[target_date.year])
        _HOLIDAY_CACHE[key] = set(holiday_map.keys())
    return target_date in _HOLIDAY_CACHE[key]


def build_default_month(year: int, month: int, config: SchedulingConfig) -> list[BusinessHourRecord]:
    """Default records for every (week 1-5, weekday) pair of a month.

    Hours come from the weekly template; a pair that lands on a national
    holiday is closed. Pairs outside the month keep the template hours and
    serve as the fallback for the same weekday.
    """
    records: list[BusinessHourRecord] = []
    for week in SEEDED_WEEKS:
        for day_of_week in DayOfWeek:
            hours = config.default_weekly_hours.get(day_of_week.value)
            actual_date = date_for_week_slot(year, month, week, day_of_week)
            closed = hours is None or (
                actual_date is not None and is_national_holiday(actual_date, config.holiday_country)
            )
            records.append(
                BusinessHourRecord(
                    year=year,
                    month=month,
                    week_of_month=week,
                    day_of_week=day_of_week,
                    is_closed=closed,
                    open_time=None if closed or hours is None else hours[0],
                    close_time=None if closed or hours is None else hours[1],
                )
            )
    return records


class BusinessHourResolver:
    def __init__(self, repository: Any, config: SchedulingConfig | None = None) -> None:
        self.repository = repository
        self.config = config or SchedulingConfig()

    def ensure_seeded(self, year: int, month: int) -> bool:
        if self.repository.has_business_hours(year, month):
            return False
        inserted = self.repository.insert_business_hours_if_absent(
            year,
            month,
            build_default_month(year, month, self.config),
            now=self.config.local_now(),
        )
        if inserted:
            logger.info("Seeded default business hours for %04d-%02d", year, month)
        return inserted

    def find_record(self, target_date: date) -> BusinessHourRecord | None:
        """Exact (week, weekday) record, else the same weekday from the lowest week."""
        self.ensure_seeded(target_date.year, target_date.month)
        records = self.repository.get_business_hours(target_date.year, target_date.month)
        day_of_week = DayOfWeek.from_date(target_date)
        week = week_of_month(target_date)

        for record in records:
            if record.week_of_month == week and record.day_of_week == day_of_week:
                return record

        same_weekday = [record for record in records if record.day_of_week == day_of_week]
        if not same_weekday:
            return None
        return min(same_weekday, key=lambda record: record.week_of_month)

    def resolve(self, target_date: date) -> ResolvedHours:
        record = self.find_record(target_date)
        if record is None or record.is_closed:
            return Closed(CLOSED_ALL_DAY, "Closed all day.")

        open_time = parse_hhmm(record.open_time)
        close_time = parse_hhmm(record.close_time)
        if open_time is None or close_time is None:
            return Closed(CLOSED_ALL_DAY, "Closed all day.")
        if close_time <= open_time:
            logger.warning("Business hours for %s close before they open", target_date.isoformat())
            return Closed(CLOSED_MISCONFIGURED, "Business hours are misconfigured.")
        return OperatingHours(open_time, close_time)

    def month_schedule(self, year: int, month: int) -> list[DaySchedule]:
        validate_year_month(year, month)
        self.ensure_seeded(year, month)

        days: list[DaySchedule] = []
        for day in range(1, monthrange(year, month)[1] + 1):
            target_date = date(year, month, day)
            hours = self.resolve(target_date)
            if isinstance(hours, Closed):
                days.append(DaySchedule(target_date, True, None, None))
            else:
                days.append(
                    DaySchedule(
                        target_date,
                        False,
                        hours.open_time.strftime("%H:%M"),
                        hours.close_time.strftime("%H:%M"),
                    )
                )
        return days

    def closed_dates(self, year: int, month: int) -> list[date]:
        return [day.date for day in self.month_schedule(year, month) if day.is_closed]

    def weekly_template(self, year: int, month: int) -> list[BusinessHourRecord]:
        validate_year_month(year, month)
        self.ensure_seeded(year, month)
        return self.repository.get_business_hours(year, month)

    def update_weekly_template(self, year: int, month: int, rows: Iterable[dict[str, Any]]) -> list[BusinessHourRecord]:
        validate_year_month(year, month)
        self.ensure_seeded(year, month)

        records = [_record_from_admin_row(year, month, index, row) for index, row in enumerate(rows)]
        if not records:
            raise ValidationError("No business hour rows were given.")
        return self.repository.upsert_business_hours(records, now=self.config.local_now())


def _record_from_admin_row(year: int, month: int, index: int, row: dict[str, Any]) -> BusinessHourRecord:
    if not isinstance(row, dict):
        raise ValidationError(f"Row {index} must be an object.")

    try:
        week = int(row.get("week_of_month"))
    except (TypeError, ValueError):
        raise ValidationError(f"Row {index}: week_of_month must be a number.", field="week_of_month") from None
    if not 1 <= week <= MAX_WEEK_OF_MONTH:
        raise ValidationError(f"Row {index}: week_of_month must be between 1 and 6.", field="week_of_month")

    try:
        day_of_week = DayOfWeek(str(row.get("day_of_week", "")).strip().lower())
    except ValueError:
        raise ValidationError(f"Row {index}: day_of_week is not recognised.", field="day_of_week") from None

    if as_bool(row.get("is_closed")):
        return BusinessHourRecord(year, month, week, day_of_week, True, None, None)

    open_time = normalize_hhmm(row.get("open_time"))
    close_time = normalize_hhmm(row.get("close_time"))
    if open_time is None or close_time is None:
        raise ValidationError(f"Row {index}: open_time and close_time must be HH:MM.", field="open_time")
    if close_time <= open_time:
        raise ValidationError(f"Row {index}: close_time must be later than open_time.", field="close_time")
    return BusinessHourRecord(year, month, week, day_of_week, False, open_time, close_time)
