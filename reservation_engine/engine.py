from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable

from .booking import CandidateSlot, ConflictChecker
from .business_hours import BusinessHourResolver, Closed, DaySchedule, OperatingHours
from .cancellation import CancellationService
from .catalog import Notifier, ServiceCatalog
from .config import SchedulingConfig
from .errors import ValidationError
from .lifecycle import CreatedReservation, ReservationLifecycle, ReservationRequest, parse_request_date
from .models import BusinessHourRecord, ReservationSummary
from .slots import SlotGenerator
from .yaml_store import ReservationYamlRepository


@dataclass(frozen=True)
class AvailabilityResult:
    date: date
    available_slots: list[CandidateSlot] = field(default_factory=list)
    operating_hours: OperatingHours | None = None
    is_closed: bool = False
    message: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "date": self.date.isoformat(),
            "is_closed": self.is_closed,
            "available_slots": [slot.to_dict() for slot in self.available_slots],
            "business_hour": self.operating_hours.to_dict() if self.operating_hours else None,
        }
        if self.message:
            payload["message"] = self.message
        return payload


class ReservationEngine:
    """Single entry point wiring the resolver, slot generator, lifecycle and cancellation."""

    def __init__(
        self,
        repository: ReservationYamlRepository,
        catalog: ServiceCatalog,
        config: SchedulingConfig | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.config = config or SchedulingConfig()
        self.resolver = BusinessHourResolver(repository, self.config)
        self.slots = SlotGenerator(self.config)
        self.conflicts = ConflictChecker(repository)
        self.lifecycle = ReservationLifecycle(repository, catalog, self.config, self.resolver, notifier)
        self.cancellations = CancellationService(repository, catalog, self.config, notifier)

    def get_month_schedule(self, year: int, month: int) -> list[DaySchedule]:
        return self.resolver.month_schedule(year, month)

    def get_closed_dates(self, year: int, month: int) -> list[date]:
        return self.resolver.closed_dates(year, month)

    def get_weekly_template(self, year: int, month: int) -> list[BusinessHourRecord]:
        return self.resolver.weekly_template(year, month)

    def update_weekly_template(self, year: int, month: int, rows: Iterable[dict[str, Any]]) -> list[BusinessHourRecord]:
        return self.resolver.update_weekly_template(year, month, rows)

    def check_availability(self, date_value: Any, service_id: Any) -> AvailabilityResult:
        now = self.config.local_now()
        target_date = date_value if isinstance(date_value, date) else parse_request_date(date_value)
        if target_date < now.date():
            raise ValidationError("Past dates cannot be selected.", field="date")

        service = self.catalog.get_service(service_id)
        if service is None:
            raise ValidationError("The selected service does not exist.", field="service_id")
        duration = service.duration_minutes
        if duration is None:
            duration = self.config.default_service_duration_minutes

        hours = self.resolver.resolve(target_date)
        if isinstance(hours, Closed):
            return AvailabilityResult(date=target_date, is_closed=True, message=hours.message)

        candidates = self.slots.generate(target_date, duration, hours, now)
        available = self.conflicts.filter_available(target_date, candidates)
        return AvailabilityResult(date=target_date, available_slots=available, operating_hours=hours)

    def create_reservation(self, request: ReservationRequest | dict[str, Any]) -> CreatedReservation:
        if isinstance(request, dict):
            request = ReservationRequest.from_payload(request)
        return self.lifecycle.create(request)

    def get_cancellation_summary(self, credential: str | None) -> ReservationSummary:
        return self.cancellations.resolve(credential)

    def confirm_cancellation(self, credential: str | None, reason: Any = None) -> ReservationSummary:
        return self.cancellations.cancel(credential, reason)
