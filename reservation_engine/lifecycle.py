from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Any
from uuid import uuid4
import logging
import re
import secrets

from .booking import ConflictChecker, from_minutes, to_minutes
from .business_hours import BusinessHourResolver, Closed
from .cancellation import generate_credential
from .catalog import LoggingNotifier, Notifier, ServiceCatalog
from .config import SchedulingConfig
from .errors import PersistenceError, ReservationConflictError, ValidationError
from .models import ReservationRecord, ReservationStatus, ReservationSummary, UnusedCredential
from .slots import is_on_grid, violates_lead_time

logger = logging.getLogger(__name__)

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^\d{2}:\d{2}$")
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

MAX_NAME_LENGTH = 255
MAX_EMAIL_LENGTH = 255
MAX_PHONE_LENGTH = 20
MAX_NOTES_LENGTH = 500


@dataclass(frozen=True)
class ReservationRequest:
    service_id: Any
    name: Any
    email: Any
    phone: Any
    date: Any
    start_time: Any
    notes: Any = None

    @staticmethod
    def from_payload(payload: dict[str, Any]) -> "ReservationRequest":
        # end_time from clients is ignored; it is always recomputed from the service
        return ReservationRequest(
            service_id=payload.get("service_id"),
            name=payload.get("name"),
            email=payload.get("email"),
            phone=payload.get("phone"),
            date=payload.get("date"),
            start_time=payload.get("start_time"),
            notes=payload.get("notes"),
        )


@dataclass(frozen=True)
class CreatedReservation:
    record: ReservationRecord
    summary: ReservationSummary
    credential: str

    def to_dict(self) -> dict[str, Any]:
        return {"reservation_id": self.record.reservation_id, **self.summary.to_dict()}


def parse_request_date(value: Any) -> date:
    text = str(value or "").strip()
    if not _DATE_RE.match(text):
        raise ValidationError("Date must be in YYYY-MM-DD format.", field="date")
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise ValidationError("Date must be in YYYY-MM-DD format.", field="date") from None


def parse_request_time(value: Any) -> time:
    text = str(value or "").strip()
    if not _TIME_RE.match(text):
        raise ValidationError("Start time must be in HH:MM format.", field="start_time")
    try:
        return datetime.strptime(text, "%H:%M").time()
    except ValueError:
        raise ValidationError("Start time must be in HH:MM format.", field="start_time") from None


def _required_text(value: Any, field: str, label: str, max_length: int) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise ValidationError(f"{label} is required.", field=field)
    if len(text) > max_length:
        raise ValidationError(f"{label} must be {max_length} characters or fewer.", field=field)
    return text


def _optional_text(value: Any, field: str, label: str, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{label} must be {max_length} characters or fewer.", field=field)
    return text or None


def _reservation_code() -> str:
    return "RSV" + secrets.token_hex(5).upper()


class ReservationLifecycle:
    """Validates, conflict-checks and stores new reservations.

    Everything a caller can fix is checked before the date lock is taken.
    Inside the lock the confirmed reservations of the date are re-read and
    the overlap test is repeated, so two requests that both saw a slot as
    free cannot both commit it.
    """

    def __init__(
        self,
        repository: Any,
        catalog: ServiceCatalog,
        config: SchedulingConfig | None = None,
        resolver: BusinessHourResolver | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.repository = repository
        self.catalog = catalog
        self.config = config or SchedulingConfig()
        self.resolver = resolver or BusinessHourResolver(repository, self.config)
        self.conflicts = ConflictChecker(repository)
        self.notifier = notifier or LoggingNotifier()

    def create(self, request: ReservationRequest) -> CreatedReservation:
        now = self.config.local_now()

        service = self.catalog.get_service(request.service_id)
        if service is None:
            raise ValidationError("The selected service does not exist.", field="service_id")
        duration = service.duration_minutes
        if duration is None:
            duration = self.config.default_service_duration_minutes
        if duration <= 0:
            raise ValidationError("The selected service has no bookable duration.", field="service_id")

        name = _required_text(request.name, "name", "Name", MAX_NAME_LENGTH)
        email = _required_text(request.email, "email", "Email address", MAX_EMAIL_LENGTH)
        if not _EMAIL_RE.match(email):
            raise ValidationError("Email address is not valid.", field="email")
        phone = _required_text(request.phone, "phone", "Phone number", MAX_PHONE_LENGTH)
        notes = _optional_text(request.notes, "notes", "Notes", MAX_NOTES_LENGTH)

        target_date = parse_request_date(request.date)
        if target_date < now.date():
            raise ValidationError("Past dates cannot be selected.", field="date")
        start_time = parse_request_time(request.start_time)

        hours = self.resolver.resolve(target_date)
        if isinstance(hours, Closed):
            raise ValidationError(hours.message, field="date")

        end_minutes = to_minutes(start_time) + duration
        if start_time < hours.open_time or end_minutes > hours.close_minutes:
            raise ValidationError("Choose a time within business hours.", field="start_time")
        end_time = from_minutes(end_minutes)

        if not is_on_grid(start_time, hours, self.config.slot_step_minutes):
            raise ValidationError(
                f"Start time must be on the {self.config.slot_step_minutes}-minute grid.",
                field="start_time",
            )

        if violates_lead_time(target_date, start_time, now, self.config):
            raise ValidationError(
                f"Same-day reservations close {self.config.lead_time_minutes} minutes before the start time.",
                field="start_time",
            )

        credential, token_hash = generate_credential()
        record = ReservationRecord(
            reservation_id=str(uuid4()),
            reservation_code=_reservation_code(),
            service_id=service.service_id,
            name=name,
            email=email,
            phone=phone,
            date=target_date,
            start_time=start_time,
            end_time=end_time,
            status=ReservationStatus.CONFIRMED,
            credential=UnusedCredential(token_hash=token_hash),
            created_at=now,
            updated_at=now,
            notes=notes,
        )

        try:
            with self.repository.lock_date(target_date):
                existing = self.repository.get_confirmed_on(target_date)
                if self.conflicts.has_overlap(target_date, start_time, end_time, existing):
                    raise ReservationConflictError("That time has just been booked. Please choose another time.")
                self.repository.insert_reservation(record)
        except ReservationConflictError:
            logger.info(
                "Rejected overlapping reservation on %s at %s",
                target_date.isoformat(),
                start_time.strftime("%H:%M"),
            )
            raise
        except PersistenceError:
            logger.exception("Reservation for %s could not be stored", target_date.isoformat())
            raise

        logger.info(
            "Created reservation %s on %s %s-%s",
            record.reservation_code,
            target_date.isoformat(),
            start_time.strftime("%H:%M"),
            end_time.strftime("%H:%M"),
        )

        summary = ReservationSummary.from_record(record, service.name)
        try:
            self.notifier.reservation_confirmed(summary, credential)
        except Exception:
            logger.warning("Confirmation notice for %s could not be sent", record.reservation_code, exc_info=True)

        return CreatedReservation(record=record, summary=summary, credential=credential)
