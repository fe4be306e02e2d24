from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Union

from .booking import normalize_hhmm, parse_hhmm


def as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


class DayOfWeek(str, Enum):
    MONDAY = "mon"
    TUESDAY = "tue"
    WEDNESDAY = "wed"
    THURSDAY = "thu"
    FRIDAY = "fri"
    SATURDAY = "sat"
    SUNDAY = "sun"

    @classmethod
    def from_date(cls, target_date: date) -> "DayOfWeek":
        return _ISO_ORDER[target_date.isoweekday() - 1]

    @property
    def iso_weekday(self) -> int:
        return _ISO_ORDER.index(self) + 1


_ISO_ORDER = [
    DayOfWeek.MONDAY,
    DayOfWeek.TUESDAY,
    DayOfWeek.WEDNESDAY,
    DayOfWeek.THURSDAY,
    DayOfWeek.FRIDAY,
    DayOfWeek.SATURDAY,
    DayOfWeek.SUNDAY,
]


class ReservationStatus(str, Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    # display-only labels carried over from older rows
    PENDING = "pending"
    COMPLETED = "completed"


STATUS_LABELS = {
    ReservationStatus.CONFIRMED: "Confirmed",
    ReservationStatus.PENDING: "Pending",
    ReservationStatus.CANCELLED: "Cancelled",
    ReservationStatus.COMPLETED: "Completed",
}


@dataclass(frozen=True)
class BusinessHourRecord:
    year: int
    month: int
    week_of_month: int
    day_of_week: DayOfWeek
    is_closed: bool
    open_time: str | None = None
    close_time: str | None = None

    @property
    def key(self) -> tuple[int, int, int, DayOfWeek]:
        return (self.year, self.month, self.week_of_month, self.day_of_week)

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "week_of_month": self.week_of_month,
            "day_of_week": self.day_of_week.value,
            "is_closed": self.is_closed,
            "open_time": self.open_time,
            "close_time": self.close_time,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "BusinessHourRecord":
        return BusinessHourRecord(
            year=int(data["year"]),
            month=int(data["month"]),
            week_of_month=int(data["week_of_month"]),
            day_of_week=DayOfWeek(str(data["day_of_week"])),
            is_closed=as_bool(data.get("is_closed", False)),
            open_time=normalize_hhmm(data.get("open_time")),
            close_time=normalize_hhmm(data.get("close_time")),
        )


@dataclass(frozen=True)
class UnusedCredential:
    token_hash: str


@dataclass(frozen=True)
class ConsumedCredential:
    consumed_at: datetime


CredentialState = Union[UnusedCredential, ConsumedCredential]


def credential_to_dict(state: CredentialState) -> dict[str, str]:
    if isinstance(state, UnusedCredential):
        return {"state": "unused", "token_hash": state.token_hash}
    return {"state": "consumed", "consumed_at": state.consumed_at.isoformat(timespec="seconds")}


def credential_from_dict(data: dict[str, Any]) -> CredentialState:
    state = str(data.get("state", ""))
    if state == "unused":
        return UnusedCredential(token_hash=str(data["token_hash"]))
    if state == "consumed":
        return ConsumedCredential(consumed_at=datetime.fromisoformat(str(data["consumed_at"])))
    raise ValueError(f"unknown credential state: {state!r}")


@dataclass(frozen=True)
class ReservationRecord:
    reservation_id: str
    reservation_code: str
    service_id: str
    name: str
    email: str
    phone: str
    date: date
    start_time: time
    end_time: time
    status: ReservationStatus
    credential: CredentialState
    created_at: datetime
    updated_at: datetime
    notes: str | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None

    @property
    def is_confirmed(self) -> bool:
        return self.status == ReservationStatus.CONFIRMED

    @property
    def token_hash(self) -> str | None:
        if isinstance(self.credential, UnusedCredential):
            return self.credential.token_hash
        return None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reservation_id": self.reservation_id,
            "reservation_code": self.reservation_code,
            "service_id": self.service_id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "date": self.date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "status": self.status.value,
            "cancel_credential": credential_to_dict(self.credential),
            "created_at": self.created_at.isoformat(timespec="seconds"),
            "updated_at": self.updated_at.isoformat(timespec="seconds"),
        }
        if self.notes is not None:
            payload["notes"] = self.notes
        if self.cancelled_at is not None:
            payload["cancelled_at"] = self.cancelled_at.isoformat(timespec="seconds")
        if self.cancel_reason is not None:
            payload["cancel_reason"] = self.cancel_reason
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "ReservationRecord":
        start_time = parse_hhmm(data.get("start_time"))
        end_time = parse_hhmm(data.get("end_time"))
        if start_time is None or end_time is None:
            raise ValueError("reservation row has no parseable start/end time")

        return ReservationRecord(
            reservation_id=str(data["reservation_id"]),
            reservation_code=str(data.get("reservation_code", "")),
            service_id=str(data["service_id"]),
            name=str(data.get("name", "")),
            email=str(data.get("email", "")),
            phone=str(data.get("phone", "")),
            date=date.fromisoformat(str(data["date"])),
            start_time=start_time,
            end_time=end_time,
            status=ReservationStatus(str(data["status"])),
            credential=credential_from_dict(data.get("cancel_credential") or {}),
            created_at=datetime.fromisoformat(str(data["created_at"])),
            updated_at=datetime.fromisoformat(str(data["updated_at"])),
            notes=(str(data["notes"]) if data.get("notes") is not None else None),
            cancelled_at=(
                datetime.fromisoformat(str(data["cancelled_at"])) if data.get("cancelled_at") is not None else None
            ),
            cancel_reason=(str(data["cancel_reason"]) if data.get("cancel_reason") is not None else None),
        )


@dataclass(frozen=True)
class ReservationSummary:
    reservation_id: str
    reservation_code: str
    service_id: str
    service_name: str | None
    name: str
    email: str
    date: date
    start_time: time
    end_time: time
    status: ReservationStatus
    notes: str | None = None
    cancel_reason: str | None = None

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, "Unknown")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.reservation_id,
            "reservation_code": self.reservation_code,
            "service_id": self.service_id,
            "service_name": self.service_name,
            "name": self.name,
            "date": self.date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "end_time": self.end_time.strftime("%H:%M"),
            "status": self.status.value,
            "status_label": self.status_label,
            "notes": self.notes,
        }

    @staticmethod
    def from_record(record: ReservationRecord, service_name: str | None = None) -> "ReservationSummary":
        return ReservationSummary(
            reservation_id=record.reservation_id,
            reservation_code=record.reservation_code,
            service_id=record.service_id,
            service_name=service_name,
            name=record.name,
            email=record.email,
            date=record.date,
            start_time=record.start_time,
            end_time=record.end_time,
            status=record.status,
            notes=record.notes,
            cancel_reason=record.cancel_reason,
        )
