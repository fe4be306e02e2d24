from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Any, Iterable, Iterator
import logging
import shutil
import threading

import yaml

from .errors import PersistenceError
from .models import BusinessHourRecord, ReservationRecord, ReservationStatus

logger = logging.getLogger(__name__)

DATE_LOCK_TIMEOUT_SECONDS = 10.0
DATE_LOCK_STRIPES = 64


class DateLockRegistry:
    """A fixed set of mutexes, one chosen per calendar date.

    Holding the lock for a date serializes reservation creation for that
    date. Dates that share a stripe also wait for each other; the set never
    grows however many dates are booked.
    """

    def __init__(self, timeout: float = DATE_LOCK_TIMEOUT_SECONDS, stripes: int = DATE_LOCK_STRIPES) -> None:
        if stripes <= 0:
            raise ValueError("stripes must be greater than zero")
        self.timeout = timeout
        self._locks = [threading.Lock() for _ in range(stripes)]

    @property
    def stripes(self) -> int:
        return len(self._locks)

    def _lock_for(self, target_date: date) -> threading.Lock:
        return self._locks[target_date.toordinal() % len(self._locks)]

    @contextmanager
    def hold(self, target_date: date) -> Iterator[None]:
        lock = self._lock_for(target_date)
        if not lock.acquire(timeout=self.timeout):
            raise PersistenceError(f"Timed out waiting for the reservation lock of {target_date.isoformat()}")
        try:
            yield
        finally:
            lock.release()


class ReservationYamlRepository:
    def __init__(self, base_dir: str | Path = "data", lock_timeout: float = DATE_LOCK_TIMEOUT_SECONDS) -> None:
        self.base_dir = Path(base_dir)
        self.business_hours_file = self.base_dir / "business_hours.yaml"
        self.reservations_file = self.base_dir / "reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self.date_locks = DateLockRegistry(lock_timeout)
        self._io_lock = threading.RLock()
        self._ensure_files()

    def _ensure_files(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            for path in (self.business_hours_file, self.reservations_file, self.log_file):
                if not path.exists():
                    path.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise PersistenceError(f"Failed to prepare data directory: {self.base_dir}") from error

    def _read_yaml_list(self, path: Path, strict: bool = False) -> list[dict[str, Any]]:
        """Load a YAML list of mappings.

        A corrupted file is backed up and reset, unless ``strict`` is set, in
        which case the backup is kept and PersistenceError is raised instead.
        Reservations are read strictly so a damaged file never turns into an
        empty, bookable calendar.
        """
        with self._io_lock:
            try:
                payload = yaml.safe_load(path.read_text(encoding="utf-8"))
            except FileNotFoundError:
                self._reset_yaml_list(path)
                return []
            except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
                self._recover_corrupted_yaml(path, error, strict)
                return []

            if payload is None:
                return []
            if not isinstance(payload, list):
                self._recover_corrupted_yaml(path, ValueError("top-level YAML is not a list"), strict)
                return []

            sanitized: list[dict[str, Any]] = []
            for index, row in enumerate(payload):
                if isinstance(row, dict):
                    sanitized.append(row)
                elif path != self.log_file:
                    self._log_event(
                        "YAML_ROW_SKIPPED",
                        {
                            "file": str(path.name),
                            "index": index,
                            "reason": "row is not a mapping",
                        },
                    )
            return sanitized

    def _write_yaml_list(self, path: Path, rows: list[dict[str, Any]]) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        with self._io_lock:
            try:
                temp_path.write_text(yaml.safe_dump(rows, allow_unicode=True, sort_keys=False), encoding="utf-8")
                temp_path.replace(path)
            except OSError as error:
                raise PersistenceError(f"Failed to write YAML file: {path.name}") from error
            finally:
                if temp_path.exists():
                    temp_path.unlink(missing_ok=True)

    def _reset_yaml_list(self, path: Path) -> None:
        try:
            path.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise PersistenceError(f"Failed to reset YAML file: {path.name}") from error

    def _recover_corrupted_yaml(self, path: Path, error: Exception, strict: bool = False) -> None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            if path.exists():
                shutil.copy2(path, backup_path)
        except OSError:
            logger.warning("Could not back up corrupted file %s", path.name)

        if strict:
            logger.error("Refusing to reset corrupted file %s: %s", path.name, error)
            raise PersistenceError(f"Stored data in {path.name} is unreadable") from error

        self._reset_yaml_list(path)
        logger.warning("Reset corrupted file %s (backup %s)", path.name, backup_path.name)
        if path != self.log_file:
            self._log_event(
                "YAML_RECOVERED",
                {
                    "file": str(path.name),
                    "backup": str(backup_path.name),
                    "reason": str(error),
                },
            )

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        with self._io_lock:
            events = self._read_yaml_list(self.log_file)
            events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
            self._write_yaml_list(self.log_file, events)

    def get_events(self) -> list[dict[str, Any]]:
        return self._read_yaml_list(self.log_file)

    # business hours

    def get_business_hours(self, year: int, month: int) -> list[BusinessHourRecord]:
        records: list[BusinessHourRecord] = []
        for row in self._read_yaml_list(self.business_hours_file):
            if row.get("year") != year or row.get("month") != month:
                continue
            try:
                records.append(BusinessHourRecord.from_dict(row))
            except (KeyError, TypeError, ValueError) as error:
                logger.warning("Skipping malformed business hour row %r: %s", row, error)
        return sorted(records, key=lambda record: (record.week_of_month, record.day_of_week.iso_weekday))

    def has_business_hours(self, year: int, month: int) -> bool:
        return any(
            row.get("year") == year and row.get("month") == month
            for row in self._read_yaml_list(self.business_hours_file)
        )

    def insert_business_hours_if_absent(
        self,
        year: int,
        month: int,
        records: Iterable[BusinessHourRecord],
        now: datetime | None = None,
    ) -> bool:
        """Insert a month's records unless that month already has any. Returns True when inserted."""
        with self._io_lock:
            rows = self._read_yaml_list(self.business_hours_file)
            if any(row.get("year") == year and row.get("month") == month for row in rows):
                return False

            new_rows = [record.to_dict() for record in records]
            rows.extend(new_rows)
            self._write_yaml_list(self.business_hours_file, rows)

            self._log_event(
                "BUSINESS_HOURS_SEEDED",
                {"year": year, "month": month, "count": len(new_rows)},
                now,
            )
        return True

    def upsert_business_hours(
        self,
        records: Iterable[BusinessHourRecord],
        now: datetime | None = None,
    ) -> list[BusinessHourRecord]:
        incoming = {record.key: record for record in records}
        with self._io_lock:
            rows = self._read_yaml_list(self.business_hours_file)
            kept: list[dict[str, Any]] = []
            for row in rows:
                try:
                    key = BusinessHourRecord.from_dict(row).key
                except (KeyError, TypeError, ValueError):
                    kept.append(row)
                    continue
                if key not in incoming:
                    kept.append(row)

            kept.extend(record.to_dict() for record in incoming.values())
            self._write_yaml_list(self.business_hours_file, kept)

            self._log_event(
                "BUSINESS_HOURS_UPDATED",
                {
                    "count": len(incoming),
                    "months": sorted({f"{key[0]:04d}-{key[1]:02d}" for key in incoming}),
                },
                now,
            )
        return list(incoming.values())

    # reservations

    def get_reservations(self) -> list[ReservationRecord]:
        records: list[ReservationRecord] = []
        for row in self._read_yaml_list(self.reservations_file, strict=True):
            try:
                records.append(ReservationRecord.from_dict(row))
            except (KeyError, TypeError, ValueError) as error:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {
                        "file": self.reservations_file.name,
                        "reservation_id": str(row.get("reservation_id")),
                        "reason": str(error),
                    },
                )
        return records

    def get_reservation(self, reservation_id: str) -> ReservationRecord | None:
        for record in self.get_reservations():
            if record.reservation_id == reservation_id:
                return record
        return None

    def get_confirmed_on(self, target_date: date) -> list[ReservationRecord]:
        confirmed = [
            record for record in self.get_reservations() if record.date == target_date and record.is_confirmed
        ]
        return sorted(confirmed, key=lambda record: (record.start_time, record.end_time))

    def find_by_token_hash(self, token_hash: str) -> ReservationRecord | None:
        if not token_hash:
            return None
        for record in self.get_reservations():
            if record.token_hash == token_hash:
                return record
        return None

    def _commit_reservation_rows(
        self,
        previous_rows: list[dict[str, Any]],
        new_rows: list[dict[str, Any]],
        event_type: str,
        payload: dict[str, Any],
        event_time: datetime | None,
    ) -> None:
        """Write reservation rows together with their event.

        If the event cannot be recorded the previous rows are written back, so
        a failed call leaves neither the row change nor the event behind.
        """
        self._write_yaml_list(self.reservations_file, new_rows)
        try:
            self._log_event(event_type, payload, event_time)
        except PersistenceError:
            logger.error("Rolling back %s: event log could not be written", event_type)
            self._write_yaml_list(self.reservations_file, previous_rows)
            raise

    @contextmanager
    def lock_date(self, target_date: date) -> Iterator[None]:
        with self.date_locks.hold(target_date):
            yield

    def insert_reservation(self, record: ReservationRecord) -> ReservationRecord:
        with self._io_lock:
            rows = self._read_yaml_list(self.reservations_file, strict=True)
            for row in rows:
                if str(row.get("reservation_id")) == record.reservation_id:
                    raise PersistenceError("Duplicate reservation id.")
                stored = row.get("cancel_credential") or {}
                if record.token_hash is not None and stored.get("token_hash") == record.token_hash:
                    raise PersistenceError("Duplicate cancellation credential.")

            self._commit_reservation_rows(
                rows,
                [*rows, record.to_dict()],
                "RESERVATION_CREATED",
                {
                    "reservation_id": record.reservation_id,
                    "reservation_code": record.reservation_code,
                    "service_id": record.service_id,
                    "date": record.date.isoformat(),
                    "start_time": record.start_time.strftime("%H:%M"),
                    "end_time": record.end_time.strftime("%H:%M"),
                },
                record.created_at,
            )
        return record

    def replace_reservation_if_status(
        self,
        updated: ReservationRecord,
        expected_status: ReservationStatus,
        event_type: str,
    ) -> bool:
        """Overwrite a reservation row only while it still has ``expected_status``."""
        with self._io_lock:
            rows = self._read_yaml_list(self.reservations_file, strict=True)
            found_index = -1
            for index, row in enumerate(rows):
                if str(row.get("reservation_id")) == updated.reservation_id:
                    found_index = index
                    break

            if found_index < 0 or str(rows[found_index].get("status")) != expected_status.value:
                return False

            new_rows = list(rows)
            new_rows[found_index] = updated.to_dict()
            self._commit_reservation_rows(
                rows,
                new_rows,
                event_type,
                {
                    "reservation_id": updated.reservation_id,
                    "status": updated.status.value,
                    "date": updated.date.isoformat(),
                    "start_time": updated.start_time.strftime("%H:%M"),
                },
                updated.updated_at,
            )
        return True
