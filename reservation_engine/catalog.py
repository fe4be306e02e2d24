from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, Protocol
import logging

import yaml

from .errors import PersistenceError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Service:
    service_id: str
    name: str
    duration_minutes: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.service_id, "name": self.name, "duration_minutes": self.duration_minutes}


class ServiceCatalog:
    """Read-only lookup of bookable services. Editing services lives elsewhere."""

    def __init__(self, services: Iterable[Service] = ()) -> None:
        self._services = {service.service_id: service for service in services}

    def get_service(self, service_id: Any) -> Service | None:
        if service_id is None:
            return None
        return self._services.get(str(service_id).strip())

    def list_services(self) -> list[Service]:
        return sorted(self._services.values(), key=lambda service: service.service_id)

    @staticmethod
    def from_yaml(path: str | Path) -> "ServiceCatalog":
        """Load ``[{id, name, duration_minutes}, ...]``. A missing file is an empty catalog."""
        path = Path(path)
        if not path.exists():
            return ServiceCatalog()
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8")) or []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            raise PersistenceError(f"Failed to read service catalog: {path.name}") from error

        services: list[Service] = []
        for row in payload if isinstance(payload, list) else []:
            if not isinstance(row, dict) or row.get("id") is None:
                logger.warning("Skipping malformed service row %r", row)
                continue
            duration = row.get("duration_minutes")
            services.append(
                Service(
                    service_id=str(row["id"]),
                    name=str(row.get("name", "")),
                    duration_minutes=int(duration) if duration is not None else None,
                )
            )
        return ServiceCatalog(services)


class Notifier(Protocol):
    def reservation_confirmed(self, summary: Any, credential: str) -> None: ...

    def reservation_cancelled(self, summary: Any) -> None: ...


class LoggingNotifier:
    """Stand-in delivery channel that only records that a message would go out."""

    def reservation_confirmed(self, summary: Any, credential: str) -> None:
        logger.info("Reservation %s confirmed; cancellation link issued", summary.reservation_code)

    def reservation_cancelled(self, summary: Any) -> None:
        logger.info("Reservation %s cancelled", summary.reservation_code)
