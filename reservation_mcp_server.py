from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Any
import os

from mcp.server.fastmcp import FastMCP

from reservation_engine import ReservationEngine, ReservationYamlRepository, SchedulingConfig, ServiceCatalog

mcp = FastMCP(
    "Reservation Scheduling MCP Server",
    instructions="Read-only access to business hours and bookable slots from the reservation_engine project.",
    json_response=True,
)

DATA_DIR = Path(__file__).parent / "data"
_ENGINE: ReservationEngine | None = None


def get_engine() -> ReservationEngine:
    global _ENGINE
    if _ENGINE is None:
        data_dir = Path(os.getenv("RESERVATION_DATA_DIR", str(DATA_DIR)))
        _ENGINE = ReservationEngine(
            ReservationYamlRepository(data_dir),
            ServiceCatalog.from_yaml(data_dir / "services.yaml"),
            SchedulingConfig.from_env(),
        )
    return _ENGINE


@mcp.resource("reservation://services")
async def list_services() -> list[dict[str, Any]]:
    """List bookable services with their durations."""
    return [service.to_dict() for service in get_engine().catalog.list_services()]


@mcp.tool()
def month_schedule(year: int, month: int) -> list[dict[str, Any]]:
    """Return opening hours for every day of a month."""
    return [day.to_dict() for day in get_engine().get_month_schedule(year, month)]


@mcp.tool()
def closed_dates(year: int, month: int) -> list[str]:
    """Return the dates of a month with no opening hours."""
    return [day.isoformat() for day in get_engine().get_closed_dates(year, month)]


@mcp.tool()
def check_availability(date_iso: str, service_id: str) -> dict[str, Any]:
    """Return bookable start times for a service on a date (YYYY-MM-DD)."""
    return get_engine().check_availability(date.fromisoformat(date_iso), service_id).to_dict()


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
