from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Any, Callable
import logging

from flask import Flask, jsonify, request

from .catalog import Notifier, ServiceCatalog
from .config import SchedulingConfig
from .engine import ReservationEngine
from .errors import (
    AlreadyCancelledError,
    CredentialNotFoundError,
    PersistenceError,
    ReservationConflictError,
    ReservationError,
    ValidationError,
)
from .models import ReservationStatus
from .yaml_store import ReservationYamlRepository

logger = logging.getLogger(__name__)

GENERIC_FAILURE_MESSAGE = "The request could not be completed. Please try again later."


def create_app(
    data_dir: str | Path = "data",
    now_provider: Callable[[], datetime] | None = None,
    catalog: ServiceCatalog | None = None,
    notifier: Notifier | None = None,
    config: SchedulingConfig | None = None,
) -> Flask:
    app = Flask(__name__)
    repository = ReservationYamlRepository(data_dir)
    effective_config = config or SchedulingConfig.from_env()
    if now_provider is not None:
        effective_config = effective_config.with_clock(now_provider)
    services = catalog or ServiceCatalog.from_yaml(Path(data_dir) / "services.yaml")
    engine = ReservationEngine(repository, services, effective_config, notifier)
    app.extensions["reservation_engine"] = engine

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.get("/api/services")
    def list_services() -> Any:
        return jsonify({"ok": True, "services": [service.to_dict() for service in services.list_services()]})

    @app.get("/api/reservations/month-schedule")
    def month_schedule() -> Any:
        try:
            year, month = _year_month_args()
            days = engine.get_month_schedule(year, month)
        except ReservationError as error:
            return _error_response(error)

        return jsonify(
            {
                "ok": True,
                "days": [day.to_dict() for day in days],
                "closed_dates": [day.date.isoformat() for day in days if day.is_closed],
            }
        )

    @app.get("/api/business-hours/closed-dates")
    def closed_dates() -> Any:
        try:
            year, month = _year_month_args()
            closed = engine.get_closed_dates(year, month)
        except ReservationError as error:
            return _error_response(error)

        return jsonify({"ok": True, "year": year, "month": month, "closed_dates": [day.isoformat() for day in closed]})

    @app.get("/api/business-hours/weekly")
    def get_weekly() -> Any:
        try:
            year, month = _year_month_args()
            records = engine.get_weekly_template(year, month)
        except ReservationError as error:
            return _error_response(error)

        return jsonify({"ok": True, "year": year, "month": month, "hours": [record.to_dict() for record in records]})

    @app.put("/api/business-hours/weekly")
    def update_weekly() -> Any:
        payload = request.get_json(silent=True)
        rows = payload.get("hours") if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            return jsonify({"ok": False, "message": "A list of business hour rows is required."}), 422

        try:
            year, month = _year_month_args(payload if isinstance(payload, dict) else None)
            updated = engine.update_weekly_template(year, month, rows)
        except ReservationError as error:
            return _error_response(error)

        return jsonify({"ok": True, "message": "Business hours updated.", "hours": [record.to_dict() for record in updated]})

    @app.get("/api/reservations/check")
    def check_availability() -> Any:
        try:
            result = engine.check_availability(request.args.get("date"), request.args.get("service_id"))
        except ReservationError as error:
            return _error_response(error)

        return jsonify({"ok": True, **result.to_dict()})

    @app.post("/api/reservations")
    def create_reservation() -> Any:
        payload = request.get_json(silent=True) or {}
        if not isinstance(payload, dict):
            return jsonify({"ok": False, "message": "Request body must be a JSON object."}), 422

        try:
            created = engine.create_reservation(payload)
        except ReservationError as error:
            return _error_response(error)
        except Exception:
            logger.exception("Unexpected failure while creating a reservation")
            return jsonify({"ok": False, "message": GENERIC_FAILURE_MESSAGE}), 500

        return jsonify({"ok": True, "message": "Your reservation is complete.", "reservation": created.to_dict()}), 201

    @app.get("/api/reservations/cancel/<token>")
    def cancellation_summary(token: str) -> Any:
        try:
            summary = engine.get_cancellation_summary(token)
        except ReservationError as error:
            return _error_response(error)

        if summary.status != ReservationStatus.CONFIRMED:
            return (
                jsonify(
                    {
                        "ok": False,
                        "token_valid": True,
                        "message": "This reservation has already been cancelled or can no longer be cancelled.",
                        "reservation": summary.to_dict(),
                    }
                ),
                409,
            )
        return jsonify({"ok": True, "token_valid": True, "reservation": summary.to_dict()})

    @app.post("/api/reservations/cancel/<token>")
    def confirm_cancellation(token: str) -> Any:
        payload = request.get_json(silent=True) or {}
        reason = payload.get("cancel_reason") if isinstance(payload, dict) else None

        try:
            summary = engine.confirm_cancellation(token, reason)
        except ReservationError as error:
            return _error_response(error)
        except Exception:
            logger.exception("Unexpected failure while cancelling a reservation")
            return jsonify({"ok": False, "message": GENERIC_FAILURE_MESSAGE}), 500

        return jsonify({"ok": True, "message": "Your reservation has been cancelled.", "reservation": summary.to_dict()})

    return app


def _year_month_args(payload: dict[str, Any] | None = None) -> tuple[int, int]:
    source = payload if payload and "year" in payload else request.args
    try:
        year = int(source.get("year"))
        month = int(source.get("month"))
    except (TypeError, ValueError):
        raise ValidationError("year and month must be numbers.", field="year") from None
    return year, month


def _error_response(error: ReservationError) -> tuple[Any, int]:
    if isinstance(error, ValidationError):
        body: dict[str, Any] = {"ok": False, "message": str(error)}
        if error.field:
            body["errors"] = {error.field: [str(error)]}
        return jsonify(body), 422
    if isinstance(error, ReservationConflictError):
        return jsonify({"ok": False, "conflict": True, "message": str(error)}), 409
    if isinstance(error, CredentialNotFoundError):
        return jsonify({"ok": False, "token_valid": False, "message": str(error)}), 404
    if isinstance(error, AlreadyCancelledError):
        body = {"ok": False, "token_valid": True, "message": str(error)}
        if error.summary is not None:
            body["reservation"] = error.summary.to_dict()
        return jsonify(body), 409
    if isinstance(error, PersistenceError):
        logger.error("Storage failure: %s", error)
    return jsonify({"ok": False, "message": GENERIC_FAILURE_MESSAGE}), 500


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
