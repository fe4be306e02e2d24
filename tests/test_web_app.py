import tempfile
import unittest
from datetime import datetime
from pathlib import Path

from reservation_engine import ReservationYamlRepository, Service, ServiceCatalog
from reservation_engine.web_app import create_app


class RecordingNotifier:
    def __init__(self) -> None:
        self.credentials = []

    def reservation_confirmed(self, summary, credential) -> None:
        self.credentials.append(credential)

    def reservation_cancelled(self, summary) -> None:
        pass


def _booking(**overrides) -> dict:
    payload = {
        "service_id": "1",
        "name": "Hanako Yamada",
        "email": "hanako@example.com",
        "phone": "090-1234-5678",
        "date": "2026-03-03",
        "start_time": "14:00",
    }
    payload.update(overrides)
    return payload


class TestWebApp(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._temp_dir.name) / "data"
        self.notifier = RecordingNotifier()
        app = create_app(
            self.data_dir,
            now_provider=lambda: datetime(2026, 3, 2, 8, 0),
            catalog=ServiceCatalog([Service("1", "Cut", 60), Service("2", "Shave", 30)]),
            notifier=self.notifier,
        )
        self.client = app.test_client()

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_lists_services(self) -> None:
        response = self.client.get("/api/services")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.headers["Access-Control-Allow-Origin"], "*")
        services = response.get_json()["services"]
        self.assertEqual([service["id"] for service in services], ["1", "2"])
        self.assertEqual(services[0]["duration_minutes"], 60)

    def test_services_are_read_from_data_directory(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            data_dir = Path(temp_dir) / "data"
            data_dir.mkdir()
            (data_dir / "services.yaml").write_text(
                "- id: 7\n  name: Massage\n  duration_minutes: 45\n", encoding="utf-8"
            )
            client = create_app(data_dir).test_client()

            services = client.get("/api/services").get_json()["services"]
            self.assertEqual(services, [{"id": "7", "name": "Massage", "duration_minutes": 45}])

    def test_month_schedule_and_closed_dates(self) -> None:
        response = self.client.get("/api/reservations/month-schedule?year=2026&month=3")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(len(payload["days"]), 31)
        self.assertIn("2026-03-20", payload["closed_dates"])

        closed = self.client.get("/api/business-hours/closed-dates?year=2026&month=3").get_json()
        self.assertEqual(closed["closed_dates"], payload["closed_dates"])

        self.assertEqual(self.client.get("/api/reservations/month-schedule?year=2026&month=13").status_code, 422)
        self.assertEqual(self.client.get("/api/business-hours/closed-dates?month=3").status_code, 422)

    def test_weekly_template_read_and_update(self) -> None:
        listed = self.client.get("/api/business-hours/weekly?year=2026&month=3")
        self.assertEqual(listed.status_code, 200)
        self.assertEqual(len(listed.get_json()["hours"]), 35)

        updated = self.client.put(
            "/api/business-hours/weekly",
            json={"year": 2026, "month": 3, "hours": [{"week_of_month": 3, "day_of_week": "tue", "is_closed": True}]},
        )
        self.assertEqual(updated.status_code, 200)
        closed = self.client.get("/api/business-hours/closed-dates?year=2026&month=3").get_json()["closed_dates"]
        self.assertIn("2026-03-10", closed)

        as_list = self.client.put(
            "/api/business-hours/weekly?year=2026&month=3",
            json=[{"week_of_month": 3, "day_of_week": "tue", "open_time": "10:00", "close_time": "12:00"}],
        )
        self.assertEqual(as_list.status_code, 200)
        self.assertEqual(as_list.get_json()["hours"][0]["open_time"], "10:00")

    def test_weekly_update_rejects_bad_payloads(self) -> None:
        missing = self.client.put("/api/business-hours/weekly", json={"year": 2026, "month": 3})
        self.assertEqual(missing.status_code, 422)

        bad_row = self.client.put(
            "/api/business-hours/weekly",
            json={
                "year": 2026,
                "month": 3,
                "hours": [{"week_of_month": 2, "day_of_week": "mon", "open_time": "18:00", "close_time": "09:00"}],
            },
        )
        self.assertEqual(bad_row.status_code, 422)
        self.assertIn("close_time", bad_row.get_json()["errors"])

    def test_check_availability(self) -> None:
        response = self.client.get("/api/reservations/check?date=2026-03-03&service_id=1")
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertFalse(payload["is_closed"])
        self.assertEqual(payload["available_slots"][0], {"start": "09:00", "end": "10:00"})
        self.assertEqual(payload["business_hour"], {"open_time": "09:00", "close_time": "19:30"})

        sunday = self.client.get("/api/reservations/check?date=2026-03-08&service_id=1").get_json()
        self.assertTrue(sunday["is_closed"])
        self.assertEqual(sunday["available_slots"], [])

        past = self.client.get("/api/reservations/check?date=2026-03-01&service_id=1")
        self.assertEqual(past.status_code, 422)
        self.assertIn("date", past.get_json()["errors"])
        self.assertEqual(self.client.get("/api/reservations/check?service_id=1").status_code, 422)

    def test_create_then_conflict(self) -> None:
        created = self.client.post("/api/reservations", json=_booking())
        self.assertEqual(created.status_code, 201)
        reservation = created.get_json()["reservation"]
        self.assertEqual(reservation["end_time"], "15:00")
        self.assertNotIn("credential", reservation)
        self.assertNotIn(self.notifier.credentials[0], created.get_data(as_text=True))

        conflict = self.client.post("/api/reservations", json=_booking(start_time="14:30", service_id="2"))
        self.assertEqual(conflict.status_code, 409)
        self.assertTrue(conflict.get_json()["conflict"])

        slots = self.client.get("/api/reservations/check?date=2026-03-03&service_id=1").get_json()["available_slots"]
        self.assertNotIn("14:00", [slot["start"] for slot in slots])

    def test_create_validation_errors(self) -> None:
        invalid = self.client.post("/api/reservations", json=_booking(email="nobody"))
        self.assertEqual(invalid.status_code, 422)
        self.assertEqual(list(invalid.get_json()["errors"]), ["email"])

        not_object = self.client.post("/api/reservations", json=["not", "an", "object"])
        self.assertEqual(not_object.status_code, 422)

    def test_cancellation_flow(self) -> None:
        self.client.post("/api/reservations", json=_booking())
        token = self.notifier.credentials[0]

        summary = self.client.get(f"/api/reservations/cancel/{token}")
        self.assertEqual(summary.status_code, 200)
        self.assertTrue(summary.get_json()["token_valid"])
        self.assertEqual(summary.get_json()["reservation"]["status"], "confirmed")

        cancelled = self.client.post(f"/api/reservations/cancel/{token}", json={"cancel_reason": "sick"})
        self.assertEqual(cancelled.status_code, 200)
        self.assertEqual(cancelled.get_json()["reservation"]["status_label"], "Cancelled")

        again = self.client.post(f"/api/reservations/cancel/{token}")
        self.assertEqual(again.status_code, 404)
        self.assertFalse(again.get_json()["token_valid"])
        self.assertEqual(self.client.get(f"/api/reservations/cancel/{token}").status_code, 404)

        rebooked = self.client.post("/api/reservations", json=_booking())
        self.assertEqual(rebooked.status_code, 201)

    def test_cancellation_rejects_long_reason(self) -> None:
        self.client.post("/api/reservations", json=_booking())
        token = self.notifier.credentials[0]

        response = self.client.post(f"/api/reservations/cancel/{token}", json={"cancel_reason": "x" * 501})
        self.assertEqual(response.status_code, 422)
        self.assertEqual(self.client.get(f"/api/reservations/cancel/{token}").status_code, 200)

    def test_storage_failure_is_generic_500(self) -> None:
        ReservationYamlRepository(self.data_dir).reservations_file.write_text("- {broken: [\n", encoding="utf-8")

        response = self.client.post("/api/reservations", json=_booking())
        self.assertEqual(response.status_code, 500)
        self.assertFalse(response.get_json()["ok"])
        self.assertNotIn("reservations.yaml", response.get_json()["message"])


if __name__ == "__main__":
    unittest.main()
