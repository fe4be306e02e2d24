import asyncio
import os
import tempfile
import unittest
from datetime import datetime
from pathlib import Path
from unittest import mock

import reservation_mcp_server
from reservation_engine import ReservationEngine, ReservationYamlRepository, SchedulingConfig, Service, ServiceCatalog


class TestMcpTools(unittest.TestCase):
    def setUp(self) -> None:
        self._temp_dir = tempfile.TemporaryDirectory()
        self.engine = ReservationEngine(
            ReservationYamlRepository(Path(self._temp_dir.name) / "data"),
            ServiceCatalog([Service("1", "Cut", 60)]),
            SchedulingConfig(clock=lambda: datetime(2026, 3, 2, 8, 0)),
        )
        patcher = mock.patch.object(reservation_mcp_server, "_ENGINE", self.engine)
        patcher.start()
        self.addCleanup(patcher.stop)

    def tearDown(self) -> None:
        self._temp_dir.cleanup()

    def test_month_schedule_and_closed_dates(self) -> None:
        days = reservation_mcp_server.month_schedule(2026, 3)
        self.assertEqual(len(days), 31)
        self.assertEqual(days[1], {"date": "2026-03-02", "is_closed": False, "open_time": "09:00", "close_time": "19:30"})
        self.assertIn("2026-03-20", reservation_mcp_server.closed_dates(2026, 3))

    def test_check_availability(self) -> None:
        result = reservation_mcp_server.check_availability("2026-03-03", "1")
        self.assertFalse(result["is_closed"])
        self.assertEqual(result["available_slots"][-1], {"start": "18:30", "end": "19:30"})

    def test_services_resource(self) -> None:
        services = asyncio.run(reservation_mcp_server.list_services())
        self.assertEqual(services, [{"id": "1", "name": "Cut", "duration_minutes": 60}])


class TestEngineFactory(unittest.TestCase):
    def test_builds_engine_from_data_directory_once(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            with mock.patch.dict(os.environ, {"RESERVATION_DATA_DIR": temp_dir}):
                with mock.patch.object(reservation_mcp_server, "_ENGINE", None):
                    engine = reservation_mcp_server.get_engine()
                    self.assertEqual(engine.repository.base_dir, Path(temp_dir))
                    self.assertIs(reservation_mcp_server.get_engine(), engine)


if __name__ == "__main__":
    unittest.main()
