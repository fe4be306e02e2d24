import unittest
from datetime import date, datetime, time
from types import SimpleNamespace

from reservation_engine import CandidateSlot, ConflictChecker, can_reserve, has_time_overlap, normalize_hhmm
from reservation_engine.booking import from_minutes, parse_hhmm


class TestTimeOverlap(unittest.TestCase):
    def setUp(self) -> None:
        self.exist_start = time(10, 0)
        self.exist_end = time(11, 0)

    def test_non_overlapping_before_passes(self) -> None:
        self.assertFalse(has_time_overlap(time(9, 0), time(9, 59), self.exist_start, self.exist_end))

    def test_exactly_touching_boundary_passes(self) -> None:
        self.assertFalse(has_time_overlap(time(11, 0), time(12, 0), self.exist_start, self.exist_end))
        self.assertFalse(has_time_overlap(time(9, 0), time(10, 0), self.exist_start, self.exist_end))

    def test_partially_overlapping_fails(self) -> None:
        self.assertTrue(has_time_overlap(time(10, 30), time(11, 30), self.exist_start, self.exist_end))
        self.assertTrue(has_time_overlap(time(9, 30), time(10, 30), self.exist_start, self.exist_end))

    def test_fully_contained_fails(self) -> None:
        self.assertTrue(has_time_overlap(time(10, 15), time(10, 45), self.exist_start, self.exist_end))

    def test_rejects_empty_interval(self) -> None:
        with self.assertRaises(ValueError):
            has_time_overlap(time(10, 0), time(10, 0), self.exist_start, self.exist_end)


class TestCanReserve(unittest.TestCase):
    def test_can_reserve_returns_false_when_any_overlap(self) -> None:
        existing = [CandidateSlot(time(9, 0), time(10, 0)), CandidateSlot(time(10, 30), time(11, 30))]
        self.assertFalse(can_reserve(time(11, 0), time(12, 0), existing))

    def test_can_reserve_returns_true_when_no_overlap(self) -> None:
        existing = [CandidateSlot(time(9, 0), time(10, 0)), CandidateSlot(time(10, 30), time(11, 30))]
        self.assertTrue(can_reserve(time(12, 0), time(13, 0), existing))
        self.assertTrue(can_reserve(time(10, 0), time(10, 30), existing))


class _StaticRepository:
    def __init__(self, records) -> None:
        self.records = records

    def get_confirmed_on(self, target_date):
        return [record for record in self.records if record.date == target_date and record.is_confirmed]


def _booked(target_date: date, start: time, end: time, confirmed: bool = True) -> SimpleNamespace:
    return SimpleNamespace(date=target_date, start_time=start, end_time=end, is_confirmed=confirmed)


class TestConflictChecker(unittest.TestCase):
    def setUp(self) -> None:
        self.day = date(2026, 3, 3)
        self.repository = _StaticRepository(
            [
                _booked(self.day, time(10, 0), time(11, 0)),
                _booked(self.day, time(13, 0), time(14, 0), confirmed=False),
                _booked(date(2026, 3, 4), time(15, 0), time(16, 0)),
            ]
        )
        self.checker = ConflictChecker(self.repository)

    def test_only_confirmed_rows_of_the_same_date_conflict(self) -> None:
        self.assertFalse(self.checker.is_available(self.day, CandidateSlot(time(10, 30), time(11, 30))))
        self.assertTrue(self.checker.is_available(self.day, CandidateSlot(time(13, 0), time(14, 0))))
        self.assertTrue(self.checker.is_available(self.day, CandidateSlot(time(15, 0), time(16, 0))))

    def test_has_overlap_ignores_rows_from_other_dates(self) -> None:
        existing = self.repository.records
        self.assertFalse(self.checker.has_overlap(self.day, time(15, 0), time(16, 0), existing))
        self.assertTrue(self.checker.has_overlap(date(2026, 3, 4), time(15, 30), time(16, 30), existing))

    def test_filter_available_drops_overlapping_slots(self) -> None:
        slots = [
            CandidateSlot(time(9, 0), time(10, 0)),
            CandidateSlot(time(9, 15), time(10, 15)),
            CandidateSlot(time(10, 45), time(11, 45)),
            CandidateSlot(time(11, 0), time(12, 0)),
        ]
        available = self.checker.filter_available(self.day, slots)
        self.assertEqual([slot.start for slot in available], [time(9, 0), time(11, 0)])


class TestTimeNormalization(unittest.TestCase):
    def test_accepts_common_time_shapes(self) -> None:
        self.assertEqual(normalize_hhmm("09:00"), "09:00")
        self.assertEqual(normalize_hhmm("09:00:00"), "09:00")
        self.assertEqual(normalize_hhmm("2025-12-29T09:00:00Z"), "09:00")
        self.assertEqual(normalize_hhmm(time(19, 30, 15)), "19:30")
        self.assertEqual(normalize_hhmm(datetime(2026, 3, 3, 7, 5)), "07:05")

    def test_unparseable_values_are_absent(self) -> None:
        for value in (None, "", "   ", "9am", "25:00", "noon", "9:00"):
            with self.subTest(value=value):
                self.assertIsNone(normalize_hhmm(value))
        self.assertIsNone(parse_hhmm("closed"))

    def test_minute_of_day_bounds(self) -> None:
        self.assertEqual(from_minutes(0), time(0, 0))
        self.assertEqual(from_minutes(23 * 60 + 59), time(23, 59))
        with self.assertRaises(ValueError):
            from_minutes(24 * 60)

    def test_candidate_slot_requires_positive_length(self) -> None:
        with self.assertRaises(ValueError):
            CandidateSlot(time(10, 0), time(9, 45))
        self.assertEqual(CandidateSlot(time(9, 0), time(9, 30)).to_dict(), {"start": "09:00", "end": "09:30"})


if __name__ == "__main__":
    unittest.main()
