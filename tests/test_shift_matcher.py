from __future__ import annotations

import unittest
from datetime import time

from hris.models import Shift
from hris.services.shifts import detect_shift, shift_matches


def _shift(shift_id: int, name: str, start: time, end: time, *, overnight: bool = False) -> Shift:
    return Shift(id=shift_id, name=name, start_time=start, end_time=end, is_overnight=overnight)


class ShiftMatcherTests(unittest.TestCase):
    def setUp(self) -> None:
        self.night = _shift(3, "Night", time(22, 0), time(6, 0), overnight=True)
        self.morning = _shift(1, "Morning", time(8, 0), time(17, 0))

    def test_overnight_shift_matches_across_midnight(self) -> None:
        for clock in (time(23, 0), time(0, 30), time(5, 59)):
            with self.subTest(clock=clock):
                self.assertTrue(shift_matches(self.night, clock))

    def test_overnight_shift_does_not_match_midday(self) -> None:
        self.assertFalse(shift_matches(self.night, time(12, 0)))

    def test_day_shift_bounds_are_inclusive(self) -> None:
        self.assertTrue(shift_matches(self.morning, time(8, 0)))
        self.assertTrue(shift_matches(self.morning, time(17, 0)))
        self.assertFalse(shift_matches(self.morning, time(17, 1)))

    def test_detect_shift_returns_none_without_match(self) -> None:
        self.assertIsNone(detect_shift([self.morning], time(20, 0)))
        self.assertIsNone(detect_shift([], time(9, 0)))

    def test_detect_shift_first_match_wins(self) -> None:
        overlapping = _shift(2, "Long", time(7, 0), time(19, 0))

        self.assertIs(detect_shift([self.morning, overlapping], time(9, 0)), self.morning)
        self.assertIs(detect_shift([overlapping, self.morning], time(9, 0)), overlapping)

    def test_detect_shift_accepts_hhmm_string(self) -> None:
        self.assertIs(detect_shift([self.morning, self.night], "23:15"), self.night)

    def test_detect_shift_rejects_malformed_clock(self) -> None:
        with self.assertRaises(ValueError):
            detect_shift([self.morning], "25:00")

    def test_detect_shift_rejects_clock_without_minutes(self) -> None:
        for value in ("9", "9:00:00", "ab:cd", ""):
            with self.subTest(value=value):
                with self.assertRaisesRegex(ValueError, "Invalid HH:MM value"):
                    detect_shift([self.morning], value)


if __name__ == "__main__":
    unittest.main()
