from __future__ import annotations

import unittest
from datetime import date, datetime, time, timezone
from types import SimpleNamespace
from unittest.mock import patch
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError

from hris.errors import ApiError
from hris.models import (
    Attendance,
    AttendanceMethod,
    AttendanceStatus,
    Branch,
    Employee,
    Shift,
)
from hris.schemas import AttendanceCorrectionRequest, AttendanceManualCreateRequest
from hris.services.attendance import (
    check_in,
    check_out,
    correct_attendance,
    count_month_statuses,
    month_bounds,
    record_manual_attendance,
    resolve_checkin_status,
    worked_hours,
)

JAKARTA = ZoneInfo("Asia/Jakarta")


class _ScalarRows:
    def __init__(self, rows: list[object]):
        self._rows = rows

    def all(self) -> list[object]:
        return list(self._rows)


class _DummyDB:
    def __init__(
        self,
        *,
        objects: dict[tuple[type, int], object] | None = None,
        rows: list[object] | None = None,
        commit_error: Exception | None = None,
    ) -> None:
        self._objects = objects or {}
        self._rows = rows or []
        self._commit_error = commit_error
        self.added: list[object] = []
        self.rollbacks = 0

    def get(self, model, pk):  # type: ignore[no-untyped-def]
        return self._objects.get((model, pk))

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return None

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        return _ScalarRows(self._rows)

    def add(self, obj: object) -> None:
        self.added.append(obj)

    def commit(self) -> None:
        if self._commit_error is not None:
            raise self._commit_error

    def rollback(self) -> None:
        self.rollbacks += 1

    def refresh(self, _obj: object) -> None:
        return None


def _employee(*, latitude: float | None = 0.0, longitude: float | None = 0.0) -> Employee:
    branch = Branch(
        id=1,
        name="HQ",
        latitude=latitude,
        longitude=longitude,
        radius_m=100,
        timezone="Asia/Jakarta",
    )
    return Employee(id=7, full_name="Budi", branch_id=1, branch=branch)


def _morning_shift() -> Shift:
    return Shift(id=1, name="Morning", start_time=time(8, 0), end_time=time(17, 0), is_overnight=False)


class CheckInTests(unittest.TestCase):
    def test_second_checkin_same_day_is_rejected(self) -> None:
        db = _DummyDB(objects={(Employee, 7): _employee()})
        existing = Attendance(id=1, employee_id=7, day_date=date(2024, 1, 2))

        with patch("hris.services.attendance._get_attendance_for_day", return_value=existing):
            with self.assertRaises(ApiError) as exc:
                check_in(db, employee_id=7, lat=0.0, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "ALREADY_CHECKED_IN")
        self.assertEqual(exc.exception.status_code, 409)
        self.assertEqual(db.added, [])

    def test_concurrent_duplicate_is_translated(self) -> None:
        db = _DummyDB(
            objects={(Employee, 7): _employee()},
            commit_error=IntegrityError("INSERT", {}, Exception("uq_attendances_employee_day")),
        )

        with self.assertRaises(ApiError) as exc:
            check_in(db, employee_id=7, lat=0.0, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "ALREADY_CHECKED_IN")
        self.assertEqual(db.rollbacks, 1)

    def test_duplicate_detected_from_driver_diagnostics(self) -> None:
        orig = SimpleNamespace(diag=SimpleNamespace(constraint_name="uq_attendances_employee_day"))
        db = _DummyDB(
            objects={(Employee, 7): _employee()},
            commit_error=IntegrityError("INSERT", {}, orig),  # type: ignore[arg-type]
        )

        with self.assertRaises(ApiError) as exc:
            check_in(db, employee_id=7, lat=0.0, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "ALREADY_CHECKED_IN")

    def test_foreign_key_failure_propagates(self) -> None:
        orig = SimpleNamespace(diag=SimpleNamespace(constraint_name="attendances_shift_id_fkey"))
        db = _DummyDB(
            objects={(Employee, 7): _employee()},
            commit_error=IntegrityError("INSERT", {}, orig),  # type: ignore[arg-type]
        )

        with self.assertRaises(IntegrityError):
            check_in(db, employee_id=7, lat=0.0, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(db.rollbacks, 1)

    def test_outside_geofence_is_rejected(self) -> None:
        db = _DummyDB(objects={(Employee, 7): _employee()})

        with self.assertRaises(ApiError) as exc:
            check_in(db, employee_id=7, lat=0.00135, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "OUT_OF_GEOFENCE")
        self.assertIn("150m away from HQ", exc.exception.message)
        self.assertEqual(db.added, [])

    def test_branch_without_coordinates_is_invalid_location(self) -> None:
        db = _DummyDB(objects={(Employee, 7): _employee(latitude=None, longitude=None)})

        with self.assertRaises(ApiError) as exc:
            check_in(db, employee_id=7, lat=0.0, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "INVALID_LOCATION")

    def test_unknown_employee(self) -> None:
        with self.assertRaises(ApiError) as exc:
            check_in(_DummyDB(), employee_id=404, lat=0.0, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "EMPLOYEE_NOT_FOUND")

    def test_late_checkin_uses_branch_local_time(self) -> None:
        db = _DummyDB(objects={(Employee, 7): _employee()}, rows=[_morning_shift()])
        # 08:30 in Jakarta
        now_utc = datetime(2024, 1, 2, 1, 30, tzinfo=timezone.utc)

        attendance = check_in(db, employee_id=7, lat=0.0, lon=0.0, now_utc=now_utc)  # type: ignore[arg-type]

        self.assertEqual(attendance.status, AttendanceStatus.LATE)
        self.assertEqual(attendance.shift_id, 1)
        self.assertEqual(attendance.day_date, date(2024, 1, 2))
        self.assertEqual(attendance.method, AttendanceMethod.GPS)
        self.assertEqual(db.added, [attendance])

    def test_checkin_without_matching_shift_is_present(self) -> None:
        db = _DummyDB(objects={(Employee, 7): _employee()}, rows=[_morning_shift()])
        # 20:00 in Jakarta
        now_utc = datetime(2024, 1, 2, 13, 0, tzinfo=timezone.utc)

        attendance = check_in(db, employee_id=7, lat=0.0, lon=0.0, now_utc=now_utc)  # type: ignore[arg-type]

        self.assertEqual(attendance.status, AttendanceStatus.PRESENT)
        self.assertIsNone(attendance.shift_id)

    def test_local_day_rolls_over_before_utc(self) -> None:
        db = _DummyDB(objects={(Employee, 7): _employee()})
        # 2024-01-02 06:00 in Jakarta, still Jan 1 in UTC
        now_utc = datetime(2024, 1, 1, 23, 0, tzinfo=timezone.utc)

        attendance = check_in(db, employee_id=7, lat=0.0, lon=0.0, now_utc=now_utc)  # type: ignore[arg-type]

        self.assertEqual(attendance.day_date, date(2024, 1, 2))


class CheckInStatusTests(unittest.TestCase):
    def test_on_time(self) -> None:
        local_now = datetime(2024, 1, 2, 7, 55, tzinfo=JAKARTA)
        self.assertEqual(resolve_checkin_status(_morning_shift(), local_now), AttendanceStatus.PRESENT)

    def test_exactly_at_start_is_present(self) -> None:
        local_now = datetime(2024, 1, 2, 8, 0, tzinfo=JAKARTA)
        self.assertEqual(resolve_checkin_status(_morning_shift(), local_now), AttendanceStatus.PRESENT)

    def test_overnight_after_midnight_is_present(self) -> None:
        night = Shift(id=3, name="Night", start_time=time(22, 0), end_time=time(6, 0), is_overnight=True)
        local_now = datetime(2024, 1, 3, 0, 30, tzinfo=JAKARTA)
        self.assertEqual(resolve_checkin_status(night, local_now), AttendanceStatus.PRESENT)

    def test_no_shift_is_present(self) -> None:
        local_now = datetime(2024, 1, 2, 11, 0, tzinfo=JAKARTA)
        self.assertEqual(resolve_checkin_status(None, local_now), AttendanceStatus.PRESENT)


class CheckOutTests(unittest.TestCase):
    def test_checkout_sets_timestamp_and_coordinates(self) -> None:
        check_in_ts = datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc)
        attendance = Attendance(id=3, employee_id=7, check_in=check_in_ts, check_out=None)
        db = _DummyDB(objects={(Attendance, 3): attendance, (Employee, 7): _employee()})

        check_out(  # type: ignore[arg-type]
            db,
            attendance_id=3,
            lat=0.0001,
            lon=0.0,
            now_utc=datetime(2024, 1, 2, 10, 30, tzinfo=timezone.utc),
        )

        self.assertEqual(attendance.check_out, datetime(2024, 1, 2, 10, 30, tzinfo=timezone.utc))
        self.assertEqual(attendance.check_out_lat, 0.0001)
        self.assertAlmostEqual(worked_hours(attendance.check_in, attendance.check_out), 9.5)

    def test_second_checkout_is_rejected(self) -> None:
        attendance = Attendance(
            id=3,
            employee_id=7,
            check_in=datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc),
            check_out=datetime(2024, 1, 2, 10, 0, tzinfo=timezone.utc),
        )
        db = _DummyDB(objects={(Attendance, 3): attendance, (Employee, 7): _employee()})

        with self.assertRaises(ApiError) as exc:
            check_out(db, attendance_id=3, lat=0.0, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "ALREADY_CHECKED_OUT")

    def test_checkout_outside_geofence(self) -> None:
        attendance = Attendance(id=3, employee_id=7, check_in=datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc))
        db = _DummyDB(objects={(Attendance, 3): attendance, (Employee, 7): _employee()})

        with self.assertRaises(ApiError) as exc:
            check_out(db, attendance_id=3, lat=0.01, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "OUT_OF_GEOFENCE")
        self.assertIsNone(attendance.check_out)

    def test_missing_attendance(self) -> None:
        with self.assertRaises(ApiError) as exc:
            check_out(_DummyDB(), attendance_id=99, lat=0.0, lon=0.0)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "ATTENDANCE_NOT_FOUND")


class CorrectionAndReportingTests(unittest.TestCase):
    def test_correction_forces_manual_method(self) -> None:
        attendance = Attendance(id=3, employee_id=7, method=AttendanceMethod.GPS, status=AttendanceStatus.LATE)
        db = _DummyDB(objects={(Attendance, 3): attendance})

        correct_attendance(  # type: ignore[arg-type]
            db,
            attendance_id=3,
            payload=AttendanceCorrectionRequest(status=AttendanceStatus.PRESENT, notes="Traffic", actor_id="hr-1"),
        )

        self.assertEqual(attendance.status, AttendanceStatus.PRESENT)
        self.assertEqual(attendance.method, AttendanceMethod.MANUAL)
        self.assertEqual(attendance.notes, "Traffic")

    def test_manual_entry_is_recorded_as_manual(self) -> None:
        db = _DummyDB(objects={(Employee, 7): _employee()})
        payload = AttendanceManualCreateRequest(
            employee_id=7,
            day_date=date(2024, 1, 3),
            status=AttendanceStatus.SICK,
            notes="Doctor note",
            actor_id="hr-1",
        )

        attendance = record_manual_attendance(db, payload)  # type: ignore[arg-type]

        self.assertEqual(db.added, [attendance])
        self.assertEqual(attendance.method, AttendanceMethod.MANUAL)
        self.assertEqual(attendance.status, AttendanceStatus.SICK)
        self.assertIsNone(attendance.check_in)

    def test_manual_entry_duplicate_day_is_rejected(self) -> None:
        db = _DummyDB(
            objects={(Employee, 7): _employee()},
            commit_error=IntegrityError(
                "INSERT INTO attendances",
                {},
                Exception('duplicate key value violates unique constraint "uq_attendances_employee_day"'),
            ),
        )
        payload = AttendanceManualCreateRequest(
            employee_id=7,
            day_date=date(2024, 1, 3),
            status=AttendanceStatus.ABSENT,
            actor_id="hr-1",
        )

        with self.assertRaises(ApiError) as exc:
            record_manual_attendance(db, payload)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "ALREADY_EXISTS")
        self.assertEqual(db.rollbacks, 1)

    def test_manual_entry_foreign_key_failure_propagates(self) -> None:
        db = _DummyDB(
            objects={(Employee, 7): _employee()},
            commit_error=IntegrityError(
                "INSERT INTO attendances",
                {},
                Exception('violates foreign key constraint "attendances_employee_id_fkey"'),
            ),
        )
        payload = AttendanceManualCreateRequest(
            employee_id=7,
            day_date=date(2024, 1, 3),
            status=AttendanceStatus.ABSENT,
            actor_id="hr-1",
        )

        with self.assertRaises(IntegrityError):
            record_manual_attendance(db, payload)  # type: ignore[arg-type]

        self.assertEqual(db.rollbacks, 1)

    def test_worked_hours_without_checkout(self) -> None:
        self.assertEqual(worked_hours(datetime(2024, 1, 2, 1, 0, tzinfo=timezone.utc), None), 0.0)

    def test_month_bounds(self) -> None:
        self.assertEqual(month_bounds(2024, 2), (date(2024, 2, 1), date(2024, 2, 29)))
        self.assertEqual(month_bounds(2024, 12), (date(2024, 12, 1), date(2024, 12, 31)))

    def test_month_bounds_rejects_invalid_month(self) -> None:
        for month in (0, 13):
            with self.subTest(month=month):
                with self.assertRaises(ApiError) as exc:
                    month_bounds(2024, month)

                self.assertEqual(exc.exception.code, "INVALID_PERIOD")

    def test_count_month_statuses(self) -> None:
        rows = [
            Attendance(status=AttendanceStatus.PRESENT),
            Attendance(status=AttendanceStatus.PRESENT),
            Attendance(status=AttendanceStatus.LATE),
            Attendance(status=AttendanceStatus.ABSENT),
        ]

        counts = count_month_statuses(_DummyDB(rows=rows), employee_id=7, year=2024, month=1)  # type: ignore[arg-type]

        self.assertEqual(counts[AttendanceStatus.PRESENT], 2)
        self.assertEqual(counts[AttendanceStatus.LATE], 1)
        self.assertEqual(counts[AttendanceStatus.ABSENT], 1)
        self.assertEqual(counts[AttendanceStatus.SICK], 0)


if __name__ == "__main__":
    unittest.main()
