from __future__ import annotations

import unittest
from decimal import Decimal
from types import SimpleNamespace
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError, OperationalError

from hris.errors import ApiError
from hris.models import AttendanceStatus, Employee, Payroll, PayrollStatus, Position
from hris.services.payroll import (
    approve_payroll,
    delete_payroll,
    generate_bulk_payroll,
    generate_payroll,
)


class _ScalarRows:
    def __init__(self, rows: list[object]):
        self._rows = rows

    def all(self) -> list[object]:
        return list(self._rows)


class _FakeDB:
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
        self.deleted: list[object] = []
        self.rollbacks = 0

    def get(self, model, pk):  # type: ignore[no-untyped-def]
        return self._objects.get((model, pk))

    def scalar(self, _statement):  # type: ignore[no-untyped-def]
        return None

    def scalars(self, _statement):  # type: ignore[no-untyped-def]
        return _ScalarRows(self._rows)

    def add(self, obj: object) -> None:
        self.added.append(obj)

    def delete(self, obj: object) -> None:
        self.deleted.append(obj)

    def commit(self) -> None:
        if self._commit_error is not None:
            raise self._commit_error

    def rollback(self) -> None:
        self.rollbacks += 1

    def refresh(self, _obj: object) -> None:
        return None


def _counts(present: int = 0, late: int = 0, absent: int = 0) -> dict[AttendanceStatus, int]:
    counts = {item: 0 for item in AttendanceStatus}
    counts[AttendanceStatus.PRESENT] = present
    counts[AttendanceStatus.LATE] = late
    counts[AttendanceStatus.ABSENT] = absent
    return counts


class GeneratePayrollTests(unittest.TestCase):
    def test_default_salary_when_position_has_none(self) -> None:
        employee = Employee(id=7, full_name="Budi")
        db = _FakeDB(objects={(Employee, 7): employee})

        with patch("hris.services.payroll.count_month_statuses", return_value=_counts()):
            payroll = generate_payroll(db, employee_id=7, month=1, year=2024)  # type: ignore[arg-type]

        self.assertEqual(payroll.basic_salary, Decimal("5000000"))
        self.assertEqual(payroll.gross_salary, Decimal("5500000"))
        self.assertEqual(payroll.tax, Decimal("50000"))
        self.assertEqual(payroll.net_salary, Decimal("5300000"))
        self.assertEqual(payroll.status, PayrollStatus.PENDING)
        self.assertEqual(db.added, [payroll])

    def test_position_salary_and_attendance_counts(self) -> None:
        position = Position(id=1, name="Supervisor", base_salary=Decimal("8000000"), allowance=Decimal("1000000"))
        employee = Employee(id=7, full_name="Budi", position=position)
        db = _FakeDB(objects={(Employee, 7): employee})

        with patch("hris.services.payroll.count_month_statuses", return_value=_counts(present=20, late=2, absent=1)):
            payroll = generate_payroll(db, employee_id=7, month=1, year=2024)  # type: ignore[arg-type]

        # 8M + 1M + 500k + 20 * 50k
        self.assertEqual(payroll.gross_salary, Decimal("10500000"))
        self.assertEqual(payroll.allowances, Decimal("2500000"))
        self.assertEqual(payroll.overtime, Decimal("0"))
        # 100k late + 8M / 30 absent
        self.assertEqual(payroll.other_deductions, Decimal("366666.67"))

    def test_same_inputs_generate_identical_amounts(self) -> None:
        employee = Employee(id=7, full_name="Budi")
        first_db = _FakeDB(objects={(Employee, 7): employee})
        second_db = _FakeDB(objects={(Employee, 7): employee})

        with patch("hris.services.payroll.count_month_statuses", return_value=_counts(present=19, late=1)):
            first = generate_payroll(first_db, employee_id=7, month=3, year=2024)  # type: ignore[arg-type]
            second = generate_payroll(second_db, employee_id=7, month=3, year=2024)  # type: ignore[arg-type]

        self.assertEqual(first.net_salary, second.net_salary)
        self.assertEqual(first.total_deductions, second.total_deductions)

    def test_existing_period_is_rejected(self) -> None:
        db = _FakeDB(objects={(Employee, 7): Employee(id=7, full_name="Budi")})

        with patch("hris.services.payroll._existing_payroll", return_value=Payroll(id=1)):
            with self.assertRaises(ApiError) as exc:
                generate_payroll(db, employee_id=7, month=1, year=2024)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "ALREADY_EXISTS")
        self.assertEqual(db.added, [])

    def test_concurrent_duplicate_is_translated(self) -> None:
        db = _FakeDB(
            objects={(Employee, 7): Employee(id=7, full_name="Budi")},
            commit_error=IntegrityError("INSERT", {}, Exception("uq_payrolls_employee_period")),
        )

        with patch("hris.services.payroll.count_month_statuses", return_value=_counts()):
            with self.assertRaises(ApiError) as exc:
                generate_payroll(db, employee_id=7, month=1, year=2024)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "ALREADY_EXISTS")
        self.assertEqual(db.rollbacks, 1)

    def test_foreign_key_failure_is_not_reported_as_duplicate(self) -> None:
        db = _FakeDB(
            objects={(Employee, 7): Employee(id=7, full_name="Budi")},
            commit_error=IntegrityError(
                "INSERT",
                {},
                Exception('violates foreign key constraint "payrolls_employee_id_fkey"'),
            ),
        )

        with patch("hris.services.payroll.count_month_statuses", return_value=_counts()):
            with self.assertRaises(IntegrityError):
                generate_payroll(db, employee_id=7, month=1, year=2024)  # type: ignore[arg-type]

        self.assertEqual(db.rollbacks, 1)

    def test_month_outside_calendar_is_rejected(self) -> None:
        db = _FakeDB(objects={(Employee, 7): Employee(id=7, full_name="Budi")})

        for month in (0, 13):
            with self.subTest(month=month):
                with self.assertRaises(ApiError) as exc:
                    generate_payroll(db, employee_id=7, month=month, year=2024)  # type: ignore[arg-type]

                self.assertEqual(exc.exception.code, "INVALID_PERIOD")
                self.assertEqual(exc.exception.status_code, 422)
        self.assertEqual(db.added, [])

    def test_year_outside_supported_range_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as exc:
            generate_payroll(_FakeDB(), employee_id=7, month=1, year=1999)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "INVALID_PERIOD")

    def test_unknown_employee(self) -> None:
        with self.assertRaises(ApiError) as exc:
            generate_payroll(_FakeDB(), employee_id=404, month=1, year=2024)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "EMPLOYEE_NOT_FOUND")

    def test_overtime_included_when_enabled(self) -> None:
        employee = Employee(id=7, full_name="Budi")
        db = _FakeDB(objects={(Employee, 7): employee})
        totals = SimpleNamespace(total_amount=Decimal("150000.00"))

        with (
            patch("hris.services.payroll.count_month_statuses", return_value=_counts()),
            patch("hris.services.payroll.get_settings") as settings_mock,
            patch("hris.services.payroll.approved_overtime_for_period", return_value=totals),
        ):
            settings_mock.return_value.payroll_include_overtime = True
            settings_mock.return_value.payroll_default_basic_salary = 5_000_000
            settings_mock.return_value.payroll_transport_allowance = 500_000
            settings_mock.return_value.payroll_meal_allowance_per_day = 50_000
            settings_mock.return_value.payroll_late_deduction_per_day = 50_000
            settings_mock.return_value.payroll_ptkp = 54_000_000
            settings_mock.return_value.bpjs_salary_cap = 12_000_000
            payroll = generate_payroll(db, employee_id=7, month=1, year=2024)  # type: ignore[arg-type]

        self.assertEqual(payroll.overtime, Decimal("150000.00"))
        self.assertEqual(payroll.gross_salary, Decimal("5650000.00"))


class BulkPayrollTests(unittest.TestCase):
    def test_failures_are_isolated_per_employee(self) -> None:
        db = _FakeDB(rows=[1, 2, 3])
        outcomes = [
            SimpleNamespace(id=11),
            ApiError(status_code=409, code="ALREADY_EXISTS", message="Payroll already exists for this period."),
            OperationalError("INSERT", {}, Exception("connection reset")),
        ]

        with patch("hris.services.payroll.generate_payroll", side_effect=outcomes):
            result = generate_bulk_payroll(db, month=1, year=2024)  # type: ignore[arg-type]

        self.assertEqual(result.success_count, 1)
        self.assertEqual(result.error_count, 2)
        self.assertEqual(result.items[0], {"employee_id": 1, "success": True, "payroll_id": 11})
        self.assertEqual(result.items[1]["error_code"], "ALREADY_EXISTS")
        self.assertEqual(result.items[2]["error_code"], "INTERNAL_ERROR")
        self.assertEqual(db.rollbacks, 1)

    def test_invalid_month_rejects_the_whole_run(self) -> None:
        db = _FakeDB(rows=[1, 2])

        with patch("hris.services.payroll.generate_payroll") as generate:
            with self.assertRaises(ApiError) as exc:
                generate_bulk_payroll(db, month=0, year=2024)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "INVALID_PERIOD")
        generate.assert_not_called()

    def test_no_active_employees(self) -> None:
        result = generate_bulk_payroll(_FakeDB(), month=1, year=2024)  # type: ignore[arg-type]

        self.assertEqual((result.success_count, result.error_count, result.items), (0, 0, []))


class PayrollLifecycleTests(unittest.TestCase):
    def test_approve_sets_paid_at(self) -> None:
        payroll = Payroll(id=3, status=PayrollStatus.PENDING)
        db = _FakeDB(objects={(Payroll, 3): payroll})

        approve_payroll(db, payroll_id=3, approver_id="finance-1")  # type: ignore[arg-type]

        self.assertEqual(payroll.status, PayrollStatus.APPROVED)
        self.assertEqual(payroll.approved_by, "finance-1")
        self.assertIsNotNone(payroll.paid_at)

    def test_approved_payroll_cannot_be_deleted(self) -> None:
        payroll = Payroll(id=3, status=PayrollStatus.APPROVED)
        db = _FakeDB(objects={(Payroll, 3): payroll})

        with self.assertRaises(ApiError) as exc:
            delete_payroll(db, 3)  # type: ignore[arg-type]

        self.assertEqual(exc.exception.code, "NOT_PENDING")
        self.assertEqual(db.deleted, [])

    def test_pending_payroll_is_deleted(self) -> None:
        payroll = Payroll(id=3, status=PayrollStatus.PENDING)
        db = _FakeDB(objects={(Payroll, 3): payroll})

        delete_payroll(db, 3)  # type: ignore[arg-type]

        self.assertEqual(db.deleted, [payroll])


if __name__ == "__main__":
    unittest.main()
