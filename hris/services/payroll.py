from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from hris.db import is_unique_violation
from hris.errors import ApiError, conflict, not_found
from hris.models import AttendanceStatus, Employee, EmployeeStatus, Payroll, PayrollStatus
from hris.services.attendance import count_month_statuses, ensure_valid_period, month_bounds
from hris.services.overtime import approved_overtime_for_period
from hris.services.payroll_calc import PayrollBreakdown, PayrollInputs, calculate_payroll
from hris.settings import get_settings

logger = logging.getLogger("hris.payroll")

PAYROLL_PERIOD_CONSTRAINT = "uq_payrolls_employee_period"


@dataclass
class BulkPayrollResult:
    month: int
    year: int
    success_count: int = 0
    error_count: int = 0
    items: list[dict[str, object]] = field(default_factory=list)


def _as_decimal(value: Decimal | int | float | None, default: Decimal | int = 0) -> Decimal:
    if value is None or value == 0:
        return Decimal(default)
    return Decimal(str(value))


def _get_payroll(db: Session, payroll_id: int) -> Payroll:
    payroll = db.get(Payroll, payroll_id)
    if payroll is None:
        raise not_found("PAYROLL_NOT_FOUND", "Payroll not found.")
    return payroll


def _existing_payroll(db: Session, *, employee_id: int, month: int, year: int) -> Payroll | None:
    return db.scalar(
        select(Payroll).where(
            Payroll.employee_id == employee_id,
            Payroll.month == month,
            Payroll.year == year,
        )
    )


def _already_exists_error() -> ApiError:
    return conflict("ALREADY_EXISTS", "Payroll already exists for this period.")


def _overtime_pay(db: Session, *, employee_id: int, month: int, year: int) -> Decimal:
    settings = get_settings()
    if not settings.payroll_include_overtime:
        # TODO: drop the flag once approved overtime rates are confirmed as payable through payroll.
        return Decimal("0")
    start, end = month_bounds(year, month)
    totals = approved_overtime_for_period(db, employee_id=employee_id, start_date=start, end_date=end)
    return totals.total_amount


def build_payroll_inputs(
    employee: Employee,
    *,
    present_days: int,
    late_days: int,
    absent_days: int,
    overtime_pay: Decimal,
) -> PayrollInputs:
    settings = get_settings()
    position = employee.position
    base_salary = position.base_salary if position is not None else None
    allowance = position.allowance if position is not None else None
    return PayrollInputs(
        basic_salary=_as_decimal(base_salary, settings.payroll_default_basic_salary),
        position_allowance=_as_decimal(allowance),
        transport_allowance=Decimal(settings.payroll_transport_allowance),
        meal_allowance_per_day=Decimal(settings.payroll_meal_allowance_per_day),
        late_deduction_per_day=Decimal(settings.payroll_late_deduction_per_day),
        ptkp=Decimal(settings.payroll_ptkp),
        bpjs_salary_cap=Decimal(settings.bpjs_salary_cap),
        present_days=present_days,
        late_days=late_days,
        absent_days=absent_days,
        overtime_pay=overtime_pay,
    )


def _payroll_from_breakdown(employee_id: int, month: int, year: int, breakdown: PayrollBreakdown) -> Payroll:
    return Payroll(
        employee_id=employee_id,
        month=month,
        year=year,
        basic_salary=breakdown.basic_salary,
        allowances=breakdown.allowances,
        overtime=breakdown.overtime_pay,
        gross_salary=breakdown.gross_salary,
        tax=breakdown.tax,
        bpjs_kesehatan=breakdown.bpjs_kesehatan.employee,
        bpjs_ketenagakerjaan=breakdown.bpjs_ketenagakerjaan.employee,
        bpjs_kesehatan_employer=breakdown.bpjs_kesehatan.employer,
        bpjs_ketenagakerjaan_employer=breakdown.bpjs_ketenagakerjaan.employer,
        other_deductions=breakdown.other_deductions,
        total_deductions=breakdown.total_deductions,
        net_salary=breakdown.net_salary,
        status=PayrollStatus.PENDING,
    )


def generate_payroll(db: Session, *, employee_id: int, month: int, year: int) -> Payroll:
    ensure_valid_period(year=year, month=month)
    if _existing_payroll(db, employee_id=employee_id, month=month, year=year) is not None:
        raise _already_exists_error()

    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("EMPLOYEE_NOT_FOUND", "Employee not found.")

    counts = count_month_statuses(db, employee_id=employee.id, year=year, month=month)
    inputs = build_payroll_inputs(
        employee,
        present_days=counts[AttendanceStatus.PRESENT],
        late_days=counts[AttendanceStatus.LATE],
        absent_days=counts[AttendanceStatus.ABSENT],
        overtime_pay=_overtime_pay(db, employee_id=employee.id, month=month, year=year),
    )
    breakdown = calculate_payroll(inputs)

    payroll = _payroll_from_breakdown(employee.id, month, year, breakdown)
    db.add(payroll)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_unique_violation(exc, PAYROLL_PERIOD_CONSTRAINT):
            raise
        # Lost the race against a concurrent generation for the same period.
        raise _already_exists_error() from exc
    db.refresh(payroll)

    logger.info(
        "payroll_generated",
        extra={
            "payroll_id": payroll.id,
            "employee_id": employee.id,
            "period": f"{year:04d}-{month:02d}",
            "present_days": inputs.present_days,
            "late_days": inputs.late_days,
            "absent_days": inputs.absent_days,
            "gross_salary": str(breakdown.gross_salary),
            "net_salary": str(breakdown.net_salary),
        },
    )
    return payroll


def generate_bulk_payroll(db: Session, *, month: int, year: int) -> BulkPayrollResult:
    ensure_valid_period(year=year, month=month)
    employee_ids = list(
        db.scalars(
            select(Employee.id)
            .where(Employee.status == EmployeeStatus.ACTIVE)
            .order_by(Employee.id.asc())
        ).all()
    )

    result = BulkPayrollResult(month=month, year=year)
    for employee_id in employee_ids:
        try:
            payroll = generate_payroll(db, employee_id=employee_id, month=month, year=year)
        except ApiError as exc:
            result.error_count += 1
            result.items.append(
                {
                    "employee_id": employee_id,
                    "success": False,
                    "error_code": exc.code,
                    "error_message": exc.message,
                }
            )
            logger.warning(
                "payroll_bulk_item_failed",
                extra={"employee_id": employee_id, "code": exc.code, "period": f"{year:04d}-{month:02d}"},
            )
            continue
        except SQLAlchemyError:
            db.rollback()
            result.error_count += 1
            result.items.append(
                {
                    "employee_id": employee_id,
                    "success": False,
                    "error_code": "INTERNAL_ERROR",
                    "error_message": "Failed to generate payroll.",
                }
            )
            logger.exception(
                "payroll_bulk_item_failed",
                extra={"employee_id": employee_id, "code": "INTERNAL_ERROR", "period": f"{year:04d}-{month:02d}"},
            )
            continue
        result.success_count += 1
        result.items.append({"employee_id": employee_id, "success": True, "payroll_id": payroll.id})

    logger.info(
        "payroll_bulk_generated",
        extra={
            "period": f"{year:04d}-{month:02d}",
            "success_count": result.success_count,
            "error_count": result.error_count,
        },
    )
    return result


def approve_payroll(db: Session, *, payroll_id: int, approver_id: str) -> Payroll:
    payroll = _get_payroll(db, payroll_id)
    if payroll.status != PayrollStatus.PENDING:
        raise conflict("NOT_PENDING", "Payroll is not pending.")

    payroll.status = PayrollStatus.APPROVED
    payroll.approved_by = approver_id
    payroll.paid_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(payroll)
    return payroll


def delete_payroll(db: Session, payroll_id: int) -> None:
    payroll = _get_payroll(db, payroll_id)
    if payroll.status != PayrollStatus.PENDING:
        raise conflict("NOT_PENDING", "Can only delete pending payroll.")
    db.delete(payroll)
    db.commit()


def list_payrolls_by_period(db: Session, *, month: int, year: int) -> list[Payroll]:
    return list(
        db.scalars(
            select(Payroll)
            .where(Payroll.month == month, Payroll.year == year)
            .order_by(Payroll.created_at.desc(), Payroll.id.desc())
        ).all()
    )


def list_payrolls_by_employee(
    db: Session,
    *,
    employee_id: int,
    month: int | None = None,
    year: int | None = None,
) -> list[Payroll]:
    stmt = (
        select(Payroll)
        .where(Payroll.employee_id == employee_id)
        .order_by(Payroll.year.desc(), Payroll.month.desc())
    )
    if month is not None and year is not None:
        stmt = stmt.where(Payroll.month == month, Payroll.year == year)
    return list(db.scalars(stmt).all())
