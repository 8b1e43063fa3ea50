from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from hris.errors import conflict, not_found, unprocessable
from hris.models import Employee, Overtime, OvertimeStatus
from hris.schemas import OvertimeCreateRequest

logger = logging.getLogger("hris.overtime")

CENT = Decimal("0.01")


@dataclass(frozen=True)
class OvertimePeriodTotals:
    total_hours: float
    total_amount: Decimal
    overtimes: list[Overtime] = field(default_factory=list)


def overtime_hours(start_time: datetime, end_time: datetime) -> float:
    return (end_time - start_time).total_seconds() / 3600


def _as_decimal(value: Decimal | float | int | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def overtime_amount(
    duration_hours: float,
    hourly_rate: Decimal | float | None,
    rate: Decimal | float,
) -> Decimal:
    """duration x hourly rate x multiplier; a missing hourly rate counts as zero."""
    amount = _as_decimal(duration_hours) * _as_decimal(hourly_rate) * _as_decimal(rate)
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def get_overtime(db: Session, overtime_id: int) -> Overtime:
    overtime = db.get(Overtime, overtime_id)
    if overtime is None:
        raise not_found("OVERTIME_NOT_FOUND", "Overtime request not found.")
    return overtime


def _ensure_pending(overtime: Overtime) -> None:
    if overtime.status != OvertimeStatus.PENDING:
        raise conflict("NOT_PENDING", "Overtime request is not pending.")


def create_overtime_request(db: Session, payload: OvertimeCreateRequest) -> Overtime:
    employee = db.get(Employee, payload.employee_id)
    if employee is None:
        raise not_found("EMPLOYEE_NOT_FOUND", "Employee not found.")
    if payload.end_time <= payload.start_time:
        raise unprocessable("INVALID_RANGE", "Overtime end time must be after start time.")

    overtime = Overtime(
        employee_id=employee.id,
        work_date=payload.work_date,
        start_time=payload.start_time,
        end_time=payload.end_time,
        duration=overtime_hours(payload.start_time, payload.end_time),
        reason=payload.reason,
        status=OvertimeStatus.PENDING,
    )
    db.add(overtime)
    db.commit()
    db.refresh(overtime)
    return overtime


def approve_overtime(db: Session, *, overtime_id: int, rate: Decimal, approver_id: str) -> Overtime:
    overtime = get_overtime(db, overtime_id)
    _ensure_pending(overtime)

    employee = db.get(Employee, overtime.employee_id)
    hourly_rate = employee.hourly_rate if employee is not None else None

    overtime.status = OvertimeStatus.APPROVED
    overtime.rate = rate
    overtime.amount = overtime_amount(overtime.duration, hourly_rate, rate)
    overtime.approved_by = approver_id
    overtime.approved_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(overtime)

    logger.info(
        "overtime_approved",
        extra={
            "overtime_id": overtime.id,
            "employee_id": overtime.employee_id,
            "duration": overtime.duration,
            "rate": str(rate),
            "amount": str(overtime.amount),
            "approved_by": approver_id,
        },
    )
    return overtime


def reject_overtime(db: Session, *, overtime_id: int, approver_id: str) -> Overtime:
    overtime = get_overtime(db, overtime_id)
    _ensure_pending(overtime)

    overtime.status = OvertimeStatus.REJECTED
    overtime.approved_by = approver_id
    overtime.approved_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(overtime)
    return overtime


def list_overtimes(
    db: Session,
    *,
    employee_id: int | None = None,
    status: OvertimeStatus | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Overtime]:
    stmt = select(Overtime).order_by(Overtime.work_date.desc(), Overtime.id.desc())
    if employee_id is not None:
        stmt = stmt.where(Overtime.employee_id == employee_id)
    if status is not None:
        stmt = stmt.where(Overtime.status == status)
    if start_date is not None:
        stmt = stmt.where(Overtime.work_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Overtime.work_date <= end_date)
    return list(db.scalars(stmt).all())


def delete_overtime(db: Session, overtime_id: int) -> None:
    overtime = get_overtime(db, overtime_id)
    db.delete(overtime)
    db.commit()


def approved_overtime_for_period(
    db: Session,
    *,
    employee_id: int,
    start_date: date,
    end_date: date,
) -> OvertimePeriodTotals:
    overtimes = list(
        db.scalars(
            select(Overtime)
            .where(
                Overtime.employee_id == employee_id,
                Overtime.status == OvertimeStatus.APPROVED,
                Overtime.work_date >= start_date,
                Overtime.work_date <= end_date,
            )
            .order_by(Overtime.work_date.asc(), Overtime.id.asc())
        ).all()
    )
    total_hours = sum((item.duration for item in overtimes), 0.0)
    total_amount = sum((item.amount or Decimal("0") for item in overtimes), Decimal("0"))
    return OvertimePeriodTotals(total_hours=total_hours, total_amount=total_amount, overtimes=overtimes)


def overtime_summary(
    db: Session,
    *,
    employee_id: int | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> dict[str, object]:
    filters = []
    if employee_id is not None:
        filters.append(Overtime.employee_id == employee_id)
    if start_date is not None:
        filters.append(Overtime.work_date >= start_date)
    if end_date is not None:
        filters.append(Overtime.work_date <= end_date)

    counts = {item: 0 for item in OvertimeStatus}
    rows = db.execute(
        select(Overtime.status, func.count(Overtime.id)).where(*filters).group_by(Overtime.status)
    ).all()
    for status, count in rows:
        counts[status] = int(count)

    approved_hours, approved_amount = db.execute(
        select(
            func.coalesce(func.sum(Overtime.duration), 0.0),
            func.coalesce(func.sum(Overtime.amount), 0),
        ).where(*filters, Overtime.status == OvertimeStatus.APPROVED)
    ).one()

    return {
        "total": sum(counts.values()),
        "pending": counts[OvertimeStatus.PENDING],
        "approved": counts[OvertimeStatus.APPROVED],
        "rejected": counts[OvertimeStatus.REJECTED],
        "total_hours": float(approved_hours or 0.0),
        "total_amount": Decimal(approved_amount or 0),
    }
