from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from hris.errors import conflict, forbidden, not_found, unprocessable
from hris.models import Employee, LeaveRequest, LeaveStatus, LeaveType
from hris.schemas import LeaveCreateRequest
from hris.services.attendance import ensure_valid_period

logger = logging.getLogger("hris.leaves")

QUOTA_GATED_LEAVE_TYPES = frozenset({LeaveType.ANNUAL, LeaveType.MONTHLY})


@dataclass(frozen=True)
class LeaveBalance:
    employee_id: int
    year: int
    annual_quota: int
    monthly_quota: int
    used_annual: int
    used_monthly: int

    @property
    def remaining_annual(self) -> int:
        return self.annual_quota - self.used_annual

    @property
    def remaining_monthly(self) -> int:
        return self.monthly_quota - self.used_monthly

    def remaining_for(self, leave_type: LeaveType) -> int:
        if leave_type == LeaveType.ANNUAL:
            return self.remaining_annual
        if leave_type == LeaveType.MONTHLY:
            return self.remaining_monthly
        raise ValueError(f"{leave_type.value} leave has no quota")


def working_days(start_date: date, end_date: date) -> int:
    count = 0
    current = start_date
    while current <= end_date:
        # Monday=0 ... Friday=4
        if current.weekday() < 5:
            count += 1
        current += timedelta(days=1)
    return count


def _ensure_employee_exists(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("EMPLOYEE_NOT_FOUND", "Employee not found.")
    return employee


def _get_leave_request(db: Session, leave_id: int) -> LeaveRequest:
    leave = db.get(LeaveRequest, leave_id)
    if leave is None:
        raise not_found("LEAVE_NOT_FOUND", "Leave request not found.")
    return leave


def _ensure_pending(leave: LeaveRequest, message: str = "Leave request is not pending.") -> None:
    if leave.status != LeaveStatus.PENDING:
        raise conflict("NOT_PENDING", message)


def leave_balance(db: Session, *, employee_id: int, year: int) -> LeaveBalance:
    ensure_valid_period(year=year)
    employee = _ensure_employee_exists(db, employee_id)
    approved = db.scalars(
        select(LeaveRequest).where(
            LeaveRequest.employee_id == employee.id,
            LeaveRequest.status == LeaveStatus.APPROVED,
            LeaveRequest.leave_type.in_(tuple(QUOTA_GATED_LEAVE_TYPES)),
            LeaveRequest.start_date >= date(year, 1, 1),
            LeaveRequest.start_date <= date(year, 12, 31),
        )
    ).all()

    used_annual = sum(item.duration for item in approved if item.leave_type == LeaveType.ANNUAL)
    used_monthly = sum(item.duration for item in approved if item.leave_type == LeaveType.MONTHLY)
    return LeaveBalance(
        employee_id=employee.id,
        year=year,
        annual_quota=employee.annual_leave_quota,
        monthly_quota=employee.monthly_leave_quota,
        used_annual=used_annual,
        used_monthly=used_monthly,
    )


def create_leave_request(db: Session, payload: LeaveCreateRequest) -> LeaveRequest:
    employee = _ensure_employee_exists(db, payload.employee_id)

    if payload.start_date > payload.end_date:
        raise unprocessable("INVALID_RANGE", "End date must be on or after start date.")

    duration = working_days(payload.start_date, payload.end_date)

    if payload.leave_type in QUOTA_GATED_LEAVE_TYPES:
        balance = leave_balance(db, employee_id=employee.id, year=payload.start_date.year)
        remaining = balance.remaining_for(payload.leave_type)
        if duration > remaining:
            raise unprocessable(
                "INSUFFICIENT_QUOTA",
                f"Insufficient {payload.leave_type.value.lower()} leave quota. "
                f"You have {remaining} days remaining.",
            )

    leave = LeaveRequest(
        employee_id=employee.id,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        duration=duration,
        reason=payload.reason,
        status=LeaveStatus.PENDING,
    )
    db.add(leave)
    db.commit()
    db.refresh(leave)

    logger.info(
        "leave_request_created",
        extra={
            "employee_id": employee.id,
            "leave_id": leave.id,
            "leave_type": leave.leave_type.value,
            "duration": duration,
        },
    )
    return leave


def approve_leave_request(
    db: Session,
    *,
    leave_id: int,
    approver_id: str,
    notes: str | None = None,
) -> LeaveRequest:
    leave = _get_leave_request(db, leave_id)
    _ensure_pending(leave)

    leave.status = LeaveStatus.APPROVED
    leave.approved_by = approver_id
    leave.approved_at = datetime.now(timezone.utc)
    leave.notes = notes
    db.commit()
    db.refresh(leave)
    return leave


def reject_leave_request(
    db: Session,
    *,
    leave_id: int,
    approver_id: str,
    notes: str | None = None,
) -> LeaveRequest:
    leave = _get_leave_request(db, leave_id)
    _ensure_pending(leave)

    leave.status = LeaveStatus.REJECTED
    leave.approved_by = approver_id
    leave.approved_at = datetime.now(timezone.utc)
    leave.notes = notes
    db.commit()
    db.refresh(leave)
    return leave


def cancel_leave_request(db: Session, *, leave_id: int, employee_id: int) -> LeaveRequest:
    leave = _get_leave_request(db, leave_id)
    if leave.employee_id != employee_id:
        raise forbidden("Only the requesting employee can cancel.")
    _ensure_pending(leave, "Can only cancel pending requests.")

    leave.status = LeaveStatus.CANCELLED
    db.commit()
    db.refresh(leave)
    return leave


def list_leave_requests(
    db: Session,
    *,
    employee_id: int | None = None,
    status: LeaveStatus | None = None,
) -> list[LeaveRequest]:
    stmt = select(LeaveRequest).order_by(LeaveRequest.created_at.desc(), LeaveRequest.id.desc())
    if employee_id is not None:
        stmt = stmt.where(LeaveRequest.employee_id == employee_id)
    if status is not None:
        stmt = stmt.where(LeaveRequest.status == status)
    return list(db.scalars(stmt).all())
