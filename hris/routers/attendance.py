from datetime import date, datetime, timezone

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from hris.audit import AuditAction, log_audit
from hris.db import get_db
from hris.errors import ApiError
from hris.models import Attendance, AuditActorType, Debt, DebtPayment
from hris.schemas import (
    AttendanceActionResponse,
    AttendanceCheckinRequest,
    AttendanceCheckoutRequest,
    AttendanceRead,
    DebtDetailRead,
    DebtorBalanceRead,
    DebtorRead,
    DebtPaymentRead,
    DebtRead,
    LeaveBalanceResponse,
    LeaveCancelRequest,
    LeaveCreateRequest,
    LeaveRead,
    LeaveTypeBalance,
    OvertimeCreateRequest,
    OvertimeRead,
    PayrollRead,
)
from hris.services.attendance import (
    check_in,
    check_out,
    get_today_attendance,
    list_attendance,
    worked_hours,
)
from hris.services.debts import DebtorBalance, get_employee_debt, payments_newest_first
from hris.services.leaves import cancel_leave_request, create_leave_request, leave_balance, list_leave_requests
from hris.services.overtime import create_overtime_request
from hris.services.payroll import list_payrolls_by_employee

router = APIRouter(tags=["attendance"])


def attendance_read(attendance: Attendance) -> AttendanceRead:
    read = AttendanceRead.model_validate(attendance)
    return read.model_copy(update={"worked_hours": worked_hours(attendance.check_in, attendance.check_out)})


def debt_detail_read(debt: Debt, payments: list[DebtPayment]) -> DebtDetailRead:
    read = DebtRead.model_validate(debt)
    return DebtDetailRead(
        **read.model_dump(),
        payments=[DebtPaymentRead.model_validate(payment) for payment in payments],
    )


def debtor_balance_read(balance: DebtorBalance) -> DebtorBalanceRead:
    return DebtorBalanceRead(
        debtor=DebtorRead.model_validate(balance.debtor),
        total_debt=balance.total_debt,
        total_remaining=balance.total_remaining,
        debts=[debt_detail_read(debt, payments_newest_first(debt)) for debt in balance.debts],
    )


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@router.post("/api/attendance/checkin", response_model=AttendanceActionResponse)
def checkin(
    payload: AttendanceCheckinRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AttendanceActionResponse:
    request.state.actor_id = str(payload.employee_id)
    request.state.employee_id = payload.employee_id
    try:
        attendance = check_in(db, employee_id=payload.employee_id, lat=payload.lat, lon=payload.lon)
    except ApiError as exc:
        log_audit(
            db,
            actor_type=AuditActorType.EMPLOYEE,
            actor_id=str(payload.employee_id),
            action=AuditAction.ATTENDANCE_CHECKIN,
            success=False,
            details={"code": exc.code, "lat": payload.lat, "lon": payload.lon},
            request_id=_request_id(request),
        )
        raise

    log_audit(
        db,
        actor_type=AuditActorType.EMPLOYEE,
        actor_id=str(attendance.employee_id),
        action=AuditAction.ATTENDANCE_CHECKIN,
        success=True,
        entity_type="attendance",
        entity_id=str(attendance.id),
        details={"status": attendance.status.value, "shift_id": attendance.shift_id},
        request_id=_request_id(request),
    )
    return AttendanceActionResponse(
        attendance=attendance_read(attendance),
        message=f"Checked in as {attendance.status.value}.",
    )


@router.post("/api/attendance/{attendance_id}/checkout", response_model=AttendanceActionResponse)
def checkout(
    attendance_id: int,
    payload: AttendanceCheckoutRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AttendanceActionResponse:
    attendance = check_out(db, attendance_id=attendance_id, lat=payload.lat, lon=payload.lon)
    request.state.actor_id = str(attendance.employee_id)
    request.state.employee_id = attendance.employee_id
    log_audit(
        db,
        actor_type=AuditActorType.EMPLOYEE,
        actor_id=str(attendance.employee_id),
        action=AuditAction.ATTENDANCE_CHECKOUT,
        success=True,
        entity_type="attendance",
        entity_id=str(attendance.id),
        request_id=_request_id(request),
    )
    read = attendance_read(attendance)
    return AttendanceActionResponse(
        attendance=read,
        message=f"Checked out after {read.worked_hours:.2f} hours.",
    )


@router.get("/api/employees/{employee_id}/attendance/today", response_model=AttendanceRead | None)
def today_attendance(employee_id: int, db: Session = Depends(get_db)) -> AttendanceRead | None:
    attendance = get_today_attendance(db, employee_id=employee_id)
    if attendance is None:
        return None
    return attendance_read(attendance)


@router.get("/api/employees/{employee_id}/attendance", response_model=list[AttendanceRead])
def employee_attendance(
    employee_id: int,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[AttendanceRead]:
    rows = list_attendance(db, employee_id=employee_id, start_date=start_date, end_date=end_date)
    return [attendance_read(row) for row in rows]


@router.get("/api/employees/{employee_id}/leave-balance", response_model=LeaveBalanceResponse)
def employee_leave_balance(
    employee_id: int,
    year: int | None = Query(default=None, ge=2000, le=2100),
    db: Session = Depends(get_db),
) -> LeaveBalanceResponse:
    target_year = year or datetime.now(timezone.utc).year
    balance = leave_balance(db, employee_id=employee_id, year=target_year)
    return LeaveBalanceResponse(
        employee_id=balance.employee_id,
        year=balance.year,
        annual=LeaveTypeBalance(
            quota=balance.annual_quota,
            used=balance.used_annual,
            remaining=balance.remaining_annual,
        ),
        monthly=LeaveTypeBalance(
            quota=balance.monthly_quota,
            used=balance.used_monthly,
            remaining=balance.remaining_monthly,
        ),
    )


@router.get("/api/employees/{employee_id}/leaves", response_model=list[LeaveRead])
def employee_leaves(employee_id: int, db: Session = Depends(get_db)) -> list[LeaveRead]:
    return list_leave_requests(db, employee_id=employee_id)


@router.post("/api/leaves", response_model=LeaveRead, status_code=status.HTTP_201_CREATED)
def request_leave(
    payload: LeaveCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveRead:
    request.state.actor_id = str(payload.employee_id)
    leave = create_leave_request(db, payload)
    log_audit(
        db,
        actor_type=AuditActorType.EMPLOYEE,
        actor_id=str(payload.employee_id),
        action=AuditAction.LEAVE_REQUESTED,
        success=True,
        entity_type="leave_request",
        entity_id=str(leave.id),
        details={"leave_type": leave.leave_type.value, "duration": leave.duration},
        request_id=_request_id(request),
    )
    return leave


@router.post("/api/leaves/{leave_id}/cancel", response_model=LeaveRead)
def cancel_leave(
    leave_id: int,
    payload: LeaveCancelRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveRead:
    request.state.actor_id = str(payload.employee_id)
    leave = cancel_leave_request(db, leave_id=leave_id, employee_id=payload.employee_id)
    log_audit(
        db,
        actor_type=AuditActorType.EMPLOYEE,
        actor_id=str(payload.employee_id),
        action=AuditAction.LEAVE_CANCELLED,
        success=True,
        entity_type="leave_request",
        entity_id=str(leave.id),
        request_id=_request_id(request),
    )
    return leave


@router.post("/api/overtimes", response_model=OvertimeRead, status_code=status.HTTP_201_CREATED)
def request_overtime(
    payload: OvertimeCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> OvertimeRead:
    request.state.actor_id = str(payload.employee_id)
    overtime = create_overtime_request(db, payload)
    log_audit(
        db,
        actor_type=AuditActorType.EMPLOYEE,
        actor_id=str(payload.employee_id),
        action=AuditAction.OVERTIME_REQUESTED,
        success=True,
        entity_type="overtime",
        entity_id=str(overtime.id),
        details={"duration": overtime.duration},
        request_id=_request_id(request),
    )
    return overtime


@router.get("/api/employees/{employee_id}/payrolls", response_model=list[PayrollRead])
def employee_payrolls(
    employee_id: int,
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    db: Session = Depends(get_db),
) -> list[PayrollRead]:
    return list_payrolls_by_employee(db, employee_id=employee_id, month=month, year=year)


@router.get("/api/employees/{employee_id}/debt", response_model=DebtorBalanceRead | None)
def employee_debt(employee_id: int, db: Session = Depends(get_db)) -> DebtorBalanceRead | None:
    balance = get_employee_debt(db, employee_id)
    if balance is None:
        return None
    return debtor_balance_read(balance)
