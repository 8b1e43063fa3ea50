from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from hris.audit import AuditAction, list_audit_logs, log_audit
from hris.db import get_db
from hris.models import AuditActorType, DebtorType, DebtStatus, LeaveStatus, OvertimeStatus
from hris.routers.attendance import attendance_read, debt_detail_read, debtor_balance_read
from hris.schemas import (
    AttendanceCorrectionRequest,
    AttendanceManualCreateRequest,
    AttendanceRead,
    AuditLogRead,
    DebtCancelRequest,
    DebtCreateRequest,
    DebtDetailRead,
    DebtorBalanceRead,
    DebtorCreateRequest,
    DebtorRead,
    DebtorUpdateRequest,
    DebtPaymentCreateRequest,
    DebtPaymentRead,
    DebtPaymentResponse,
    DebtRead,
    DebtSummaryResponse,
    DebtUpdateRequest,
    LeaveDecisionRequest,
    LeaveRead,
    OvertimeApproveRequest,
    OvertimeRead,
    OvertimeRejectRequest,
    OvertimeSummaryResponse,
    PayrollApproveRequest,
    PayrollBulkResponse,
    PayrollGenerateRequest,
    PayrollRead,
    SoftDeleteResponse,
)
from hris.services.attendance import correct_attendance, list_attendance_by_date, record_manual_attendance
from hris.services.debts import (
    cancel_debt,
    create_debt,
    create_debtor,
    debt_summary,
    delete_debtor,
    get_debt,
    get_debtor,
    list_debtors,
    list_debts,
    record_payment,
    update_debt,
    update_debtor,
)
from hris.services.leaves import approve_leave_request, list_leave_requests, reject_leave_request
from hris.services.overtime import (
    approve_overtime,
    delete_overtime,
    get_overtime,
    list_overtimes,
    overtime_summary,
    reject_overtime,
)
from hris.services.payroll import (
    approve_payroll,
    delete_payroll,
    generate_bulk_payroll,
    generate_payroll,
    list_payrolls_by_period,
)

router = APIRouter(tags=["admin"])


def _audit_admin(
    db: Session,
    request: Request,
    *,
    actor_id: str,
    action: AuditAction,
    entity_type: str,
    entity_id: int | str,
    details: dict[str, Any] | None = None,
) -> None:
    request.state.actor_id = actor_id
    log_audit(
        db,
        actor_type=AuditActorType.ADMIN,
        actor_id=actor_id,
        action=action,
        success=True,
        entity_type=entity_type,
        entity_id=str(entity_id),
        details=details,
        request_id=getattr(request.state, "request_id", None),
    )


@router.get("/api/admin/attendance", response_model=list[AttendanceRead])
def list_attendance_for_day(
    day_date: date = Query(),
    branch_id: int | None = Query(default=None, ge=1),
    db: Session = Depends(get_db),
) -> list[AttendanceRead]:
    rows = list_attendance_by_date(db, day_date=day_date, branch_id=branch_id)
    return [attendance_read(row) for row in rows]


@router.post("/api/admin/attendance", response_model=AttendanceRead, status_code=status.HTTP_201_CREATED)
def create_manual_attendance(
    payload: AttendanceManualCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AttendanceRead:
    attendance = record_manual_attendance(db, payload)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.ATTENDANCE_MANUAL_CREATED,
        entity_type="attendance",
        entity_id=attendance.id,
        details={
            "employee_id": attendance.employee_id,
            "day_date": attendance.day_date.isoformat(),
            "status": attendance.status.value,
        },
    )
    return attendance_read(attendance)


@router.patch("/api/admin/attendance/{attendance_id}", response_model=AttendanceRead)
def update_attendance(
    attendance_id: int,
    payload: AttendanceCorrectionRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> AttendanceRead:
    attendance = correct_attendance(db, attendance_id=attendance_id, payload=payload)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.ATTENDANCE_CORRECTED,
        entity_type="attendance",
        entity_id=attendance.id,
        details=payload.model_dump(mode="json", exclude={"actor_id"}, exclude_none=True),
    )
    return attendance_read(attendance)


@router.get("/api/admin/leaves", response_model=list[LeaveRead])
def list_leaves(
    employee_id: int | None = Query(default=None, ge=1),
    leave_status: LeaveStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[LeaveRead]:
    return list_leave_requests(db, employee_id=employee_id, status=leave_status)


@router.post("/api/admin/leaves/{leave_id}/approve", response_model=LeaveRead)
def approve_leave(
    leave_id: int,
    payload: LeaveDecisionRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveRead:
    leave = approve_leave_request(db, leave_id=leave_id, approver_id=payload.actor_id, notes=payload.notes)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.LEAVE_APPROVED,
        entity_type="leave_request",
        entity_id=leave.id,
        details={"employee_id": leave.employee_id, "duration": leave.duration},
    )
    return leave


@router.post("/api/admin/leaves/{leave_id}/reject", response_model=LeaveRead)
def reject_leave(
    leave_id: int,
    payload: LeaveDecisionRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> LeaveRead:
    leave = reject_leave_request(db, leave_id=leave_id, approver_id=payload.actor_id, notes=payload.notes)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.LEAVE_REJECTED,
        entity_type="leave_request",
        entity_id=leave.id,
        details={"employee_id": leave.employee_id},
    )
    return leave


@router.get("/api/admin/overtimes", response_model=list[OvertimeRead])
def get_overtimes(
    employee_id: int | None = Query(default=None, ge=1),
    overtime_status: OvertimeStatus | None = Query(default=None, alias="status"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> list[OvertimeRead]:
    return list_overtimes(
        db,
        employee_id=employee_id,
        status=overtime_status,
        start_date=start_date,
        end_date=end_date,
    )


@router.get("/api/admin/overtimes/summary", response_model=OvertimeSummaryResponse)
def get_overtime_summary(
    employee_id: int | None = Query(default=None, ge=1),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
) -> OvertimeSummaryResponse:
    summary = overtime_summary(db, employee_id=employee_id, start_date=start_date, end_date=end_date)
    return OvertimeSummaryResponse(**summary)


@router.get("/api/admin/overtimes/{overtime_id}", response_model=OvertimeRead)
def get_overtime_entry(overtime_id: int, db: Session = Depends(get_db)) -> OvertimeRead:
    return get_overtime(db, overtime_id)


@router.post("/api/admin/overtimes/{overtime_id}/approve", response_model=OvertimeRead)
def approve_overtime_request(
    overtime_id: int,
    payload: OvertimeApproveRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> OvertimeRead:
    overtime = approve_overtime(db, overtime_id=overtime_id, rate=payload.rate, approver_id=payload.actor_id)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.OVERTIME_APPROVED,
        entity_type="overtime",
        entity_id=overtime.id,
        details={"rate": str(payload.rate), "amount": str(overtime.amount)},
    )
    return overtime


@router.post("/api/admin/overtimes/{overtime_id}/reject", response_model=OvertimeRead)
def reject_overtime_request(
    overtime_id: int,
    payload: OvertimeRejectRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> OvertimeRead:
    overtime = reject_overtime(db, overtime_id=overtime_id, approver_id=payload.actor_id)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.OVERTIME_REJECTED,
        entity_type="overtime",
        entity_id=overtime.id,
    )
    return overtime


@router.delete("/api/admin/overtimes/{overtime_id}", response_model=SoftDeleteResponse)
def remove_overtime(
    overtime_id: int,
    request: Request,
    actor_id: str = Query(min_length=1, max_length=255),
    db: Session = Depends(get_db),
) -> SoftDeleteResponse:
    delete_overtime(db, overtime_id)
    _audit_admin(
        db,
        request,
        actor_id=actor_id,
        action=AuditAction.OVERTIME_DELETED,
        entity_type="overtime",
        entity_id=overtime_id,
    )
    return SoftDeleteResponse(id=overtime_id)


@router.get("/api/admin/debtors", response_model=list[DebtorBalanceRead])
def get_debtors(
    debtor_type: DebtorType | None = Query(default=None, alias="type"),
    search: str | None = Query(default=None, max_length=255),
    db: Session = Depends(get_db),
) -> list[DebtorBalanceRead]:
    return [debtor_balance_read(balance) for balance in list_debtors(db, debtor_type=debtor_type, search=search)]


@router.get("/api/admin/debtors/{debtor_id}", response_model=DebtorBalanceRead)
def get_debtor_entry(debtor_id: int, db: Session = Depends(get_db)) -> DebtorBalanceRead:
    return debtor_balance_read(get_debtor(db, debtor_id))


@router.patch("/api/admin/debtors/{debtor_id}", response_model=DebtorRead)
def edit_debtor(
    debtor_id: int,
    payload: DebtorUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> DebtorRead:
    debtor, changes = update_debtor(db, debtor_id, payload)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.DEBTOR_UPDATED,
        entity_type="debtor",
        entity_id=debtor.id,
        details={"fields": sorted(changes)},
    )
    return debtor


@router.post("/api/admin/debtors", response_model=DebtorRead, status_code=status.HTTP_201_CREATED)
def add_debtor(
    payload: DebtorCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> DebtorRead:
    debtor = create_debtor(db, payload)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.DEBTOR_CREATED,
        entity_type="debtor",
        entity_id=debtor.id,
        details={"type": debtor.type.value, "employee_id": debtor.employee_id},
    )
    return debtor


@router.delete("/api/admin/debtors/{debtor_id}", response_model=SoftDeleteResponse)
def remove_debtor(
    debtor_id: int,
    request: Request,
    actor_id: str = Query(min_length=1, max_length=255),
    db: Session = Depends(get_db),
) -> SoftDeleteResponse:
    delete_debtor(db, debtor_id)
    _audit_admin(
        db,
        request,
        actor_id=actor_id,
        action=AuditAction.DEBTOR_DELETED,
        entity_type="debtor",
        entity_id=debtor_id,
    )
    return SoftDeleteResponse(id=debtor_id)


@router.get("/api/admin/debts/summary", response_model=DebtSummaryResponse)
def get_debt_summary(db: Session = Depends(get_db)) -> DebtSummaryResponse:
    return DebtSummaryResponse(**debt_summary(db))


@router.get("/api/admin/debts/{debt_id}", response_model=DebtDetailRead)
def get_debt_entry(debt_id: int, db: Session = Depends(get_db)) -> DebtDetailRead:
    debt, payments = get_debt(db, debt_id)
    return debt_detail_read(debt, payments)


@router.patch("/api/admin/debts/{debt_id}", response_model=DebtRead)
def edit_debt(
    debt_id: int,
    payload: DebtUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> DebtRead:
    debt, changes = update_debt(db, debt_id, payload)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.DEBT_UPDATED,
        entity_type="debt",
        entity_id=debt.id,
        details={
            "fields": sorted(changes),
            "amount": str(debt.amount),
            "remaining": str(debt.remaining),
            "status": debt.status.value,
        },
    )
    return debt


@router.get("/api/admin/debts", response_model=list[DebtRead])
def get_debts(
    debtor_id: int | None = Query(default=None, ge=1),
    debt_status: DebtStatus | None = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[DebtRead]:
    return list_debts(db, debtor_id=debtor_id, status=debt_status)


@router.post("/api/admin/debts", response_model=DebtRead, status_code=status.HTTP_201_CREATED)
def add_debt(
    payload: DebtCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> DebtRead:
    debt = create_debt(db, payload)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.DEBT_CREATED,
        entity_type="debt",
        entity_id=debt.id,
        details={"debtor_id": debt.debtor_id, "amount": str(debt.amount)},
    )
    return debt


@router.post("/api/admin/debts/{debt_id}/cancel", response_model=DebtRead)
def cancel_debt_entry(
    debt_id: int,
    payload: DebtCancelRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> DebtRead:
    debt = cancel_debt(db, debt_id)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.DEBT_CANCELLED,
        entity_type="debt",
        entity_id=debt.id,
    )
    return debt


@router.post(
    "/api/admin/debts/{debt_id}/payments",
    response_model=DebtPaymentResponse,
    status_code=status.HTTP_201_CREATED,
)
def pay_debt(
    debt_id: int,
    payload: DebtPaymentCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> DebtPaymentResponse:
    payment, debt = record_payment(
        db,
        debt_id=debt_id,
        amount=payload.amount,
        method=payload.method,
        payment_date=payload.payment_date,
        notes=payload.notes,
    )
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.DEBT_PAYMENT_RECORDED,
        entity_type="debt_payment",
        entity_id=payment.id,
        details={
            "debt_id": debt.id,
            "amount": str(payment.amount),
            "method": payment.method.value,
            "remaining": str(debt.remaining),
            "status": debt.status.value,
        },
    )
    return DebtPaymentResponse(
        payment=DebtPaymentRead.model_validate(payment),
        debt=DebtRead.model_validate(debt),
    )


@router.get("/api/admin/payrolls", response_model=list[PayrollRead])
def get_payrolls(
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=2000, le=2100),
    db: Session = Depends(get_db),
) -> list[PayrollRead]:
    return list_payrolls_by_period(db, month=month, year=year)


@router.post(
    "/api/admin/employees/{employee_id}/payrolls",
    response_model=PayrollRead,
    status_code=status.HTTP_201_CREATED,
)
def create_payroll(
    employee_id: int,
    payload: PayrollGenerateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> PayrollRead:
    payroll = generate_payroll(db, employee_id=employee_id, month=payload.month, year=payload.year)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.PAYROLL_GENERATED,
        entity_type="payroll",
        entity_id=payroll.id,
        details={
            "employee_id": employee_id,
            "period": f"{payload.year:04d}-{payload.month:02d}",
            "net_salary": str(payroll.net_salary),
        },
    )
    return payroll


@router.post("/api/admin/payrolls/bulk", response_model=PayrollBulkResponse)
def create_bulk_payroll(
    payload: PayrollGenerateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> PayrollBulkResponse:
    result = generate_bulk_payroll(db, month=payload.month, year=payload.year)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.PAYROLL_BULK_GENERATED,
        entity_type="payroll_period",
        entity_id=f"{payload.year:04d}-{payload.month:02d}",
        details={"success_count": result.success_count, "error_count": result.error_count},
    )
    return PayrollBulkResponse(
        month=result.month,
        year=result.year,
        success_count=result.success_count,
        error_count=result.error_count,
        items=result.items,
    )


@router.post("/api/admin/payrolls/{payroll_id}/approve", response_model=PayrollRead)
def approve_payroll_entry(
    payroll_id: int,
    payload: PayrollApproveRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> PayrollRead:
    payroll = approve_payroll(db, payroll_id=payroll_id, approver_id=payload.actor_id)
    _audit_admin(
        db,
        request,
        actor_id=payload.actor_id,
        action=AuditAction.PAYROLL_APPROVED,
        entity_type="payroll",
        entity_id=payroll.id,
    )
    return payroll


@router.delete("/api/admin/payrolls/{payroll_id}", response_model=SoftDeleteResponse)
def remove_payroll(
    payroll_id: int,
    request: Request,
    actor_id: str = Query(min_length=1, max_length=255),
    db: Session = Depends(get_db),
) -> SoftDeleteResponse:
    delete_payroll(db, payroll_id)
    _audit_admin(
        db,
        request,
        actor_id=actor_id,
        action=AuditAction.PAYROLL_DELETED,
        entity_type="payroll",
        entity_id=payroll_id,
    )
    return SoftDeleteResponse(id=payroll_id)


@router.get("/api/admin/audit-logs", response_model=list[AuditLogRead])
def get_audit_logs(
    entity_type: str | None = Query(default=None),
    entity_id: str | None = Query(default=None),
    actor_id: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
) -> list[AuditLogRead]:
    return list_audit_logs(
        db,
        entity_type=entity_type,
        entity_id=entity_id,
        actor_id=actor_id,
        limit=limit,
    )
