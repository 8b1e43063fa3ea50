from datetime import date, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from hris.models import (
    AttendanceMethod,
    AttendanceStatus,
    AuditActorType,
    DebtorType,
    DebtStatus,
    LeaveStatus,
    LeaveType,
    OvertimeStatus,
    PaymentMethod,
    PayrollStatus,
)


class Coordinates(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lon: float = Field(ge=-180, le=180)


class AttendanceCheckinRequest(Coordinates):
    employee_id: int = Field(ge=1)


class AttendanceCheckoutRequest(Coordinates):
    pass


class AttendanceCorrectionRequest(BaseModel):
    check_in: datetime | None = None
    check_out: datetime | None = None
    status: AttendanceStatus | None = None
    notes: str | None = Field(default=None, max_length=1000)
    actor_id: str = Field(min_length=1, max_length=255)


class AttendanceManualCreateRequest(BaseModel):
    employee_id: int = Field(ge=1)
    day_date: date
    status: AttendanceStatus
    check_in: datetime | None = None
    check_out: datetime | None = None
    notes: str | None = Field(default=None, max_length=1000)
    actor_id: str = Field(min_length=1, max_length=255)

    @model_validator(mode="after")
    def validate_timestamps(self) -> "AttendanceManualCreateRequest":
        if self.check_in is not None and self.check_out is not None and self.check_out < self.check_in:
            raise ValueError("check_out must be greater than or equal to check_in")
        return self


class AttendanceRead(BaseModel):
    id: int
    employee_id: int
    day_date: date
    check_in: datetime | None
    check_in_lat: float | None
    check_in_lon: float | None
    check_out: datetime | None
    check_out_lat: float | None
    check_out_lon: float | None
    method: AttendanceMethod
    status: AttendanceStatus
    shift_id: int | None
    notes: str | None
    worked_hours: float = 0.0

    model_config = ConfigDict(from_attributes=True)


class AttendanceActionResponse(BaseModel):
    attendance: AttendanceRead
    message: str


class LeaveCreateRequest(BaseModel):
    employee_id: int = Field(ge=1)
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(min_length=1, max_length=1000)


class LeaveDecisionRequest(BaseModel):
    actor_id: str = Field(min_length=1, max_length=255)
    notes: str | None = Field(default=None, max_length=1000)


class LeaveCancelRequest(BaseModel):
    employee_id: int = Field(ge=1)


class LeaveRead(BaseModel):
    id: int
    employee_id: int
    leave_type: LeaveType
    start_date: date
    end_date: date
    duration: int
    reason: str
    status: LeaveStatus
    approved_by: str | None
    approved_at: datetime | None
    notes: str | None

    model_config = ConfigDict(from_attributes=True)


class LeaveTypeBalance(BaseModel):
    quota: int
    used: int
    remaining: int


class LeaveBalanceResponse(BaseModel):
    employee_id: int
    year: int
    annual: LeaveTypeBalance
    monthly: LeaveTypeBalance


class OvertimeCreateRequest(BaseModel):
    employee_id: int = Field(ge=1)
    work_date: date
    start_time: datetime
    end_time: datetime
    reason: str | None = Field(default=None, max_length=1000)


class OvertimeApproveRequest(BaseModel):
    rate: Decimal = Field(gt=0, max_digits=6, decimal_places=2)
    actor_id: str = Field(min_length=1, max_length=255)


class OvertimeRejectRequest(BaseModel):
    actor_id: str = Field(min_length=1, max_length=255)


class OvertimeRead(BaseModel):
    id: int
    employee_id: int
    work_date: date
    start_time: datetime
    end_time: datetime
    duration: float
    reason: str | None
    status: OvertimeStatus
    rate: Decimal | None
    amount: Decimal | None
    approved_by: str | None
    approved_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class OvertimeSummaryResponse(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    total_hours: float
    total_amount: Decimal


class DebtorCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: DebtorType
    phone: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    address: str | None = Field(default=None, max_length=1000)
    employee_id: int | None = Field(default=None, ge=1)
    actor_id: str = Field(min_length=1, max_length=255)

    @model_validator(mode="after")
    def validate_employee_link(self) -> "DebtorCreateRequest":
        if self.type == DebtorType.EMPLOYEE and self.employee_id is None:
            raise ValueError("employee_id is required for EMPLOYEE debtors")
        return self


class DebtorRead(BaseModel):
    id: int
    name: str
    type: DebtorType
    phone: str | None
    email: str | None
    address: str | None
    employee_id: int | None

    model_config = ConfigDict(from_attributes=True)


class DebtorUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=64)
    email: str | None = Field(default=None, max_length=255)
    address: str | None = Field(default=None, max_length=1000)
    actor_id: str = Field(min_length=1, max_length=255)

    @model_validator(mode="after")
    def validate_name(self) -> "DebtorUpdateRequest":
        if "name" in self.model_fields_set and self.name is None:
            raise ValueError("name cannot be cleared")
        return self


class DebtCreateRequest(BaseModel):
    debtor_id: int = Field(ge=1)
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    due_date: date | None = None
    description: str | None = None
    actor_id: str = Field(min_length=1, max_length=255)


class DebtUpdateRequest(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0, max_digits=14, decimal_places=2)
    due_date: date | None = None
    description: str | None = None
    status: DebtStatus | None = None
    actor_id: str = Field(min_length=1, max_length=255)

    @model_validator(mode="after")
    def validate_required_fields(self) -> "DebtUpdateRequest":
        for name in ("amount", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be cleared")
        return self


class DebtCancelRequest(BaseModel):
    actor_id: str = Field(min_length=1, max_length=255)


class DebtRead(BaseModel):
    id: int
    debtor_id: int
    amount: Decimal
    remaining: Decimal
    status: DebtStatus
    due_date: date | None
    description: str | None

    model_config = ConfigDict(from_attributes=True)


class DebtPaymentCreateRequest(BaseModel):
    amount: Decimal = Field(max_digits=14, decimal_places=2)
    method: PaymentMethod
    payment_date: datetime | None = None
    notes: str | None = Field(default=None, max_length=1000)
    actor_id: str = Field(min_length=1, max_length=255)


class DebtPaymentRead(BaseModel):
    id: int
    debt_id: int
    amount: Decimal
    method: PaymentMethod
    payment_date: datetime
    notes: str | None

    model_config = ConfigDict(from_attributes=True)


class DebtDetailRead(DebtRead):
    payments: list[DebtPaymentRead] = Field(default_factory=list)


class DebtorBalanceRead(BaseModel):
    debtor: DebtorRead
    total_debt: Decimal
    total_remaining: Decimal
    debts: list[DebtDetailRead] = Field(default_factory=list)


class DebtPaymentResponse(BaseModel):
    payment: DebtPaymentRead
    debt: DebtRead


class DebtSummaryResponse(BaseModel):
    total_debtors: int
    active_debts: int
    total_debt: Decimal
    total_paid: Decimal
    total_remaining: Decimal
    overdue_debts: int


class PayrollGenerateRequest(BaseModel):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000, le=2100)
    actor_id: str = Field(min_length=1, max_length=255)


class PayrollApproveRequest(BaseModel):
    actor_id: str = Field(min_length=1, max_length=255)


class PayrollRead(BaseModel):
    id: int
    employee_id: int
    month: int
    year: int
    basic_salary: Decimal
    allowances: Decimal
    overtime: Decimal
    gross_salary: Decimal
    tax: Decimal
    bpjs_kesehatan: Decimal
    bpjs_ketenagakerjaan: Decimal
    bpjs_kesehatan_employer: Decimal
    bpjs_ketenagakerjaan_employer: Decimal
    other_deductions: Decimal
    total_deductions: Decimal
    net_salary: Decimal
    status: PayrollStatus
    approved_by: str | None
    paid_at: datetime | None

    model_config = ConfigDict(from_attributes=True)


class PayrollBulkItem(BaseModel):
    employee_id: int
    success: bool
    payroll_id: int | None = None
    error_code: str | None = None
    error_message: str | None = None


class PayrollBulkResponse(BaseModel):
    month: int
    year: int
    success_count: int
    error_count: int
    items: list[PayrollBulkItem] = Field(default_factory=list)


class SoftDeleteResponse(BaseModel):
    ok: bool = True
    id: int


class AuditLogRead(BaseModel):
    id: int
    ts_utc: datetime
    actor_type: AuditActorType
    actor_id: str
    action: str
    entity_type: str | None
    entity_id: str | None
    success: bool
    details: dict[str, Any]

    model_config = ConfigDict(from_attributes=True)
