"""Initial HRIS schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

employee_status = postgresql.ENUM("ACTIVE", "RESIGNED", "TERMINATED", name="employee_status", create_type=False)
attendance_method = postgresql.ENUM("GPS", "FINGERPRINT", "MANUAL", name="attendance_method", create_type=False)
attendance_status = postgresql.ENUM(
    "PRESENT",
    "LATE",
    "ABSENT",
    "SICK",
    "PERMISSION",
    "LEAVE",
    name="attendance_status",
    create_type=False,
)
leave_type = postgresql.ENUM(
    "ANNUAL",
    "SICK",
    "MONTHLY",
    "UNPAID",
    "EMERGENCY",
    "PERMISSION",
    "OTHER",
    name="leave_type",
    create_type=False,
)
leave_status = postgresql.ENUM("PENDING", "APPROVED", "REJECTED", "CANCELLED", name="leave_status", create_type=False)
overtime_status = postgresql.ENUM("PENDING", "APPROVED", "REJECTED", name="overtime_status", create_type=False)
debtor_type = postgresql.ENUM("EMPLOYEE", "EXTERNAL", name="debtor_type", create_type=False)
debt_status = postgresql.ENUM("ACTIVE", "PAID", "CANCELLED", name="debt_status", create_type=False)
payment_method = postgresql.ENUM(
    "CASH",
    "TRANSFER",
    "SALARY_DEDUCTION",
    "OTHER",
    name="payment_method",
    create_type=False,
)
payroll_status = postgresql.ENUM("PENDING", "APPROVED", name="payroll_status", create_type=False)
audit_actor_type = postgresql.ENUM("ADMIN", "EMPLOYEE", "SYSTEM", name="audit_actor_type", create_type=False)

ALL_ENUMS = (
    employee_status,
    attendance_method,
    attendance_status,
    leave_type,
    leave_status,
    overtime_status,
    debtor_type,
    debt_status,
    payment_method,
    payroll_status,
    audit_actor_type,
)


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("CURRENT_TIMESTAMP"),
    )


def _money(name: str, *, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.Numeric(14, 2), nullable=nullable)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "branches",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("address", sa.String(length=1000), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("radius_m", sa.Integer(), nullable=False, server_default=sa.text("100")),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default=sa.text("'Asia/Jakarta'")),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.UniqueConstraint("name", name="uq_branches_name"),
        sa.CheckConstraint("radius_m >= 1", name="ck_branches_radius_positive"),
    )

    op.create_table(
        "positions",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        _money("base_salary", nullable=True),
        _money("allowance", nullable=True),
    )

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_code", sa.String(length=64), nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("join_date", sa.Date(), nullable=False),
        sa.Column("branch_id", sa.Integer(), nullable=False),
        sa.Column("position_id", sa.Integer(), nullable=True),
        sa.Column("status", employee_status, nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("annual_leave_quota", sa.Integer(), nullable=False, server_default=sa.text("12")),
        sa.Column("monthly_leave_quota", sa.Integer(), nullable=False, server_default=sa.text("1")),
        _money("hourly_rate", nullable=True),
        sa.ForeignKeyConstraint(["branch_id"], ["branches.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["position_id"], ["positions.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("employee_code", name="uq_employees_employee_code"),
    )
    op.create_index("ix_employees_branch_id", "employees", ["branch_id"])

    op.create_table(
        "shifts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("start_time", sa.Time(timezone=False), nullable=False),
        sa.Column("end_time", sa.Time(timezone=False), nullable=False),
        sa.Column("break_minutes", sa.Integer(), nullable=False, server_default=sa.text("60")),
        sa.Column("is_overnight", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("color", sa.String(length=16), nullable=True),
        _created_at(),
        sa.UniqueConstraint("name", name="uq_shifts_name"),
    )

    op.create_table(
        "attendances",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("check_in", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_in_lat", sa.Float(), nullable=True),
        sa.Column("check_in_lon", sa.Float(), nullable=True),
        sa.Column("check_out", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_out_lat", sa.Float(), nullable=True),
        sa.Column("check_out_lon", sa.Float(), nullable=True),
        sa.Column("method", attendance_method, nullable=False, server_default=sa.text("'GPS'")),
        sa.Column("status", attendance_status, nullable=False),
        sa.Column("shift_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        _created_at(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["shift_id"], ["shifts.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_attendances_employee_day"),
    )
    op.create_index("ix_attendances_employee_id", "attendances", ["employee_id"])
    op.create_index("ix_attendances_day_date", "attendances", ["day_date"])

    op.create_table(
        "leave_requests",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("leave_type", leave_type, nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=False),
        sa.Column("status", leave_status, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_leave_requests_employee_id", "leave_requests", ["employee_id"])

    op.create_table(
        "overtimes",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("work_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration", sa.Float(), nullable=False),
        sa.Column("reason", sa.String(length=1000), nullable=True),
        sa.Column("status", overtime_status, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("rate", sa.Numeric(6, 2), nullable=True),
        _money("amount", nullable=True),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
    )
    op.create_index("ix_overtimes_employee_id", "overtimes", ["employee_id"])
    op.create_index("ix_overtimes_work_date", "overtimes", ["work_date"])

    op.create_table(
        "debtors",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("address", sa.String(length=1000), nullable=True),
        sa.Column("type", debtor_type, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("employee_id", name="uq_debtors_employee_id"),
    )

    op.create_table(
        "debts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("debtor_id", sa.Integer(), nullable=False),
        _money("amount"),
        _money("remaining"),
        sa.Column("status", debt_status, nullable=False, server_default=sa.text("'ACTIVE'")),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["debtor_id"], ["debtors.id"], ondelete="CASCADE"),
        sa.CheckConstraint("remaining >= 0 AND remaining <= amount", name="ck_debts_remaining_bounds"),
    )
    op.create_index("ix_debts_debtor_id", "debts", ["debtor_id"])

    op.create_table(
        "debt_payments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("debt_id", sa.Integer(), nullable=False),
        _money("amount"),
        sa.Column("method", payment_method, nullable=False),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.String(length=1000), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["debt_id"], ["debts.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_debt_payments_debt_id", "debt_payments", ["debt_id"])

    op.create_table(
        "payrolls",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        _money("basic_salary"),
        _money("allowances"),
        _money("overtime"),
        _money("gross_salary"),
        _money("tax"),
        _money("bpjs_kesehatan"),
        _money("bpjs_ketenagakerjaan"),
        _money("bpjs_kesehatan_employer"),
        _money("bpjs_ketenagakerjaan_employer"),
        _money("other_deductions"),
        _money("total_deductions"),
        _money("net_salary"),
        sa.Column("status", payroll_status, nullable=False, server_default=sa.text("'PENDING'")),
        sa.Column("approved_by", sa.String(length=255), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("employee_id", "month", "year", name="uq_payrolls_employee_period"),
    )
    op.create_index("ix_payrolls_employee_id", "payrolls", ["employee_id"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "ts_utc",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "details",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_payrolls_employee_id", table_name="payrolls")
    op.drop_table("payrolls")
    op.drop_index("ix_debt_payments_debt_id", table_name="debt_payments")
    op.drop_table("debt_payments")
    op.drop_index("ix_debts_debtor_id", table_name="debts")
    op.drop_table("debts")
    op.drop_table("debtors")
    op.drop_index("ix_overtimes_work_date", table_name="overtimes")
    op.drop_index("ix_overtimes_employee_id", table_name="overtimes")
    op.drop_table("overtimes")
    op.drop_index("ix_leave_requests_employee_id", table_name="leave_requests")
    op.drop_table("leave_requests")
    op.drop_index("ix_attendances_day_date", table_name="attendances")
    op.drop_index("ix_attendances_employee_id", table_name="attendances")
    op.drop_table("attendances")
    op.drop_table("shifts")
    op.drop_index("ix_employees_branch_id", table_name="employees")
    op.drop_table("employees")
    op.drop_table("positions")
    op.drop_table("branches")

    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
