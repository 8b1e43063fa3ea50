from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine, Inspector
from sqlalchemy.exc import SQLAlchemyError

EXPECTED_REVISION = "0001_initial"

REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "branches": {"id", "latitude", "longitude", "radius_m", "timezone"},
    "employees": {"id", "branch_id", "position_id", "annual_leave_quota", "monthly_leave_quota", "hourly_rate"},
    "attendances": {"id", "employee_id", "day_date", "check_in", "check_out", "status"},
    "debts": {"id", "amount", "remaining", "status"},
    "payrolls": {"id", "employee_id", "month", "year", "net_salary"},
    "alembic_version": {"version_num"},
}

# Check-in and payroll generation rely on these to reject concurrent duplicates.
REQUIRED_UNIQUE_CONSTRAINTS: dict[str, str] = {
    "attendances": "uq_attendances_employee_day",
    "payrolls": "uq_payrolls_employee_period",
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "attendance_status": {"PRESENT", "LATE", "ABSENT"},
    "leave_status": {"PENDING", "APPROVED", "REJECTED", "CANCELLED"},
    "debt_status": {"ACTIVE", "PAID", "CANCELLED"},
}


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    revision: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "revision": self.revision,
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


def _joined(values: Iterable[str]) -> str:
    return ",".join(sorted(values))


def _check_columns(inspector: Inspector, issues: list[str]) -> None:
    for table_name, required in REQUIRED_TABLE_COLUMNS.items():
        try:
            present = {str(column.get("name")) for column in inspector.get_columns(table_name)}
        except SQLAlchemyError as exc:
            issues.append(f"TABLE_UNREADABLE:{table_name}:{type(exc).__name__}")
            continue
        missing = required - present
        if missing:
            issues.append(f"MISSING_COLUMNS:{table_name}:{_joined(missing)}")


def _check_unique_constraints(inspector: Inspector, issues: list[str]) -> None:
    for table_name, constraint_name in REQUIRED_UNIQUE_CONSTRAINTS.items():
        try:
            present = {str(item.get("name")) for item in inspector.get_unique_constraints(table_name)}
        except SQLAlchemyError as exc:
            issues.append(f"CONSTRAINTS_UNREADABLE:{table_name}:{type(exc).__name__}")
            continue
        if constraint_name not in present:
            issues.append(f"MISSING_UNIQUE_CONSTRAINT:{table_name}:{constraint_name}")


def _enum_labels(inspector: Inspector, warnings: list[str]) -> dict[str, set[str]]:
    try:
        enums = inspector.get_enums() or []
    except (SQLAlchemyError, NotImplementedError, AttributeError) as exc:
        # Non-PostgreSQL dialects have no named enums to inspect.
        warnings.append(f"ENUM_INSPECTION_FAILED:{type(exc).__name__}")
        return {}
    return {
        str(item["name"]): {str(label) for label in item.get("labels") or []}
        for item in enums
        if item.get("name")
    }


def _check_enums(inspector: Inspector, issues: list[str], warnings: list[str]) -> None:
    labels_by_name = _enum_labels(inspector, warnings)
    for enum_name, required in REQUIRED_ENUM_VALUES.items():
        labels = labels_by_name.get(enum_name)
        if labels is None:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing = required - labels
        if missing:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{_joined(missing)}")


def _current_revision(engine: Engine, issues: list[str], warnings: list[str]) -> str | None:
    try:
        with engine.connect() as connection:
            value = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    except SQLAlchemyError as exc:
        issues.append(f"ALEMBIC_VERSION_CHECK_FAILED:{type(exc).__name__}")
        return None

    revision = str(value).strip() if value is not None else ""
    if not revision:
        issues.append("ALEMBIC_VERSION_EMPTY")
        return None
    if revision != EXPECTED_REVISION:
        warnings.append(f"ALEMBIC_REVISION_MISMATCH:{revision}:{EXPECTED_REVISION}")
    return revision


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    """Inspect the live database for the tables, constraints and enum labels the services need.

    Problems that would break attendance, leave, debt or payroll writes are
    ``issues`` and make the result not ok; anything merely unexpected is a
    ``warning``.
    """
    issues: list[str] = []
    warnings: list[str] = []
    checked_at_utc = datetime.now(timezone.utc)

    inspector = inspect(engine)
    _check_columns(inspector, issues)
    _check_unique_constraints(inspector, issues)
    _check_enums(inspector, issues, warnings)
    revision = _current_revision(engine, issues, warnings)

    return SchemaGuardResult(
        ok=not issues,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
        revision=revision,
    )
