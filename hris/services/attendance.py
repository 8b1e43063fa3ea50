from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from hris.db import is_unique_violation
from hris.errors import conflict, not_found, unprocessable
from hris.models import (
    Attendance,
    AttendanceMethod,
    AttendanceStatus,
    Branch,
    Employee,
    Shift,
)
from hris.schemas import AttendanceCorrectionRequest, AttendanceManualCreateRequest
from hris.services.location import LocationCheck, branch_has_geofence, validate_location
from hris.services.shifts import detect_shift, list_shifts
from hris.settings import get_settings

logger = logging.getLogger("hris.attendance")

ATTENDANCE_DAY_CONSTRAINT = "uq_attendances_employee_day"
MIN_PERIOD_YEAR = 2000
MAX_PERIOD_YEAR = 2100


def _normalize_ts(ts_utc: datetime | None) -> datetime:
    if ts_utc is None:
        return datetime.now(timezone.utc)

    if ts_utc.tzinfo is None:
        return ts_utc.replace(tzinfo=timezone.utc)

    return ts_utc.astimezone(timezone.utc)


@lru_cache
def _default_timezone() -> ZoneInfo:
    raw_name = (get_settings().attendance_timezone or "").strip() or "Asia/Jakarta"
    try:
        return ZoneInfo(raw_name)
    except (ZoneInfoNotFoundError, ValueError):
        return ZoneInfo("Asia/Jakarta")


@lru_cache(maxsize=64)
def _zone_by_name(name: str) -> ZoneInfo | None:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return None


def _branch_timezone(branch: Branch | None) -> ZoneInfo:
    raw_name = (getattr(branch, "timezone", None) or "").strip()
    if raw_name:
        zone = _zone_by_name(raw_name)
        if zone is not None:
            return zone
    return _default_timezone()


def _local_day(ts_utc: datetime, tz: ZoneInfo) -> date:
    return _normalize_ts(ts_utc).astimezone(tz).date()


def _ensure_employee(db: Session, employee_id: int) -> Employee:
    employee = db.get(Employee, employee_id)
    if employee is None:
        raise not_found("EMPLOYEE_NOT_FOUND", "Employee not found.")
    return employee


def _get_attendance_for_day(db: Session, *, employee_id: int, day_date: date) -> Attendance | None:
    return db.scalar(
        select(Attendance).where(
            Attendance.employee_id == employee_id,
            Attendance.day_date == day_date,
        )
    )


def _raise_for_location(check: LocationCheck, branch: Branch | None) -> None:
    if check.valid:
        return
    if not branch_has_geofence(branch):
        raise unprocessable("INVALID_LOCATION", check.error or "Invalid location.")
    raise unprocessable("OUT_OF_GEOFENCE", check.error or "Outside branch geofence.")


def resolve_checkin_status(shift: Shift | None, local_now: datetime) -> AttendanceStatus:
    """LATE when the local clock is past the matched shift's start on the same day."""
    if shift is None:
        return AttendanceStatus.PRESENT
    shift_start = datetime.combine(local_now.date(), shift.start_time, tzinfo=local_now.tzinfo)
    if local_now > shift_start:
        return AttendanceStatus.LATE
    return AttendanceStatus.PRESENT


def worked_hours(check_in: datetime | None, check_out: datetime | None) -> float:
    if check_in is None or check_out is None:
        return 0.0
    return (check_out - check_in).total_seconds() / 3600


def check_in(
    db: Session,
    *,
    employee_id: int,
    lat: float,
    lon: float,
    now_utc: datetime | None = None,
) -> Attendance:
    employee = _ensure_employee(db, employee_id)
    branch = employee.branch
    tz = _branch_timezone(branch)
    now = _normalize_ts(now_utc)
    local_now = now.astimezone(tz)
    day_date = local_now.date()

    if _get_attendance_for_day(db, employee_id=employee.id, day_date=day_date) is not None:
        raise conflict("ALREADY_CHECKED_IN", "You have already checked in today.")

    location_check = validate_location(branch, lat, lon)
    _raise_for_location(location_check, branch)

    shift = detect_shift(list_shifts(db), local_now.time())
    status = resolve_checkin_status(shift, local_now)

    attendance = Attendance(
        employee_id=employee.id,
        day_date=day_date,
        check_in=now,
        check_in_lat=lat,
        check_in_lon=lon,
        method=AttendanceMethod.GPS,
        status=status,
        shift_id=shift.id if shift is not None else None,
    )
    db.add(attendance)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_unique_violation(exc, ATTENDANCE_DAY_CONSTRAINT):
            raise
        # A concurrent check-in for the same day won the unique constraint.
        raise conflict("ALREADY_CHECKED_IN", "You have already checked in today.") from exc
    db.refresh(attendance)

    logger.info(
        "attendance_checkin",
        extra={
            "employee_id": employee.id,
            "attendance_id": attendance.id,
            "day_date": day_date.isoformat(),
            "status": status.value,
            "shift_id": attendance.shift_id,
            "location": location_check.to_flags(),
        },
    )
    return attendance


def check_out(
    db: Session,
    *,
    attendance_id: int,
    lat: float,
    lon: float,
    now_utc: datetime | None = None,
) -> Attendance:
    attendance = db.get(Attendance, attendance_id)
    if attendance is None:
        raise not_found("ATTENDANCE_NOT_FOUND", "Attendance record not found.")
    if attendance.check_out is not None:
        raise conflict("ALREADY_CHECKED_OUT", "You have already checked out.")

    employee = _ensure_employee(db, attendance.employee_id)
    location_check = validate_location(employee.branch, lat, lon)
    _raise_for_location(location_check, employee.branch)

    attendance.check_out = _normalize_ts(now_utc)
    attendance.check_out_lat = lat
    attendance.check_out_lon = lon
    db.commit()
    db.refresh(attendance)

    logger.info(
        "attendance_checkout",
        extra={
            "employee_id": attendance.employee_id,
            "attendance_id": attendance.id,
            "worked_hours": round(worked_hours(attendance.check_in, attendance.check_out), 2),
            "location": location_check.to_flags(),
        },
    )
    return attendance


def correct_attendance(
    db: Session,
    *,
    attendance_id: int,
    payload: AttendanceCorrectionRequest,
) -> Attendance:
    attendance = db.get(Attendance, attendance_id)
    if attendance is None:
        raise not_found("ATTENDANCE_NOT_FOUND", "Attendance record not found.")

    if payload.check_in is not None:
        attendance.check_in = _normalize_ts(payload.check_in)
    if payload.check_out is not None:
        attendance.check_out = _normalize_ts(payload.check_out)
    if payload.status is not None:
        attendance.status = payload.status
    if payload.notes is not None:
        attendance.notes = payload.notes
    attendance.method = AttendanceMethod.MANUAL

    db.commit()
    db.refresh(attendance)
    return attendance


def record_manual_attendance(db: Session, payload: AttendanceManualCreateRequest) -> Attendance:
    employee = _ensure_employee(db, payload.employee_id)
    if _get_attendance_for_day(db, employee_id=employee.id, day_date=payload.day_date) is not None:
        raise conflict("ALREADY_EXISTS", "Attendance for this day already exists.")

    attendance = Attendance(
        employee_id=employee.id,
        day_date=payload.day_date,
        check_in=_normalize_ts(payload.check_in) if payload.check_in is not None else None,
        check_out=_normalize_ts(payload.check_out) if payload.check_out is not None else None,
        method=AttendanceMethod.MANUAL,
        status=payload.status,
        notes=payload.notes,
    )
    db.add(attendance)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if not is_unique_violation(exc, ATTENDANCE_DAY_CONSTRAINT):
            raise
        raise conflict("ALREADY_EXISTS", "Attendance for this day already exists.") from exc
    db.refresh(attendance)
    return attendance


def get_today_attendance(db: Session, *, employee_id: int, now_utc: datetime | None = None) -> Attendance | None:
    employee = _ensure_employee(db, employee_id)
    day_date = _local_day(_normalize_ts(now_utc), _branch_timezone(employee.branch))
    return _get_attendance_for_day(db, employee_id=employee.id, day_date=day_date)


def list_attendance(
    db: Session,
    *,
    employee_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[Attendance]:
    stmt = (
        select(Attendance)
        .where(Attendance.employee_id == employee_id)
        .order_by(Attendance.day_date.desc(), Attendance.id.desc())
    )
    if start_date is not None:
        stmt = stmt.where(Attendance.day_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(Attendance.day_date <= end_date)
    return list(db.scalars(stmt).all())


def list_attendance_by_date(db: Session, *, day_date: date, branch_id: int | None = None) -> list[Attendance]:
    stmt = (
        select(Attendance)
        .options(selectinload(Attendance.employee), selectinload(Attendance.shift))
        .where(Attendance.day_date == day_date)
        .order_by(Attendance.check_in.asc(), Attendance.id.asc())
    )
    if branch_id is not None:
        stmt = stmt.join(Employee, Employee.id == Attendance.employee_id).where(Employee.branch_id == branch_id)
    return list(db.scalars(stmt).all())


def ensure_valid_period(*, year: int, month: int | None = None) -> None:
    if not MIN_PERIOD_YEAR <= year <= MAX_PERIOD_YEAR:
        raise unprocessable(
            "INVALID_PERIOD",
            f"Year must be between {MIN_PERIOD_YEAR} and {MAX_PERIOD_YEAR}.",
        )
    if month is not None and not 1 <= month <= 12:
        raise unprocessable("INVALID_PERIOD", "Month must be between 1 and 12.")


def month_bounds(year: int, month: int) -> tuple[date, date]:
    ensure_valid_period(year=year, month=month)
    start = date(year, month, 1)
    if month == 12:
        next_start = date(year + 1, 1, 1)
    else:
        next_start = date(year, month + 1, 1)
    return start, next_start - timedelta(days=1)


def count_month_statuses(db: Session, *, employee_id: int, year: int, month: int) -> dict[AttendanceStatus, int]:
    start, end = month_bounds(year, month)
    counts = {item: 0 for item in AttendanceStatus}
    rows = db.scalars(
        select(Attendance).where(
            Attendance.employee_id == employee_id,
            Attendance.day_date >= start,
            Attendance.day_date <= end,
        )
    ).all()
    for row in rows:
        counts[row.status] += 1
    return counts


