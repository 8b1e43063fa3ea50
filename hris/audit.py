from __future__ import annotations

import enum
import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from hris.models import AuditActorType, AuditLog

logger = logging.getLogger("hris.audit")


class AuditAction(str, enum.Enum):
    ATTENDANCE_CHECKIN = "ATTENDANCE_CHECKIN"
    ATTENDANCE_CHECKOUT = "ATTENDANCE_CHECKOUT"
    ATTENDANCE_CORRECTED = "ATTENDANCE_CORRECTED"
    ATTENDANCE_MANUAL_CREATED = "ATTENDANCE_MANUAL_CREATED"
    LEAVE_REQUESTED = "LEAVE_REQUESTED"
    LEAVE_APPROVED = "LEAVE_APPROVED"
    LEAVE_REJECTED = "LEAVE_REJECTED"
    LEAVE_CANCELLED = "LEAVE_CANCELLED"
    OVERTIME_REQUESTED = "OVERTIME_REQUESTED"
    OVERTIME_APPROVED = "OVERTIME_APPROVED"
    OVERTIME_REJECTED = "OVERTIME_REJECTED"
    OVERTIME_DELETED = "OVERTIME_DELETED"
    DEBTOR_CREATED = "DEBTOR_CREATED"
    DEBTOR_UPDATED = "DEBTOR_UPDATED"
    DEBTOR_DELETED = "DEBTOR_DELETED"
    DEBT_CREATED = "DEBT_CREATED"
    DEBT_UPDATED = "DEBT_UPDATED"
    DEBT_CANCELLED = "DEBT_CANCELLED"
    DEBT_PAYMENT_RECORDED = "DEBT_PAYMENT_RECORDED"
    PAYROLL_GENERATED = "PAYROLL_GENERATED"
    PAYROLL_BULK_GENERATED = "PAYROLL_BULK_GENERATED"
    PAYROLL_APPROVED = "PAYROLL_APPROVED"
    PAYROLL_DELETED = "PAYROLL_DELETED"


def log_audit(
    db: Session,
    *,
    actor_type: AuditActorType,
    actor_id: str,
    action: AuditAction,
    success: bool,
    entity_type: str | None = None,
    entity_id: str | None = None,
    details: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> None:
    """Persist one audit row after the business write has committed.

    A failed audit insert is rolled back and logged; it never undoes or
    fails the operation it describes.
    """
    audit = AuditLog(
        ts_utc=datetime.now(timezone.utc),
        actor_type=actor_type,
        actor_id=actor_id,
        action=action.value,
        entity_type=entity_type,
        entity_id=entity_id,
        success=success,
        details=details or {},
    )
    db.add(audit)
    try:
        db.commit()
    except Exception:
        db.rollback()
        logger.exception(
            "audit_log_write_failed",
            extra={
                "request_id": request_id,
                "action": action.value,
                "actor_id": actor_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
            },
        )
        return

    log = logger.info if success else logger.warning
    log(
        "audit_event",
        extra={
            "request_id": request_id,
            "action": action.value,
            "actor_type": actor_type.value,
            "actor_id": actor_id,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "success": success,
            "details": details or {},
        },
    )


def list_audit_logs(
    db: Session,
    *,
    entity_type: str | None = None,
    entity_id: str | None = None,
    actor_id: str | None = None,
    limit: int = 100,
) -> list[AuditLog]:
    stmt = select(AuditLog).order_by(AuditLog.ts_utc.desc(), AuditLog.id.desc()).limit(limit)
    if entity_type is not None:
        stmt = stmt.where(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        stmt = stmt.where(AuditLog.entity_id == entity_id)
    if actor_id is not None:
        stmt = stmt.where(AuditLog.actor_id == actor_id)
    return list(db.scalars(stmt).all())
