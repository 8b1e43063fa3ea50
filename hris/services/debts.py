from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from hris.errors import conflict, not_found, unprocessable
from hris.models import Debt, DebtPayment, Debtor, DebtorType, DebtStatus, Employee, PaymentMethod
from hris.schemas import DebtCreateRequest, DebtorCreateRequest, DebtorUpdateRequest, DebtUpdateRequest

logger = logging.getLogger("hris.debts")

ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class DebtorBalance:
    debtor: Debtor
    total_debt: Decimal
    total_remaining: Decimal
    debts: list[Debt] = field(default_factory=list)


def payments_newest_first(debt: Debt) -> list[DebtPayment]:
    return sorted(debt.payments, key=lambda payment: (payment.payment_date, payment.id or 0), reverse=True)


def _balance(debtor: Debtor, *, active_only: bool) -> DebtorBalance:
    """Totals always cover active debts; ``active_only`` decides which debts are listed."""
    active = [debt for debt in debtor.debts if debt.status == DebtStatus.ACTIVE]
    return DebtorBalance(
        debtor=debtor,
        total_debt=sum((debt.amount for debt in active), ZERO),
        total_remaining=sum((debt.remaining for debt in active), ZERO),
        debts=active if active_only else list(debtor.debts),
    )


def _get_debtor(db: Session, debtor_id: int) -> Debtor:
    debtor = db.get(Debtor, debtor_id)
    if debtor is None:
        raise not_found("DEBTOR_NOT_FOUND", "Debtor not found.")
    return debtor


def _get_debt(db: Session, debt_id: int, *, for_update: bool = False) -> Debt:
    if for_update:
        debt = db.scalar(select(Debt).where(Debt.id == debt_id).with_for_update())
    else:
        debt = db.get(Debt, debt_id)
    if debt is None:
        raise not_found("DEBT_NOT_FOUND", "Debt not found.")
    return debt


def create_debtor(db: Session, payload: DebtorCreateRequest) -> Debtor:
    if payload.employee_id is not None and db.get(Employee, payload.employee_id) is None:
        raise not_found("EMPLOYEE_NOT_FOUND", "Employee not found.")

    debtor = Debtor(
        name=payload.name,
        type=payload.type,
        phone=payload.phone,
        email=payload.email,
        address=payload.address,
        employee_id=payload.employee_id if payload.type == DebtorType.EMPLOYEE else None,
    )
    db.add(debtor)
    db.commit()
    db.refresh(debtor)
    return debtor


def delete_debtor(db: Session, debtor_id: int) -> None:
    """Remove a debtor with every debt and payment recorded against it."""
    debtor = _get_debtor(db, debtor_id)
    db.delete(debtor)
    db.commit()
    logger.warning("debtor_deleted", extra={"debtor_id": debtor_id})


def list_debtors(
    db: Session,
    *,
    debtor_type: DebtorType | None = None,
    search: str | None = None,
) -> list[DebtorBalance]:
    stmt = (
        select(Debtor)
        .options(selectinload(Debtor.debts).selectinload(Debt.payments))
        .order_by(Debtor.created_at.desc(), Debtor.id.desc())
    )
    if debtor_type is not None:
        stmt = stmt.where(Debtor.type == debtor_type)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(Debtor.name.ilike(pattern), Debtor.phone.ilike(pattern), Debtor.email.ilike(pattern))
        )
    return [_balance(debtor, active_only=True) for debtor in db.scalars(stmt).all()]


def get_debtor(db: Session, debtor_id: int) -> DebtorBalance:
    return _balance(_get_debtor(db, debtor_id), active_only=False)


def get_employee_debt(db: Session, employee_id: int) -> DebtorBalance | None:
    """Active debts of the debtor linked to ``employee_id``, or None when the employee owes nothing."""
    if db.get(Employee, employee_id) is None:
        raise not_found("EMPLOYEE_NOT_FOUND", "Employee not found.")
    debtor = db.scalar(
        select(Debtor)
        .options(selectinload(Debtor.debts).selectinload(Debt.payments))
        .where(Debtor.employee_id == employee_id)
    )
    if debtor is None:
        return None
    return _balance(debtor, active_only=True)


def update_debtor(db: Session, debtor_id: int, payload: DebtorUpdateRequest) -> tuple[Debtor, dict[str, object]]:
    debtor = _get_debtor(db, debtor_id)
    changes = payload.model_dump(exclude_unset=True, exclude={"actor_id"})
    for key, value in changes.items():
        setattr(debtor, key, value)
    db.commit()
    db.refresh(debtor)
    return debtor, changes


def create_debt(db: Session, payload: DebtCreateRequest) -> Debt:
    debtor = _get_debtor(db, payload.debtor_id)
    debt = Debt(
        debtor_id=debtor.id,
        amount=payload.amount,
        remaining=payload.amount,
        status=DebtStatus.ACTIVE,
        due_date=payload.due_date,
        description=payload.description,
    )
    db.add(debt)
    db.commit()
    db.refresh(debt)
    return debt


def get_debt(db: Session, debt_id: int) -> tuple[Debt, list[DebtPayment]]:
    debt = _get_debt(db, debt_id)
    return debt, payments_newest_first(debt)


def update_debt(db: Session, debt_id: int, payload: DebtUpdateRequest) -> tuple[Debt, dict[str, object]]:
    """Edit a debt while keeping what has already been paid fixed.

    Changing ``amount`` moves ``remaining`` by the same delta. ``PAID`` is only
    ever reached through payments, so it cannot be requested here; an explicit
    ``ACTIVE`` needs something left to pay.
    """
    changes = payload.model_dump(exclude_unset=True, exclude={"actor_id"})
    try:
        debt = _get_debt(db, debt_id, for_update=True)

        if "amount" in changes:
            paid = debt.amount - debt.remaining
            new_amount = changes["amount"]
            if new_amount < paid:
                raise unprocessable(
                    "INVALID_AMOUNT",
                    f"Debt amount cannot be lower than the {paid} already paid.",
                )
            debt.amount = new_amount
            debt.remaining = new_amount - paid

        if "status" in changes:
            target = changes["status"]
            if target == DebtStatus.PAID:
                raise unprocessable("INVALID_STATUS", "Debts become paid by recording payments.")
            if target == DebtStatus.ACTIVE and debt.remaining == ZERO:
                raise unprocessable("INVALID_STATUS", "A fully paid debt cannot be reactivated.")
            debt.status = target
        elif "amount" in changes and debt.status != DebtStatus.CANCELLED:
            debt.status = DebtStatus.PAID if debt.remaining == ZERO else DebtStatus.ACTIVE

        for key in ("due_date", "description"):
            if key in changes:
                setattr(debt, key, changes[key])

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(debt)
    return debt, changes


def cancel_debt(db: Session, debt_id: int) -> Debt:
    debt = _get_debt(db, debt_id)
    if debt.status != DebtStatus.ACTIVE:
        raise conflict("DEBT_NOT_ACTIVE", "Only active debts can be cancelled.")
    debt.status = DebtStatus.CANCELLED
    db.commit()
    db.refresh(debt)
    return debt


def list_debts(
    db: Session,
    *,
    debtor_id: int | None = None,
    status: DebtStatus | None = None,
) -> list[Debt]:
    stmt = select(Debt).order_by(Debt.created_at.desc(), Debt.id.desc())
    if debtor_id is not None:
        stmt = stmt.where(Debt.debtor_id == debtor_id)
    if status is not None:
        stmt = stmt.where(Debt.status == status)
    return list(db.scalars(stmt).all())


def record_payment(
    db: Session,
    *,
    debt_id: int,
    amount: Decimal,
    method: PaymentMethod,
    payment_date: datetime | None = None,
    notes: str | None = None,
) -> tuple[DebtPayment, Debt]:
    if amount <= ZERO:
        raise unprocessable("INVALID_AMOUNT", "Payment amount must be greater than zero.")

    try:
        # Row lock serializes concurrent payments against the same debt.
        debt = _get_debt(db, debt_id, for_update=True)
        if debt.status != DebtStatus.ACTIVE:
            raise conflict("DEBT_NOT_ACTIVE", f"Debt is {debt.status.value.lower()}.")
        if amount > debt.remaining:
            raise unprocessable(
                "AMOUNT_EXCEEDS_REMAINING",
                f"Payment amount exceeds remaining debt of {debt.remaining}.",
            )

        payment = DebtPayment(
            debt_id=debt.id,
            amount=amount,
            method=method,
            payment_date=payment_date or datetime.now(timezone.utc),
            notes=notes,
        )
        db.add(payment)

        debt.remaining = debt.remaining - amount
        if debt.remaining == ZERO:
            debt.status = DebtStatus.PAID

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payment)
    db.refresh(debt)
    logger.info(
        "debt_payment_recorded",
        extra={
            "debt_id": debt.id,
            "payment_id": payment.id,
            "amount": str(amount),
            "remaining": str(debt.remaining),
            "status": debt.status.value,
        },
    )
    return payment, debt


def debt_summary(db: Session, *, today: date | None = None) -> dict[str, object]:
    reference_day = today or datetime.now(timezone.utc).date()
    total_debtors = db.scalar(select(func.count(Debtor.id))) or 0
    active_filter = Debt.status == DebtStatus.ACTIVE

    active_debts, total_debt, total_remaining = db.execute(
        select(
            func.count(Debt.id),
            func.coalesce(func.sum(Debt.amount), 0),
            func.coalesce(func.sum(Debt.remaining), 0),
        ).where(active_filter)
    ).one()
    overdue_debts = db.scalar(
        select(func.count(Debt.id)).where(active_filter, Debt.due_date < reference_day)
    ) or 0

    total_debt = Decimal(total_debt or 0)
    total_remaining = Decimal(total_remaining or 0)
    return {
        "total_debtors": int(total_debtors),
        "active_debts": int(active_debts or 0),
        "total_debt": total_debt,
        "total_paid": total_debt - total_remaining,
        "total_remaining": total_remaining,
        "overdue_debts": int(overdue_debts),
    }
