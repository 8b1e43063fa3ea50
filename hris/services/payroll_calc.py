"""Gross-to-net payroll arithmetic.

Everything here is a pure function of its inputs so a payroll can be
recomputed and compared without touching the database. Amounts are
``Decimal`` rupiah values.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

UNIT = Decimal("1")
CENT = Decimal("0.01")

# (upper bound of taxable annual income, rate); None means no upper bound.
PPH21_BRACKETS: tuple[tuple[Decimal | None, Decimal], ...] = (
    (Decimal("60000000"), Decimal("0.05")),
    (Decimal("250000000"), Decimal("0.15")),
    (Decimal("500000000"), Decimal("0.25")),
    (None, Decimal("0.30")),
)

BPJS_KESEHATAN_EMPLOYEE_RATE = Decimal("0.01")
BPJS_KESEHATAN_EMPLOYER_RATE = Decimal("0.04")
BPJS_KETENAGAKERJAAN_EMPLOYEE_RATE = Decimal("0.02")
BPJS_KETENAGAKERJAAN_EMPLOYER_RATE = Decimal("0.0524")

ABSENT_DEDUCTION_DIVISOR = Decimal("30")


@dataclass(frozen=True)
class Contribution:
    employee: Decimal
    employer: Decimal


@dataclass(frozen=True)
class PayrollInputs:
    basic_salary: Decimal
    position_allowance: Decimal
    transport_allowance: Decimal
    meal_allowance_per_day: Decimal
    late_deduction_per_day: Decimal
    ptkp: Decimal
    bpjs_salary_cap: Decimal
    present_days: int = 0
    late_days: int = 0
    absent_days: int = 0
    overtime_pay: Decimal = Decimal("0")


@dataclass(frozen=True)
class PayrollBreakdown:
    basic_salary: Decimal
    position_allowance: Decimal
    transport_allowance: Decimal
    meal_allowance: Decimal
    overtime_pay: Decimal
    gross_salary: Decimal
    tax: Decimal
    bpjs_kesehatan: Contribution
    bpjs_ketenagakerjaan: Contribution
    late_deduction: Decimal
    absent_deduction: Decimal
    total_deductions: Decimal
    net_salary: Decimal

    @property
    def allowances(self) -> Decimal:
        return self.position_allowance + self.transport_allowance + self.meal_allowance

    @property
    def other_deductions(self) -> Decimal:
        return self.late_deduction + self.absent_deduction


def _round_unit(value: Decimal) -> Decimal:
    return value.quantize(UNIT, rounding=ROUND_HALF_UP)


def annual_tax(taxable_income: Decimal) -> Decimal:
    remaining = max(Decimal("0"), taxable_income)
    lower = Decimal("0")
    total = Decimal("0")
    for upper, rate in PPH21_BRACKETS:
        if remaining <= 0:
            break
        band = remaining if upper is None else min(remaining, upper - lower)
        total += band * rate
        remaining -= band
        if upper is not None:
            lower = upper
    return total


def calculate_tax(gross_salary: Decimal, *, ptkp: Decimal) -> Decimal:
    """Monthly PPh 21 for a single filer: annualize, subtract PTKP, apply brackets, divide by 12."""
    taxable_income = max(Decimal("0"), gross_salary * 12 - ptkp)
    return _round_unit(annual_tax(taxable_income) / 12)


def _capped_contribution(
    basic_salary: Decimal,
    *,
    cap: Decimal,
    employee_rate: Decimal,
    employer_rate: Decimal,
) -> Contribution:
    base = min(basic_salary, cap)
    return Contribution(
        employee=_round_unit(base * employee_rate),
        employer=_round_unit(base * employer_rate),
    )


def calculate_bpjs_kesehatan(basic_salary: Decimal, *, cap: Decimal) -> Contribution:
    return _capped_contribution(
        basic_salary,
        cap=cap,
        employee_rate=BPJS_KESEHATAN_EMPLOYEE_RATE,
        employer_rate=BPJS_KESEHATAN_EMPLOYER_RATE,
    )


def calculate_bpjs_ketenagakerjaan(basic_salary: Decimal, *, cap: Decimal) -> Contribution:
    return _capped_contribution(
        basic_salary,
        cap=cap,
        employee_rate=BPJS_KETENAGAKERJAAN_EMPLOYEE_RATE,
        employer_rate=BPJS_KETENAGAKERJAAN_EMPLOYER_RATE,
    )


def calculate_payroll(inputs: PayrollInputs) -> PayrollBreakdown:
    basic_salary = inputs.basic_salary
    meal_allowance = inputs.meal_allowance_per_day * inputs.present_days
    gross_salary = (
        basic_salary
        + inputs.position_allowance
        + inputs.transport_allowance
        + meal_allowance
        + inputs.overtime_pay
    )

    tax = calculate_tax(gross_salary, ptkp=inputs.ptkp)
    kesehatan = calculate_bpjs_kesehatan(basic_salary, cap=inputs.bpjs_salary_cap)
    ketenagakerjaan = calculate_bpjs_ketenagakerjaan(basic_salary, cap=inputs.bpjs_salary_cap)

    late_deduction = inputs.late_deduction_per_day * inputs.late_days
    absent_deduction = (
        basic_salary / ABSENT_DEDUCTION_DIVISOR * inputs.absent_days
    ).quantize(CENT, rounding=ROUND_HALF_UP)

    # Employer-side BPJS is informational and never leaves the employee's pay.
    total_deductions = tax + kesehatan.employee + ketenagakerjaan.employee + late_deduction + absent_deduction
    net_salary = gross_salary - total_deductions

    return PayrollBreakdown(
        basic_salary=basic_salary,
        position_allowance=inputs.position_allowance,
        transport_allowance=inputs.transport_allowance,
        meal_allowance=meal_allowance,
        overtime_pay=inputs.overtime_pay,
        gross_salary=gross_salary,
        tax=tax,
        bpjs_kesehatan=kesehatan,
        bpjs_ketenagakerjaan=ketenagakerjaan,
        late_deduction=late_deduction,
        absent_deduction=absent_deduction,
        total_deductions=total_deductions,
        net_salary=net_salary,
    )
