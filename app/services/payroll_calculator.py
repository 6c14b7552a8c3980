"""
ISP Manager - Payroll Calculator

Pure monthly salary calculation from attendance and loans. No database
access; the payroll run feeds it rows it has already loaded.

Rules:
- Working days: calendar days of the month that are not weekend days
  (Saturday and Sunday unless configured otherwise)
- Absent days: working days minus present, late, leave and half-day
  records (not clamped; more records than working days gives a
  negative count and a negative deduction)
- Daily rate: monthly salary / working days
- Deductions: absent days x daily rate, late days x 25% of daily rate,
  half days x 50% of daily rate
- Overtime: hours x (daily rate / 8) x 1.5
- Loan deduction: monthly deduction of every approved loan with a
  remaining balance
- Net salary: salary - deductions + overtime, never below zero

Every money figure is rounded half-up to a whole currency unit.
"""

import calendar
import re
from dataclasses import dataclass, asdict
from datetime import date
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Dict, Iterable, Optional, Tuple

from app.models.payroll import AttendanceStatus, LoanStatus
from app.utils.error_handling import ErrorCode, ValidationException


DEFAULT_WEEKEND_DAYS = frozenset({5, 6})  # Saturday, Sunday (date.weekday())

LATE_PENALTY_RATE = Decimal("0.25")
HALF_DAY_PENALTY_RATE = Decimal("0.5")
OVERTIME_MULTIPLIER = Decimal("1.5")
HOURS_PER_DAY = Decimal("8")

MONTH_PATTERN = re.compile(r"^(\d{4})-(0[1-9]|1[0-2])$")


# ===========================================
# HELPERS
# ===========================================

def round_half_up(value: Decimal) -> Decimal:
    """
    Round to a whole unit, halves toward positive infinity.

    2.5 -> 3 and -2.5 -> -2, matching how the dashboard has always
    rounded salary figures.
    """
    return (value + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR)


def parse_month(month: str) -> Tuple[int, int]:
    """Parse a YYYY-MM string into (year, month)."""
    match = MONTH_PATTERN.match(month or "")
    if not match:
        raise ValidationException(
            f"Invalid month '{month}'. Expected format YYYY-MM",
            field="month",
            code=ErrorCode.INVALID_FORMAT,
        )
    return int(match.group(1)), int(match.group(2))


def month_bounds(month: str) -> Tuple[date, date]:
    """First and last calendar day of a YYYY-MM month."""
    year, month_number = parse_month(month)
    last_day = calendar.monthrange(year, month_number)[1]
    return date(year, month_number, 1), date(year, month_number, last_day)


def _field(row: Any, name: str, default: Any = None) -> Any:
    """Read a field from an ORM row or a plain mapping."""
    if isinstance(row, dict):
        return row.get(name, default)
    return getattr(row, name, default)


def _row_date(row: Any) -> Optional[date]:
    value = _field(row, "attendance_date") or _field(row, "date")
    if isinstance(value, str):
        value = date.fromisoformat(value[:10])
    return value


def _decimal(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


# ===========================================
# RESULT
# ===========================================

@dataclass
class SalaryBreakdown:
    """Calculated salary for one staff member for one month."""
    basic_salary: Decimal
    gross_salary: Decimal
    working_days: int
    present_days: int  # present + late
    absent_days: int
    late_days: int
    leave_days: int
    half_days: int
    daily_rate: Decimal
    absent_deduction: Decimal
    late_deduction: Decimal  # late + half-day
    overtime_hours: Decimal
    overtime_pay: Decimal
    loan_deduction: Decimal
    total_deductions: Decimal
    net_salary: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ===========================================
# CALCULATOR
# ===========================================

class PayrollCalculator:
    """
    Monthly salary calculator.

    Usage:
        calculator = PayrollCalculator()
        breakdown = calculator.calculate(Decimal("30000"), "2024-04", attendance, loans)
    """

    def __init__(self, weekend_days: Optional[Iterable[int]] = None):
        self.weekend_days = frozenset(weekend_days) if weekend_days is not None else DEFAULT_WEEKEND_DAYS

    def is_working_day(self, day: date) -> bool:
        return day.weekday() not in self.weekend_days

    def working_days(self, month: str) -> int:
        """Count the non-weekend days of a YYYY-MM month."""
        first, last = month_bounds(month)
        return sum(
            1
            for day_number in range(first.day, last.day + 1)
            if self.is_working_day(first.replace(day=day_number))
        )

    def calculate(
        self,
        salary: Any,
        month: str,
        attendance: Iterable[Any],
        loans: Iterable[Any] = (),
    ) -> SalaryBreakdown:
        """
        Calculate the salary breakdown for one staff member.

        Args:
            salary: Monthly base salary
            month: Pay month as YYYY-MM
            attendance: The staff member's attendance rows; rows outside
                the month are ignored
            loans: The staff member's loans

        Returns:
            SalaryBreakdown
        """
        salary = _decimal(salary)
        first, last = month_bounds(month)
        working_days = self.working_days(month)

        counts = {status: 0 for status in AttendanceStatus}
        overtime_hours = Decimal("0")
        for row in attendance:
            row_date = _row_date(row)
            if row_date is None or not (first <= row_date <= last):
                continue
            status = AttendanceStatus(_field(row, "status"))
            counts[status] += 1
            overtime_hours += _decimal(_field(row, "overtime_hours"))

        present = counts[AttendanceStatus.PRESENT]
        late = counts[AttendanceStatus.LATE]
        leave = counts[AttendanceStatus.LEAVE]
        half_days = counts[AttendanceStatus.HALF_DAY]
        absent_days = working_days - present - late - leave - half_days

        daily_rate = salary / working_days if working_days else Decimal("0")

        absent_deduction = round_half_up(absent_days * daily_rate)
        late_only = round_half_up(late * daily_rate * LATE_PENALTY_RATE)
        half_day_deduction = round_half_up(half_days * daily_rate * HALF_DAY_PENALTY_RATE)
        overtime_pay = round_half_up(
            overtime_hours * (daily_rate / HOURS_PER_DAY) * OVERTIME_MULTIPLIER
        )

        loan_deduction = sum(
            (
                _decimal(_field(loan, "monthly_deduction"))
                for loan in loans
                if _field(loan, "status") == LoanStatus.APPROVED
                and _decimal(_field(loan, "remaining_amount")) > 0
            ),
            Decimal("0"),
        )

        late_deduction = late_only + half_day_deduction
        total_deductions = absent_deduction + late_deduction + loan_deduction
        net_salary = max(Decimal("0"), salary - total_deductions + overtime_pay)

        return SalaryBreakdown(
            basic_salary=salary,
            gross_salary=salary,
            working_days=working_days,
            present_days=present + late,
            absent_days=absent_days,
            late_days=late,
            leave_days=leave,
            half_days=half_days,
            daily_rate=daily_rate.quantize(Decimal("0.01")),
            absent_deduction=absent_deduction,
            late_deduction=late_deduction,
            overtime_hours=overtime_hours,
            overtime_pay=overtime_pay,
            loan_deduction=loan_deduction,
            total_deductions=total_deductions,
            net_salary=net_salary,
        )
