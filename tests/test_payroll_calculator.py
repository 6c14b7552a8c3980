"""
ISP Manager - Payroll Calculator Tests

Unit tests for the monthly salary calculation.
"""

import pytest
from datetime import date
from decimal import Decimal

from app.models.payroll import AttendanceStatus, LoanStatus
from app.services.payroll_calculator import (
    PayrollCalculator,
    month_bounds,
    parse_month,
    round_half_up,
)
from app.utils.error_handling import ValidationException


# April 2024: 30 days, 22 weekdays (Mon-Fri)
APRIL_2024_WEEKDAYS = [
    date(2024, 4, day) for day in range(1, 31) if date(2024, 4, day).weekday() < 5
]


def attendance_rows(present=0, late=0, leave=0, half_day=0, overtime_hours=None):
    """Attendance rows on consecutive April 2024 weekdays."""
    statuses = (
        [AttendanceStatus.PRESENT] * present
        + [AttendanceStatus.LATE] * late
        + [AttendanceStatus.LEAVE] * leave
        + [AttendanceStatus.HALF_DAY] * half_day
    )
    rows = []
    for day, status in zip(APRIL_2024_WEEKDAYS, statuses):
        row = {"attendance_date": day, "status": status}
        if overtime_hours is not None:
            row["overtime_hours"] = overtime_hours
        rows.append(row)
    return rows


@pytest.fixture
def calculator():
    return PayrollCalculator()


class TestWorkingDays:
    """Working days exclude the configured weekend."""

    def test_april_2024_has_22_weekdays(self, calculator):
        assert calculator.working_days("2024-04") == 22

    def test_february_leap_year(self, calculator):
        # 29 days, 8 of them Saturday/Sunday
        assert calculator.working_days("2024-02") == 21

    def test_custom_weekend(self):
        # Friday/Saturday weekend
        calculator = PayrollCalculator(weekend_days={4, 5})
        assert calculator.working_days("2024-04") == 22

    def test_no_weekend(self):
        assert PayrollCalculator(weekend_days=set()).working_days("2024-04") == 30


class TestMonthParsing:
    def test_parse_month(self):
        assert parse_month("2024-04") == (2024, 4)

    def test_month_bounds(self):
        assert month_bounds("2024-02") == (date(2024, 2, 1), date(2024, 2, 29))

    @pytest.mark.parametrize("value", ["2024-13", "2024-4", "April 2024", "", None])
    def test_invalid_month_rejected(self, value):
        with pytest.raises(ValidationException):
            parse_month(value)


class TestRounding:
    def test_halves_round_up(self):
        assert round_half_up(Decimal("2.5")) == Decimal("3")
        assert round_half_up(Decimal("340.909")) == Decimal("341")

    def test_negative_halves_round_toward_positive(self):
        assert round_half_up(Decimal("-2.5")) == Decimal("-2")


class TestSalaryCalculation:
    """Deductions, overtime and net salary."""

    def test_worked_example(self, calculator):
        """30,000 salary, 19 present, 1 late, 2 absent in April 2024."""
        breakdown = calculator.calculate(
            Decimal("30000"), "2024-04", attendance_rows(present=19, late=1)
        )

        assert breakdown.working_days == 22
        assert breakdown.present_days == 20
        assert breakdown.absent_days == 2
        assert breakdown.late_days == 1
        assert breakdown.daily_rate == Decimal("1363.64")
        assert breakdown.absent_deduction == Decimal("2727")
        assert breakdown.late_deduction == Decimal("341")
        assert breakdown.loan_deduction == Decimal("0")
        assert breakdown.total_deductions == Decimal("3068")
        assert breakdown.net_salary == Decimal("26932")

    def test_full_attendance_pays_full_salary(self, calculator):
        breakdown = calculator.calculate(
            Decimal("30000"), "2024-04", attendance_rows(present=22)
        )
        assert breakdown.absent_days == 0
        assert breakdown.total_deductions == Decimal("0")
        assert breakdown.net_salary == Decimal("30000")

    def test_leave_days_are_not_absences(self, calculator):
        breakdown = calculator.calculate(
            Decimal("22000"), "2024-04", attendance_rows(present=20, leave=2)
        )
        assert breakdown.leave_days == 2
        assert breakdown.absent_days == 0
        assert breakdown.net_salary == Decimal("22000")

    def test_half_day_costs_half_a_day(self, calculator):
        breakdown = calculator.calculate(
            Decimal("22000"), "2024-04", attendance_rows(present=21, half_day=1)
        )
        # daily rate 1,000
        assert breakdown.half_days == 1
        assert breakdown.late_deduction == Decimal("500")
        assert breakdown.net_salary == Decimal("21500")

    def test_no_attendance_means_everything_absent(self, calculator):
        breakdown = calculator.calculate(Decimal("30000"), "2024-04", [])
        assert breakdown.absent_days == 22
        assert breakdown.absent_deduction == Decimal("30000")
        assert breakdown.net_salary == Decimal("0")

    def test_overtime_pay(self, calculator):
        # daily rate 1,000 -> hourly 125 -> overtime 187.5 per hour
        rows = attendance_rows(present=22, overtime_hours=Decimal("1"))
        breakdown = calculator.calculate(Decimal("22000"), "2024-04", rows)
        assert breakdown.overtime_hours == Decimal("22")
        assert breakdown.overtime_pay == Decimal("4125")
        assert breakdown.net_salary == Decimal("26125")

    def test_rows_outside_month_ignored(self, calculator):
        rows = attendance_rows(present=22) + [
            {"attendance_date": date(2024, 5, 1), "status": AttendanceStatus.ABSENT},
            {"attendance_date": "2024-03-29", "status": "present"},
        ]
        breakdown = calculator.calculate(Decimal("30000"), "2024-04", rows)
        assert breakdown.present_days == 22
        assert breakdown.net_salary == Decimal("30000")

    def test_more_records_than_working_days_gives_negative_absence(self, calculator):
        # Weekend work recorded as present is not clamped away
        weekend = [
            {"attendance_date": date(2024, 4, 6), "status": AttendanceStatus.PRESENT},
            {"attendance_date": date(2024, 4, 7), "status": AttendanceStatus.PRESENT},
        ]
        breakdown = calculator.calculate(
            Decimal("22000"), "2024-04", attendance_rows(present=22) + weekend
        )
        assert breakdown.absent_days == -2
        assert breakdown.absent_deduction == Decimal("-2000")
        assert breakdown.net_salary == Decimal("24000")


class TestLoanDeduction:
    def test_approved_loans_with_balance_are_deducted(self, calculator):
        loans = [
            {"status": LoanStatus.APPROVED, "remaining_amount": Decimal("5000"), "monthly_deduction": Decimal("1000")},
            {"status": LoanStatus.APPROVED, "remaining_amount": Decimal("0"), "monthly_deduction": Decimal("700")},
            {"status": LoanStatus.PENDING, "remaining_amount": Decimal("3000"), "monthly_deduction": Decimal("500")},
            {"status": LoanStatus.COMPLETED, "remaining_amount": Decimal("0"), "monthly_deduction": Decimal("500")},
        ]
        breakdown = calculator.calculate(
            Decimal("22000"), "2024-04", attendance_rows(present=22), loans
        )
        assert breakdown.loan_deduction == Decimal("1000")
        assert breakdown.net_salary == Decimal("21000")

    def test_net_salary_never_negative(self, calculator):
        loans = [
            {"status": LoanStatus.APPROVED, "remaining_amount": Decimal("90000"), "monthly_deduction": Decimal("50000")},
        ]
        breakdown = calculator.calculate(
            Decimal("22000"), "2024-04", attendance_rows(present=22), loans
        )
        assert breakdown.total_deductions == Decimal("50000")
        assert breakdown.net_salary == Decimal("0")
