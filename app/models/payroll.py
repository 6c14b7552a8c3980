"""
ISP Manager - Payroll Models

Staff payroll for ISP operators:
- Staff and shifts
- Daily attendance (one row per staff member per day)
- Staff loans repaid through monthly salary deductions
- Monthly payroll runs and the salary payment rows they produce
- Performance reviews

A payroll run is keyed by (tenant, month). Loan deductions are recorded
in `loan_deductions`, one row per (loan, month), so re-running a month
never decrements a loan balance twice.
"""

import uuid
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Dict, Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Time, JSON,
    Enum as SQLEnum, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, TenantMixin


# ===========================================
# ENUMS
# ===========================================

class AttendanceStatus(str, Enum):
    """Daily attendance status."""
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    LEAVE = "leave"
    HALF_DAY = "half_day"
    HOLIDAY = "holiday"


class LoanStatus(str, Enum):
    """Staff loan status."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class LoanType(str, Enum):
    """Staff loan type."""
    ADVANCE = "advance"
    LOAN = "loan"


class SalaryType(str, Enum):
    """How a staff salary is quoted."""
    MONTHLY = "monthly"
    DAILY = "daily"
    HOURLY = "hourly"


class SalaryStatus(str, Enum):
    """Salary payment status."""
    PENDING = "pending"
    PAID = "paid"


class PayrollRunStatus(str, Enum):
    """Payroll run processing status."""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ReviewStatus(str, Enum):
    """Performance review status."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    ACKNOWLEDGED = "acknowledged"


# ===========================================
# STAFF
# ===========================================

class StaffShift(BaseModel, TenantMixin):
    """Working shift definition."""

    __tablename__ = "staff_shifts"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)
    grace_minutes: Mapped[int] = mapped_column(
        Integer, default=15, nullable=False,
        comment="Minutes after start_time before a check-in counts as late",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class Staff(BaseModel, TenantMixin):
    """
    A staff member of an ISP tenant.

    Staff are never hard-deleted; deactivating sets is_active to False so
    historic salary and attendance rows keep their owner.
    """

    __tablename__ = "staff"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    employee_code: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    designation: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        default=Decimal("0.00"),
        nullable=False,
        comment="Monthly base salary",
    )
    salary_type: Mapped[SalaryType] = mapped_column(
        SQLEnum(SalaryType),
        default=SalaryType.MONTHLY,
        nullable=False,
    )
    join_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    shift_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff_shifts.id", ondelete="SET NULL"),
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Staff(id={self.id}, name={self.name})>"


# ===========================================
# ATTENDANCE
# ===========================================

class StaffAttendance(BaseModel, TenantMixin):
    """One attendance record per staff member per calendar day."""

    __tablename__ = "staff_attendance"

    staff_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    attendance_date: Mapped[date] = mapped_column("date", Date, nullable=False, index=True)
    status: Mapped[AttendanceStatus] = mapped_column(
        SQLEnum(AttendanceStatus),
        default=AttendanceStatus.PRESENT,
        nullable=False,
    )
    check_in: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    check_out: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    overtime_hours: Mapped[Decimal] = mapped_column(
        Numeric(precision=5, scale=2),
        default=Decimal("0.00"),
        nullable=False,
    )
    source: Mapped[str] = mapped_column(
        String(20), default="manual", nullable=False,
        comment="manual, device or leave",
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("staff_id", "date", name="uq_staff_attendance_staff_date"),
    )

    def __repr__(self) -> str:
        return f"<StaffAttendance(staff={self.staff_id}, date={self.attendance_date}, status={self.status})>"


# ===========================================
# LOANS
# ===========================================

class StaffLoan(BaseModel, TenantMixin):
    """Staff loan repaid through fixed monthly salary deductions."""

    __tablename__ = "staff_loans"

    staff_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
        comment="Original loan amount",
    )
    loan_type: Mapped[LoanType] = mapped_column(
        SQLEnum(LoanType),
        default=LoanType.LOAN,
        nullable=False,
    )
    monthly_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
    )
    remaining_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[LoanStatus] = mapped_column(
        SQLEnum(LoanStatus),
        default=LoanStatus.PENDING,
        nullable=False,
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    disbursed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<StaffLoan(id={self.id}, remaining={self.remaining_amount}, status={self.status})>"


class LoanDeduction(BaseModel, TenantMixin):
    """
    Ledger of loan deductions applied by payroll runs.

    The (loan_id, month) unique constraint is what makes a payroll re-run
    safe: a month that already deducted from a loan finds its row here
    and leaves the balance alone.
    """

    __tablename__ = "loan_deductions"

    loan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff_loans.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payroll_run_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_runs.id", ondelete="SET NULL"),
        nullable=True,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False, comment="YYYY-MM")
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    balance_before: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("loan_id", "month", name="uq_loan_deductions_loan_month"),
    )


# ===========================================
# PAYROLL RUNS & SALARY
# ===========================================

class PayrollRun(BaseModel, TenantMixin):
    """Monthly payroll batch for a tenant."""

    __tablename__ = "payroll_runs"

    month: Mapped[str] = mapped_column(String(7), nullable=False, comment="YYYY-MM")
    status: Mapped[PayrollRunStatus] = mapped_column(
        SQLEnum(PayrollRunStatus),
        default=PayrollRunStatus.PROCESSING,
        nullable=False,
    )
    total_staff: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_gross: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_deductions: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    total_net: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    processed_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    processed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("tenant_id", "month", name="uq_payroll_runs_tenant_month"),
    )

    def __repr__(self) -> str:
        return f"<PayrollRun(month={self.month}, status={self.status})>"


class SalaryPayment(BaseModel, TenantMixin):
    """Salary computed for one staff member for one month."""

    __tablename__ = "salary_payments"

    staff_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    payroll_run_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("payroll_runs.id", ondelete="SET NULL"),
        nullable=True,
    )
    month: Mapped[str] = mapped_column(String(7), nullable=False, comment="YYYY-MM")

    basic_salary: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    gross_salary: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    bonus: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    deductions: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
        comment="Manual deductions, not computed by the payroll run",
    )
    absent_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    late_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
        comment="Late plus half-day deductions",
    )
    loan_deduction: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    overtime_pay: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    net_salary: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)

    working_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    present_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    absent_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    late_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    leave_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    status: Mapped[SalaryStatus] = mapped_column(
        SQLEnum(SalaryStatus),
        default=SalaryStatus.PENDING,
        nullable=False,
    )
    payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    transaction_ref: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    staff: Mapped["Staff"] = relationship("Staff", lazy="selectin")

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "staff_id", "month",
            name="uq_salary_payments_tenant_staff_month",
        ),
    )

    def __repr__(self) -> str:
        return f"<SalaryPayment(staff={self.staff_id}, month={self.month}, net={self.net_salary})>"


# ===========================================
# PERFORMANCE REVIEWS
# ===========================================

class PerformanceReview(BaseModel, TenantMixin):
    """
    Periodic performance review of a staff member.

    `ratings` maps a criterion (quality, productivity, ...) to a 1-5 score;
    `overall_rating` is their mean, or NULL when nothing was rated.
    """

    __tablename__ = "performance_reviews"

    staff_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    review_period: Mapped[str] = mapped_column(String(7), nullable=False, comment="YYYY-MM")
    review_date: Mapped[date] = mapped_column(Date, nullable=False)
    ratings: Mapped[Dict[str, int]] = mapped_column(JSON, default=dict, nullable=False)
    overall_rating: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=3, scale=2), nullable=True,
    )
    strengths: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    areas_for_improvement: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    goals: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[ReviewStatus] = mapped_column(
        SQLEnum(ReviewStatus),
        default=ReviewStatus.DRAFT,
        nullable=False,
    )
    acknowledged_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    staff: Mapped["Staff"] = relationship("Staff", lazy="selectin")

    def __repr__(self) -> str:
        return f"<PerformanceReview(staff={self.staff_id}, period={self.review_period}, status={self.status})>"
