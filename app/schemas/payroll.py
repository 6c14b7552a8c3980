"""
ISP Manager - Payroll Schemas

Pydantic schemas for staff, shifts, attendance, loans, performance reviews
and payroll runs.
"""

from datetime import date, datetime, time
from decimal import Decimal
from typing import Dict, Optional, List
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from app.models.payroll import (
    AttendanceStatus, LoanStatus, LoanType, PayrollRunStatus, ReviewStatus, SalaryStatus,
    SalaryType,
)


# ===========================================
# STAFF SCHEMAS
# ===========================================

class StaffBase(BaseModel):
    """Base staff schema."""
    name: str = Field(..., min_length=1, max_length=200)
    employee_code: Optional[str] = Field(None, max_length=50)
    designation: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    salary: Decimal = Field(Decimal("0"), ge=0, description="Monthly base salary")
    salary_type: SalaryType = SalaryType.MONTHLY
    join_date: Optional[date] = None
    shift_id: Optional[UUID] = None


class StaffCreate(StaffBase):
    """Create staff request."""
    pass


class StaffUpdate(BaseModel):
    """Update staff request; only sent fields change."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    employee_code: Optional[str] = Field(None, max_length=50)
    designation: Optional[str] = Field(None, max_length=100)
    department: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    salary: Optional[Decimal] = Field(None, ge=0)
    salary_type: Optional[SalaryType] = None
    join_date: Optional[date] = None
    shift_id: Optional[UUID] = None
    is_active: Optional[bool] = None


class StaffResponse(StaffBase):
    """Staff response."""
    id: UUID
    tenant_id: UUID
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


# ===========================================
# SHIFT SCHEMAS
# ===========================================

class ShiftCreate(BaseModel):
    """Create shift request."""
    name: str = Field(..., min_length=1, max_length=100)
    start_time: time
    end_time: time
    grace_minutes: int = Field(15, ge=0, le=240)


class ShiftUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    grace_minutes: Optional[int] = Field(None, ge=0, le=240)
    is_active: Optional[bool] = None


class ShiftResponse(ShiftCreate):
    id: UUID
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


# ===========================================
# ATTENDANCE SCHEMAS
# ===========================================

class AttendanceMark(BaseModel):
    """Mark a staff member's attendance for one day."""
    staff_id: UUID
    attendance_date: date
    status: AttendanceStatus = AttendanceStatus.PRESENT
    check_in: Optional[datetime] = None
    notes: Optional[str] = None


class AttendanceCheckOut(BaseModel):
    """Close an attendance day."""
    staff_id: UUID
    attendance_date: date
    check_out: datetime
    overtime_hours: Decimal = Field(Decimal("0"), ge=0, le=24)


class AttendanceResponse(BaseModel):
    id: UUID
    staff_id: UUID
    attendance_date: date
    status: AttendanceStatus
    check_in: Optional[datetime] = None
    check_out: Optional[datetime] = None
    overtime_hours: Decimal
    source: str
    notes: Optional[str] = None

    class Config:
        from_attributes = True


# ===========================================
# LOAN SCHEMAS
# ===========================================

class LoanCreate(BaseModel):
    """Create staff loan request."""
    staff_id: UUID
    amount: Decimal = Field(..., gt=0)
    monthly_deduction: Decimal = Field(..., gt=0)
    loan_type: LoanType = LoanType.LOAN
    reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_deduction(self):
        if self.monthly_deduction > self.amount:
            raise ValueError("Monthly deduction cannot exceed the loan amount")
        return self


class LoanDecision(BaseModel):
    """Approve or reject a pending loan."""
    approve: bool = True


class LoanResponse(BaseModel):
    id: UUID
    staff_id: UUID
    loan_type: LoanType
    amount: Decimal
    monthly_deduction: Decimal
    remaining_amount: Decimal
    reason: Optional[str] = None
    status: LoanStatus
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    disbursed_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ===========================================
# PERFORMANCE REVIEW SCHEMAS
# ===========================================

class PerformanceReviewCreate(BaseModel):
    """Create a performance review; ratings are 1-5 per criterion."""
    staff_id: UUID
    review_period: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="YYYY-MM")
    review_date: Optional[date] = None
    ratings: Dict[str, int] = Field(default_factory=dict)
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    goals: Optional[str] = None
    comments: Optional[str] = None
    status: ReviewStatus = ReviewStatus.DRAFT


class PerformanceReviewUpdate(BaseModel):
    """Update a review; only sent fields change."""
    review_period: Optional[str] = Field(None, pattern=r"^\d{4}-(0[1-9]|1[0-2])$")
    review_date: Optional[date] = None
    ratings: Optional[Dict[str, int]] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    goals: Optional[str] = None
    comments: Optional[str] = None
    status: Optional[ReviewStatus] = None


class PerformanceReviewResponse(BaseModel):
    id: UUID
    staff_id: UUID
    staff_name: Optional[str] = None
    reviewer_id: Optional[UUID] = None
    review_period: str
    review_date: date
    ratings: Dict[str, int]
    overall_rating: Optional[Decimal] = None
    strengths: Optional[str] = None
    areas_for_improvement: Optional[str] = None
    goals: Optional[str] = None
    comments: Optional[str] = None
    status: ReviewStatus
    acknowledged_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ===========================================
# PAYROLL RUN SCHEMAS
# ===========================================

class PayrollProcessRequest(BaseModel):
    """Process (or re-process) payroll for a month."""
    month: str = Field(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="YYYY-MM")


class PayrollRunResponse(BaseModel):
    id: UUID
    month: str
    status: PayrollRunStatus
    total_staff: int
    total_gross: Decimal
    total_deductions: Decimal
    total_net: Decimal
    processed_by: Optional[UUID] = None
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SalaryBreakdownResponse(BaseModel):
    """Salary calculation preview for one staff member."""
    staff_id: UUID
    month: str
    basic_salary: Decimal
    gross_salary: Decimal
    working_days: int
    present_days: int
    absent_days: int
    late_days: int
    leave_days: int
    half_days: int
    daily_rate: Decimal
    absent_deduction: Decimal
    late_deduction: Decimal
    overtime_hours: Decimal
    overtime_pay: Decimal
    loan_deduction: Decimal
    total_deductions: Decimal
    net_salary: Decimal


# ===========================================
# SALARY PAYMENT SCHEMAS
# ===========================================

class SalaryPaymentResponse(BaseModel):
    id: UUID
    staff_id: UUID
    staff_name: Optional[str] = None
    payroll_run_id: Optional[UUID] = None
    month: str
    basic_salary: Decimal
    gross_salary: Decimal
    bonus: Decimal
    deductions: Decimal
    absent_deduction: Decimal
    late_deduction: Decimal
    loan_deduction: Decimal
    overtime_pay: Decimal
    net_salary: Decimal
    working_days: int
    present_days: int
    absent_days: int
    late_days: int
    leave_days: int
    status: SalaryStatus
    payment_date: Optional[date] = None
    payment_method: Optional[str] = None
    transaction_ref: Optional[str] = None

    class Config:
        from_attributes = True


class SalaryPayRequest(BaseModel):
    """Mark a computed salary as paid."""
    payment_method: str = Field(..., min_length=1, max_length=50)
    transaction_ref: Optional[str] = Field(None, max_length=100)


class SalaryPaymentList(BaseModel):
    month: str
    items: List[SalaryPaymentResponse]
    total_net: Decimal
