"""
ISP Manager - Payroll Router

API endpoints for staff, shifts, attendance, loans, performance reviews and
monthly payroll.
"""

import uuid
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_tenant_id, get_current_user_id
from app.services.payroll_service import PayrollService
from app.schemas.payroll import (
    # Staff schemas
    StaffCreate,
    StaffUpdate,
    StaffResponse,
    # Shift schemas
    ShiftCreate,
    ShiftUpdate,
    ShiftResponse,
    # Attendance schemas
    AttendanceMark,
    AttendanceCheckOut,
    AttendanceResponse,
    # Loan schemas
    LoanCreate,
    LoanDecision,
    LoanResponse,
    # Performance review schemas
    PerformanceReviewCreate,
    PerformanceReviewUpdate,
    PerformanceReviewResponse,
    # Payroll schemas
    PayrollProcessRequest,
    PayrollRunResponse,
    SalaryBreakdownResponse,
    SalaryPaymentResponse,
    SalaryPaymentList,
    SalaryPayRequest,
)


router = APIRouter()


def _salary_response(payment) -> SalaryPaymentResponse:
    response = SalaryPaymentResponse.model_validate(payment)
    response.staff_name = payment.staff.name if payment.staff else None
    return response


def _review_response(review) -> PerformanceReviewResponse:
    response = PerformanceReviewResponse.model_validate(review)
    response.staff_name = review.staff.name if review.staff else None
    return response


# ===========================================
# STAFF ENDPOINTS
# ===========================================

@router.post(
    "/staff",
    response_model=StaffResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a staff member",
)
async def create_staff(
    data: StaffCreate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.create_staff(tenant_id, data.model_dump())


@router.get(
    "/staff",
    response_model=List[StaffResponse],
    summary="List staff",
    description="Active staff by default; include_inactive also returns deactivated staff.",
)
async def list_staff(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.list_staff(tenant_id, include_inactive=include_inactive)


@router.get("/staff/{staff_id}", response_model=StaffResponse, summary="Get a staff member")
async def get_staff(
    staff_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.get_staff(tenant_id, staff_id)


@router.patch("/staff/{staff_id}", response_model=StaffResponse, summary="Update a staff member")
async def update_staff(
    staff_id: uuid.UUID,
    data: StaffUpdate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.update_staff(tenant_id, staff_id, data.model_dump(exclude_unset=True))


@router.delete(
    "/staff/{staff_id}",
    response_model=StaffResponse,
    summary="Deactivate a staff member",
    description="Staff are never hard-deleted; salary and attendance history is kept.",
)
async def deactivate_staff(
    staff_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.deactivate_staff(tenant_id, staff_id)


# ===========================================
# SHIFT ENDPOINTS
# ===========================================

@router.post(
    "/shifts",
    response_model=ShiftResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a shift",
)
async def create_shift(
    data: ShiftCreate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.create_shift(tenant_id, data.model_dump())


@router.get("/shifts", response_model=List[ShiftResponse], summary="List active shifts")
async def list_shifts(
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.list_shifts(tenant_id)


@router.patch("/shifts/{shift_id}", response_model=ShiftResponse, summary="Update a shift")
async def update_shift(
    shift_id: uuid.UUID,
    data: ShiftUpdate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.update_shift(tenant_id, shift_id, data.model_dump(exclude_unset=True))


@router.delete("/shifts/{shift_id}", response_model=ShiftResponse, summary="Deactivate a shift")
async def deactivate_shift(
    shift_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.deactivate_shift(tenant_id, shift_id)


# ===========================================
# ATTENDANCE ENDPOINTS
# ===========================================

@router.post(
    "/attendance",
    response_model=AttendanceResponse,
    summary="Mark attendance",
    description="Creates or overwrites the staff member's attendance for the day.",
)
async def mark_attendance(
    data: AttendanceMark,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.mark_attendance(
        tenant_id,
        data.staff_id,
        data.attendance_date,
        data.status,
        check_in=data.check_in,
        notes=data.notes,
    )


@router.post("/attendance/check-out", response_model=AttendanceResponse, summary="Check out")
async def check_out(
    data: AttendanceCheckOut,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.check_out(
        tenant_id,
        data.staff_id,
        data.attendance_date,
        data.check_out,
        overtime_hours=data.overtime_hours,
    )


@router.get("/attendance", response_model=List[AttendanceResponse], summary="Attendance for a month")
async def list_attendance(
    month: str = Query(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="YYYY-MM"),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.list_attendance(tenant_id, month)


# ===========================================
# LOAN ENDPOINTS
# ===========================================

@router.post(
    "/loans",
    response_model=LoanResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Request a staff loan",
)
async def create_loan(
    data: LoanCreate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.create_loan(tenant_id, data.model_dump())


@router.get("/loans", response_model=List[LoanResponse], summary="List staff loans")
async def list_loans(
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.list_loans(tenant_id)


@router.post(
    "/loans/{loan_id}/decision",
    response_model=LoanResponse,
    summary="Approve or reject a loan",
)
async def decide_loan(
    loan_id: uuid.UUID,
    data: LoanDecision,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
    user_id: Optional[uuid.UUID] = Depends(get_current_user_id),
):
    service = PayrollService(db)
    return await service.approve_loan(tenant_id, loan_id, data.approve, approved_by=user_id)


@router.delete("/loans/{loan_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a loan")
async def delete_loan(
    loan_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    await service.delete_loan(tenant_id, loan_id)


# ===========================================
# PERFORMANCE REVIEW ENDPOINTS
# ===========================================

@router.post(
    "/reviews",
    response_model=PerformanceReviewResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a performance review",
)
async def create_performance_review(
    data: PerformanceReviewCreate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
    user_id: Optional[uuid.UUID] = Depends(get_current_user_id),
):
    service = PayrollService(db)
    review = await service.create_performance_review(tenant_id, data.model_dump(), reviewer_id=user_id)
    return _review_response(review)


@router.get("/reviews", response_model=List[PerformanceReviewResponse], summary="List performance reviews")
async def list_performance_reviews(
    staff_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    reviews = await service.list_performance_reviews(tenant_id, staff_id=staff_id)
    return [_review_response(r) for r in reviews]


@router.patch(
    "/reviews/{review_id}",
    response_model=PerformanceReviewResponse,
    summary="Update a performance review",
)
async def update_performance_review(
    review_id: uuid.UUID,
    data: PerformanceReviewUpdate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    review = await service.update_performance_review(
        tenant_id, review_id, data.model_dump(exclude_unset=True)
    )
    return _review_response(review)


@router.delete(
    "/reviews/{review_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a performance review",
)
async def delete_performance_review(
    review_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    await service.delete_performance_review(tenant_id, review_id)


# ===========================================
# PAYROLL RUN ENDPOINTS
# ===========================================

@router.post(
    "/process",
    response_model=PayrollRunResponse,
    summary="Process payroll for a month",
    description=(
        "Calculates every active staff member's salary for the month. "
        "Re-running a month recalculates salaries without deducting loans twice."
    ),
)
async def process_payroll(
    data: PayrollProcessRequest,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
    user_id: Optional[uuid.UUID] = Depends(get_current_user_id),
):
    service = PayrollService(db)
    return await service.process_payroll(tenant_id, data.month, processed_by=user_id)


@router.get("/runs", response_model=List[PayrollRunResponse], summary="Recent payroll runs")
async def list_payroll_runs(
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    return await service.list_payroll_runs(tenant_id)


@router.get(
    "/preview/{staff_id}",
    response_model=SalaryBreakdownResponse,
    summary="Preview a salary calculation",
    description="Calculates the month's salary from current attendance and loans without saving it.",
)
async def preview_salary(
    staff_id: uuid.UUID,
    month: str = Query(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="YYYY-MM"),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    breakdown = await service.preview_salary(tenant_id, staff_id, month)
    return SalaryBreakdownResponse(staff_id=staff_id, month=month, **breakdown.to_dict())


# ===========================================
# SALARY PAYMENT ENDPOINTS
# ===========================================

@router.get("/salaries", response_model=SalaryPaymentList, summary="Salary payments for a month")
async def list_salary_payments(
    month: str = Query(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="YYYY-MM"),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    payments = await service.list_salary_payments(tenant_id, month)
    return SalaryPaymentList(
        month=month,
        items=[_salary_response(p) for p in payments],
        total_net=sum((p.net_salary for p in payments), Decimal("0")),
    )


@router.post(
    "/salaries/{salary_payment_id}/pay",
    response_model=SalaryPaymentResponse,
    summary="Mark a salary as paid",
)
async def pay_salary(
    salary_payment_id: uuid.UUID,
    data: SalaryPayRequest,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    service = PayrollService(db)
    payment = await service.pay_salary(
        tenant_id,
        salary_payment_id,
        data.payment_method,
        transaction_ref=data.transaction_ref,
    )
    return _salary_response(payment)
