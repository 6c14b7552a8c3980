"""
ISP Manager - Payroll Service

Staff, shift, attendance, loan and performance review management, and the
monthly payroll run.

Payroll run (one per tenant per month):
1. Load the tenant's attendance for the month
2. Upsert the payroll_runs row as "processing"
3. For each active staff member: calculate salary, upsert the
   salary_payments row as "pending", apply loan deductions
4. Store totals and mark the run "completed"

The whole run is one database transaction. Loan deductions are recorded
in loan_deductions keyed by (loan, month); a re-run of the same month
reuses those rows instead of decrementing balances again.
"""

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.payroll import (
    AttendanceStatus, LoanDeduction, LoanStatus, LoanType, PayrollRun, PayrollRunStatus,
    PerformanceReview, ReviewStatus, SalaryPayment, SalaryStatus, Staff, StaffAttendance,
    StaffLoan, StaffShift,
)
from app.services.payroll_calculator import PayrollCalculator, SalaryBreakdown, month_bounds, parse_month
from app.utils.error_handling import (
    BusinessRuleException, ConflictException, NotFoundException, ValidationException,
    validate_amount,
)

logger = logging.getLogger(__name__)


REVIEW_CRITERIA = (
    "quality", "productivity", "communication", "teamwork", "punctuality", "initiative",
)


def _validate_ratings(ratings: Dict[str, Any]) -> Dict[str, int]:
    """Ratings must name known criteria and score them 1 to 5."""
    unknown = sorted(set(ratings) - set(REVIEW_CRITERIA))
    if unknown:
        raise ValidationException(
            f"Unknown rating criteria: {', '.join(unknown)}",
            field="ratings",
        )
    for key, value in ratings.items():
        if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
            raise ValidationException(f"Rating for {key} must be between 1 and 5", field="ratings")
    return dict(ratings)


def overall_rating(ratings: Dict[str, int]) -> Optional[Decimal]:
    """Mean of the criterion ratings to two places, or None when nothing was rated."""
    if not ratings:
        return None
    mean = Decimal(sum(ratings.values())) / len(ratings)
    return mean.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


async def upsert_attendance(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    staff_id: uuid.UUID,
    attendance_date: date,
    status: AttendanceStatus,
    **fields: Any,
) -> StaffAttendance:
    """
    Insert or overwrite the attendance row for (staff, date).

    Flushes but does not commit; callers own the transaction.
    """
    result = await db.execute(
        select(StaffAttendance).where(
            and_(
                StaffAttendance.staff_id == staff_id,
                StaffAttendance.attendance_date == attendance_date,
            )
        )
    )
    record = result.scalar_one_or_none()
    if record is None:
        record = StaffAttendance(
            tenant_id=tenant_id,
            staff_id=staff_id,
            attendance_date=attendance_date,
        )
        db.add(record)

    record.status = status
    for key, value in fields.items():
        setattr(record, key, value)

    await db.flush()
    return record


class PayrollService:
    """
    Payroll service for managing staff and processing monthly payroll.
    """

    def __init__(self, db: AsyncSession, calculator: Optional[PayrollCalculator] = None):
        self.db = db
        self.calculator = calculator or PayrollCalculator(settings.weekend_days_set)

    # ===========================================
    # STAFF MANAGEMENT
    # ===========================================

    async def create_staff(self, tenant_id: uuid.UUID, data: Dict[str, Any]) -> Staff:
        """Create a new staff member."""
        staff = Staff(tenant_id=tenant_id, **data)
        self.db.add(staff)
        await self.db.commit()
        await self.db.refresh(staff)

        logger.info(f"Staff created: {staff.id} ({staff.name})")
        return staff

    async def get_staff(self, tenant_id: uuid.UUID, staff_id: uuid.UUID) -> Staff:
        """Get a staff member or raise NotFoundException."""
        result = await self.db.execute(
            select(Staff).where(
                and_(Staff.tenant_id == tenant_id, Staff.id == staff_id)
            )
        )
        staff = result.scalar_one_or_none()
        if not staff:
            raise NotFoundException("Staff", staff_id)
        return staff

    async def list_staff(self, tenant_id: uuid.UUID, include_inactive: bool = False) -> List[Staff]:
        query = select(Staff).where(Staff.tenant_id == tenant_id)
        if not include_inactive:
            query = query.where(Staff.is_active == True)  # noqa: E712
        result = await self.db.execute(query.order_by(Staff.name))
        return list(result.scalars().all())

    async def update_staff(
        self,
        tenant_id: uuid.UUID,
        staff_id: uuid.UUID,
        data: Dict[str, Any],
    ) -> Staff:
        staff = await self.get_staff(tenant_id, staff_id)
        for key, value in data.items():
            setattr(staff, key, value)
        await self.db.commit()
        await self.db.refresh(staff)
        return staff

    async def deactivate_staff(self, tenant_id: uuid.UUID, staff_id: uuid.UUID) -> Staff:
        """Soft-delete: the row stays for salary and attendance history."""
        return await self.update_staff(tenant_id, staff_id, {"is_active": False})

    # ===========================================
    # SHIFTS
    # ===========================================

    async def create_shift(self, tenant_id: uuid.UUID, data: Dict[str, Any]) -> StaffShift:
        shift = StaffShift(tenant_id=tenant_id, **data)
        self.db.add(shift)
        await self.db.commit()
        await self.db.refresh(shift)
        return shift

    async def update_shift(
        self,
        tenant_id: uuid.UUID,
        shift_id: uuid.UUID,
        data: Dict[str, Any],
    ) -> StaffShift:
        result = await self.db.execute(
            select(StaffShift).where(
                and_(StaffShift.tenant_id == tenant_id, StaffShift.id == shift_id)
            )
        )
        shift = result.scalar_one_or_none()
        if not shift:
            raise NotFoundException("Shift", shift_id)
        for key, value in data.items():
            setattr(shift, key, value)
        await self.db.commit()
        await self.db.refresh(shift)
        return shift

    async def deactivate_shift(self, tenant_id: uuid.UUID, shift_id: uuid.UUID) -> StaffShift:
        return await self.update_shift(tenant_id, shift_id, {"is_active": False})

    async def list_shifts(self, tenant_id: uuid.UUID) -> List[StaffShift]:
        result = await self.db.execute(
            select(StaffShift)
            .where(and_(StaffShift.tenant_id == tenant_id, StaffShift.is_active == True))  # noqa: E712
            .order_by(StaffShift.start_time)
        )
        return list(result.scalars().all())

    # ===========================================
    # ATTENDANCE
    # ===========================================

    async def mark_attendance(
        self,
        tenant_id: uuid.UUID,
        staff_id: uuid.UUID,
        attendance_date: date,
        status: AttendanceStatus,
        check_in: Optional[datetime] = None,
        notes: Optional[str] = None,
    ) -> StaffAttendance:
        """Record (or overwrite) a staff member's attendance for a day."""
        await self.get_staff(tenant_id, staff_id)
        fields: Dict[str, Any] = {"source": "manual", "notes": notes, "check_in": check_in}

        record = await upsert_attendance(
            self.db, tenant_id, staff_id, attendance_date, status, **fields
        )
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def check_out(
        self,
        tenant_id: uuid.UUID,
        staff_id: uuid.UUID,
        attendance_date: date,
        check_out: datetime,
        overtime_hours: Decimal = Decimal("0"),
    ) -> StaffAttendance:
        """Close an attendance day with a check-out time and overtime."""
        result = await self.db.execute(
            select(StaffAttendance).where(
                and_(
                    StaffAttendance.tenant_id == tenant_id,
                    StaffAttendance.staff_id == staff_id,
                    StaffAttendance.attendance_date == attendance_date,
                )
            )
        )
        record = result.scalar_one_or_none()
        if not record:
            raise NotFoundException("Attendance", message="No attendance recorded for this day")

        record.check_out = check_out
        record.overtime_hours = overtime_hours
        await self.db.commit()
        await self.db.refresh(record)
        return record

    async def list_attendance(self, tenant_id: uuid.UUID, month: str) -> List[StaffAttendance]:
        first, last = month_bounds(month)
        result = await self.db.execute(
            select(StaffAttendance)
            .where(
                and_(
                    StaffAttendance.tenant_id == tenant_id,
                    StaffAttendance.attendance_date >= first,
                    StaffAttendance.attendance_date <= last,
                )
            )
            .order_by(StaffAttendance.attendance_date)
        )
        return list(result.scalars().all())

    # ===========================================
    # LOANS
    # ===========================================

    async def create_loan(self, tenant_id: uuid.UUID, data: Dict[str, Any]) -> StaffLoan:
        """Create a pending loan; the full amount is outstanding."""
        await self.get_staff(tenant_id, data["staff_id"])
        amount = validate_amount(data["amount"])
        monthly = validate_amount(data["monthly_deduction"], field="monthly_deduction")

        loan = StaffLoan(
            tenant_id=tenant_id,
            staff_id=data["staff_id"],
            loan_type=LoanType(data.get("loan_type") or LoanType.LOAN),
            amount=amount,
            monthly_deduction=monthly,
            remaining_amount=amount,
            reason=data.get("reason"),
            status=LoanStatus.PENDING,
        )
        self.db.add(loan)
        await self.db.commit()
        await self.db.refresh(loan)
        return loan

    async def _get_loan(self, tenant_id: uuid.UUID, loan_id: uuid.UUID) -> StaffLoan:
        result = await self.db.execute(
            select(StaffLoan).where(
                and_(StaffLoan.tenant_id == tenant_id, StaffLoan.id == loan_id)
            )
        )
        loan = result.scalar_one_or_none()
        if not loan:
            raise NotFoundException("Loan", loan_id)
        return loan

    async def approve_loan(
        self,
        tenant_id: uuid.UUID,
        loan_id: uuid.UUID,
        approve: bool,
        approved_by: Optional[uuid.UUID] = None,
    ) -> StaffLoan:
        """Approve (and disburse) or reject a pending loan."""
        loan = await self._get_loan(tenant_id, loan_id)
        if loan.status != LoanStatus.PENDING:
            raise BusinessRuleException(
                f"Only pending loans can be decided; this loan is {loan.status.value}"
            )

        now = datetime.now(timezone.utc)
        if approve:
            loan.status = LoanStatus.APPROVED
            loan.approved_by = approved_by
            loan.approved_at = now
            loan.disbursed_at = now
        else:
            loan.status = LoanStatus.REJECTED

        await self.db.commit()
        await self.db.refresh(loan)
        return loan

    async def delete_loan(self, tenant_id: uuid.UUID, loan_id: uuid.UUID) -> None:
        loan = await self._get_loan(tenant_id, loan_id)
        await self.db.delete(loan)
        await self.db.commit()

    async def list_loans(self, tenant_id: uuid.UUID) -> List[StaffLoan]:
        result = await self.db.execute(
            select(StaffLoan)
            .where(StaffLoan.tenant_id == tenant_id)
            .order_by(StaffLoan.created_at.desc())
        )
        return list(result.scalars().all())

    # ===========================================
    # PERFORMANCE REVIEWS
    # ===========================================

    async def create_performance_review(
        self,
        tenant_id: uuid.UUID,
        data: Dict[str, Any],
        reviewer_id: Optional[uuid.UUID] = None,
    ) -> PerformanceReview:
        """Create a review; review_date defaults to today."""
        await self.get_staff(tenant_id, data["staff_id"])
        ratings = _validate_ratings(data.get("ratings") or {})

        review = PerformanceReview(
            tenant_id=tenant_id,
            staff_id=data["staff_id"],
            reviewer_id=reviewer_id,
            review_period=data["review_period"],
            review_date=data.get("review_date") or date.today(),
            ratings=ratings,
            overall_rating=overall_rating(ratings),
            strengths=data.get("strengths"),
            areas_for_improvement=data.get("areas_for_improvement"),
            goals=data.get("goals"),
            comments=data.get("comments"),
            status=ReviewStatus(data.get("status") or ReviewStatus.DRAFT),
        )
        if review.status == ReviewStatus.ACKNOWLEDGED:
            review.acknowledged_at = datetime.now(timezone.utc)
        self.db.add(review)
        await self.db.commit()
        await self.db.refresh(review)
        return review

    async def _get_review(self, tenant_id: uuid.UUID, review_id: uuid.UUID) -> PerformanceReview:
        result = await self.db.execute(
            select(PerformanceReview).where(
                and_(PerformanceReview.tenant_id == tenant_id, PerformanceReview.id == review_id)
            )
        )
        review = result.scalar_one_or_none()
        if not review:
            raise NotFoundException("Performance review", review_id)
        return review

    async def update_performance_review(
        self,
        tenant_id: uuid.UUID,
        review_id: uuid.UUID,
        data: Dict[str, Any],
    ) -> PerformanceReview:
        review = await self._get_review(tenant_id, review_id)
        for key in ("review_period", "review_date", "status"):
            if key in data and data[key] is None:
                del data[key]
        if "ratings" in data:
            data["ratings"] = _validate_ratings(data["ratings"] or {})
            data["overall_rating"] = overall_rating(data["ratings"])

        if "status" in data:
            data["status"] = ReviewStatus(data["status"])
            if data["status"] == ReviewStatus.ACKNOWLEDGED and review.status != ReviewStatus.ACKNOWLEDGED:
                data["acknowledged_at"] = datetime.now(timezone.utc)

        for key, value in data.items():
            setattr(review, key, value)
        await self.db.commit()
        await self.db.refresh(review)
        return review

    async def delete_performance_review(self, tenant_id: uuid.UUID, review_id: uuid.UUID) -> None:
        review = await self._get_review(tenant_id, review_id)
        await self.db.delete(review)
        await self.db.commit()

    async def list_performance_reviews(
        self,
        tenant_id: uuid.UUID,
        staff_id: Optional[uuid.UUID] = None,
        limit: int = 100,
    ) -> List[PerformanceReview]:
        query = select(PerformanceReview).where(PerformanceReview.tenant_id == tenant_id)
        if staff_id is not None:
            query = query.where(PerformanceReview.staff_id == staff_id)
        result = await self.db.execute(
            query.order_by(PerformanceReview.review_date.desc()).limit(limit)
        )
        return list(result.scalars().all())

    # ===========================================
    # PAYROLL RUN
    # ===========================================

    async def process_payroll(
        self,
        tenant_id: uuid.UUID,
        month: str,
        processed_by: Optional[uuid.UUID] = None,
    ) -> PayrollRun:
        """
        Process payroll for every active staff member of a tenant.

        Runs in a single transaction: either every salary row, loan
        update and the completed run are committed, or nothing is.

        Raises:
            ValidationException: month is not YYYY-MM
            ConflictException: another run for the same month won the race
        """
        parse_month(month)
        first, last = month_bounds(month)
        logger.info(f"Processing payroll for tenant {tenant_id}, month {month}")

        try:
            run = await self._process_payroll(tenant_id, month, first, last, processed_by)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.warning(f"Concurrent payroll run rejected: tenant {tenant_id}, month {month}")
            raise ConflictException(
                f"Payroll for {month} is already being processed",
                details={"month": month},
            ) from e
        except Exception:
            await self.db.rollback()
            logger.exception(f"Payroll run failed: tenant {tenant_id}, month {month}")
            raise

        await self.db.refresh(run)
        logger.info(
            f"Payroll completed: month={month}, staff={run.total_staff}, "
            f"gross={run.total_gross}, net={run.total_net}"
        )
        return run

    async def preview_salary(self, tenant_id: uuid.UUID, staff_id: uuid.UUID, month: str) -> SalaryBreakdown:
        """Calculate one staff member's salary for a month without saving anything."""
        first, last = month_bounds(month)
        staff = await self.get_staff(tenant_id, staff_id)
        attendance = await self.db.execute(
            select(StaffAttendance).where(
                and_(
                    StaffAttendance.tenant_id == tenant_id,
                    StaffAttendance.staff_id == staff_id,
                    StaffAttendance.attendance_date >= first,
                    StaffAttendance.attendance_date <= last,
                )
            )
        )
        loans_by_staff = await self._loans_for_month(tenant_id, month)
        return self.calculator.calculate(
            staff.salary,
            month,
            list(attendance.scalars().all()),
            [snapshot for _, snapshot, _ in loans_by_staff.get(staff_id, [])],
        )

    async def _process_payroll(
        self,
        tenant_id: uuid.UUID,
        month: str,
        first: date,
        last: date,
        processed_by: Optional[uuid.UUID],
    ) -> PayrollRun:
        # Step 1: attendance for the month
        attendance_result = await self.db.execute(
            select(StaffAttendance).where(
                and_(
                    StaffAttendance.tenant_id == tenant_id,
                    StaffAttendance.attendance_date >= first,
                    StaffAttendance.attendance_date <= last,
                )
            )
        )
        attendance_by_staff: Dict[uuid.UUID, List[StaffAttendance]] = defaultdict(list)
        for record in attendance_result.scalars().all():
            attendance_by_staff[record.staff_id].append(record)

        staff_members = await self.list_staff(tenant_id)
        loans_by_staff = await self._loans_for_month(tenant_id, month)

        # Step 2: run row
        run = await self._upsert_payroll_run(tenant_id, month, len(staff_members), processed_by)

        # Step 3: per staff
        total_gross = Decimal("0")
        total_deductions = Decimal("0")
        total_net = Decimal("0")

        for staff in staff_members:
            loan_entries = loans_by_staff.get(staff.id, [])
            breakdown = self.calculator.calculate(
                staff.salary,
                month,
                attendance_by_staff.get(staff.id, []),
                [snapshot for _, snapshot, _ in loan_entries],
            )
            await self._upsert_salary_payment(tenant_id, staff.id, run.id, month, breakdown)
            await self._apply_loan_deductions(tenant_id, run.id, month, loan_entries)

            total_gross += breakdown.gross_salary
            total_deductions += breakdown.total_deductions
            total_net += breakdown.net_salary

        # Step 4: totals
        run.total_gross = total_gross
        run.total_deductions = total_deductions
        run.total_net = total_net
        run.status = PayrollRunStatus.COMPLETED
        await self.db.flush()
        return run

    async def _loans_for_month(self, tenant_id: uuid.UUID, month: str) -> Dict[uuid.UUID, list]:
        """
        Loans that take part in this month's run, grouped by staff.

        Each entry is (loan, snapshot, existing_deduction). The snapshot is
        what the calculator sees: for a loan already deducted this month
        it is the loan as it stood before that deduction.
        """
        loans_result = await self.db.execute(
            select(StaffLoan).where(
                and_(
                    StaffLoan.tenant_id == tenant_id,
                    StaffLoan.status.in_([LoanStatus.APPROVED, LoanStatus.COMPLETED]),
                )
            )
        )
        loans = list(loans_result.scalars().all())
        if not loans:
            return {}

        deductions_result = await self.db.execute(
            select(LoanDeduction).where(
                and_(
                    LoanDeduction.month == month,
                    LoanDeduction.loan_id.in_([loan.id for loan in loans]),
                )
            )
        )
        applied = {row.loan_id: row for row in deductions_result.scalars().all()}

        grouped: Dict[uuid.UUID, list] = defaultdict(list)
        for loan in loans:
            existing = applied.get(loan.id)
            if existing is not None:
                snapshot = {
                    "status": LoanStatus.APPROVED,
                    "remaining_amount": existing.balance_before,
                    "monthly_deduction": existing.amount,
                }
            elif loan.status == LoanStatus.APPROVED and loan.remaining_amount > 0:
                snapshot = loan
            else:
                continue
            grouped[loan.staff_id].append((loan, snapshot, existing))
        return grouped

    async def _apply_loan_deductions(
        self,
        tenant_id: uuid.UUID,
        run_id: uuid.UUID,
        month: str,
        loan_entries: list,
    ) -> None:
        for loan, _, existing in loan_entries:
            if existing is not None:
                existing.payroll_run_id = run_id
                continue

            balance_before = loan.remaining_amount
            self.db.add(
                LoanDeduction(
                    tenant_id=tenant_id,
                    loan_id=loan.id,
                    payroll_run_id=run_id,
                    month=month,
                    amount=loan.monthly_deduction,
                    balance_before=balance_before,
                )
            )
            loan.remaining_amount = max(Decimal("0"), balance_before - loan.monthly_deduction)
            if loan.remaining_amount == 0:
                loan.status = LoanStatus.COMPLETED
        await self.db.flush()

    async def _upsert_payroll_run(
        self,
        tenant_id: uuid.UUID,
        month: str,
        total_staff: int,
        processed_by: Optional[uuid.UUID],
    ) -> PayrollRun:
        result = await self.db.execute(
            select(PayrollRun).where(
                and_(PayrollRun.tenant_id == tenant_id, PayrollRun.month == month)
            )
        )
        run = result.scalar_one_or_none()
        if run is None:
            run = PayrollRun(tenant_id=tenant_id, month=month)
            self.db.add(run)

        run.status = PayrollRunStatus.PROCESSING
        run.total_staff = total_staff
        run.processed_by = processed_by
        run.processed_at = datetime.now(timezone.utc)
        await self.db.flush()
        return run

    async def _upsert_salary_payment(
        self,
        tenant_id: uuid.UUID,
        staff_id: uuid.UUID,
        run_id: uuid.UUID,
        month: str,
        breakdown: SalaryBreakdown,
    ) -> SalaryPayment:
        result = await self.db.execute(
            select(SalaryPayment).where(
                and_(
                    SalaryPayment.tenant_id == tenant_id,
                    SalaryPayment.staff_id == staff_id,
                    SalaryPayment.month == month,
                )
            )
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            payment = SalaryPayment(tenant_id=tenant_id, staff_id=staff_id, month=month)
            self.db.add(payment)

        payment.payroll_run_id = run_id
        payment.basic_salary = breakdown.basic_salary
        payment.gross_salary = breakdown.gross_salary
        payment.bonus = Decimal("0")
        payment.deductions = Decimal("0")
        payment.absent_deduction = breakdown.absent_deduction
        payment.late_deduction = breakdown.late_deduction
        payment.loan_deduction = breakdown.loan_deduction
        payment.overtime_pay = breakdown.overtime_pay
        payment.net_salary = breakdown.net_salary
        payment.working_days = breakdown.working_days
        payment.present_days = breakdown.present_days
        payment.absent_days = breakdown.absent_days
        payment.late_days = breakdown.late_days
        payment.leave_days = breakdown.leave_days
        payment.status = SalaryStatus.PENDING
        await self.db.flush()
        return payment

    # ===========================================
    # SALARY PAYMENTS
    # ===========================================

    async def pay_salary(
        self,
        tenant_id: uuid.UUID,
        salary_payment_id: uuid.UUID,
        payment_method: str,
        transaction_ref: Optional[str] = None,
    ) -> SalaryPayment:
        """Mark a computed salary as paid out today."""
        result = await self.db.execute(
            select(SalaryPayment).where(
                and_(
                    SalaryPayment.tenant_id == tenant_id,
                    SalaryPayment.id == salary_payment_id,
                )
            )
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundException("Salary payment", salary_payment_id)

        payment.status = SalaryStatus.PAID
        payment.payment_date = date.today()
        payment.payment_method = payment_method
        payment.transaction_ref = transaction_ref
        await self.db.commit()
        await self.db.refresh(payment)
        return payment

    async def list_salary_payments(self, tenant_id: uuid.UUID, month: str) -> List[SalaryPayment]:
        parse_month(month)
        result = await self.db.execute(
            select(SalaryPayment)
            .where(and_(SalaryPayment.tenant_id == tenant_id, SalaryPayment.month == month))
            .order_by(SalaryPayment.created_at)
        )
        return list(result.scalars().all())

    async def list_payroll_runs(self, tenant_id: uuid.UUID, limit: int = 24) -> List[PayrollRun]:
        result = await self.db.execute(
            select(PayrollRun)
            .where(PayrollRun.tenant_id == tenant_id)
            .order_by(PayrollRun.month.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
