"""
ISP Manager - Leave Service

Leave types, leave balances and the leave request workflow:

    pending -> approved | rejected | cancelled

Only pending requests move; the three outcomes are final. Approval
charges the staff member's leave balance for the year and marks the
working days of the range as "leave" in attendance.
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.leave import LeaveBalance, LeaveRequest, LeaveStatus, LeaveType
from app.models.payroll import AttendanceStatus, Staff
from app.services.payroll_service import upsert_attendance
from app.utils.error_handling import (
    ErrorCode, InvalidTransitionException, NotFoundException, ValidationException,
)

logger = logging.getLogger(__name__)


class LeaveService:
    """Service for leave types, balances and requests."""

    def __init__(self, db: AsyncSession, weekend_days: Optional[frozenset] = None):
        self.db = db
        self.weekend_days = weekend_days if weekend_days is not None else settings.weekend_days_set

    # ===========================================
    # LEAVE TYPES
    # ===========================================

    async def create_leave_type(self, tenant_id: uuid.UUID, data: Dict[str, Any]) -> LeaveType:
        leave_type = LeaveType(tenant_id=tenant_id, **data)
        self.db.add(leave_type)
        await self.db.commit()
        await self.db.refresh(leave_type)
        return leave_type

    async def get_leave_type(self, tenant_id: uuid.UUID, leave_type_id: uuid.UUID) -> LeaveType:
        result = await self.db.execute(
            select(LeaveType).where(
                and_(LeaveType.tenant_id == tenant_id, LeaveType.id == leave_type_id)
            )
        )
        leave_type = result.scalar_one_or_none()
        if not leave_type:
            raise NotFoundException("Leave type", leave_type_id)
        return leave_type

    async def update_leave_type(
        self,
        tenant_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        data: Dict[str, Any],
    ) -> LeaveType:
        leave_type = await self.get_leave_type(tenant_id, leave_type_id)
        for key, value in data.items():
            setattr(leave_type, key, value)
        await self.db.commit()
        await self.db.refresh(leave_type)
        return leave_type

    async def deactivate_leave_type(self, tenant_id: uuid.UUID, leave_type_id: uuid.UUID) -> LeaveType:
        return await self.update_leave_type(tenant_id, leave_type_id, {"is_active": False})

    async def list_leave_types(self, tenant_id: uuid.UUID) -> List[LeaveType]:
        result = await self.db.execute(
            select(LeaveType)
            .where(and_(LeaveType.tenant_id == tenant_id, LeaveType.is_active == True))  # noqa: E712
            .order_by(LeaveType.name)
        )
        return list(result.scalars().all())

    # ===========================================
    # LEAVE BALANCES
    # ===========================================

    async def initialize_leave_balances(
        self,
        tenant_id: uuid.UUID,
        staff_id: uuid.UUID,
        year: int,
    ) -> List[LeaveBalance]:
        """
        Give a staff member a full allowance of every active leave type.

        Existing balances for the year are reset to the type's
        max_days_per_year with nothing used.
        """
        leave_types = await self.list_leave_types(tenant_id)
        balances = []
        for leave_type in leave_types:
            balance = await self._get_balance(tenant_id, staff_id, leave_type.id, year)
            if balance is None:
                balance = LeaveBalance(
                    tenant_id=tenant_id,
                    staff_id=staff_id,
                    leave_type_id=leave_type.id,
                    year=year,
                )
                self.db.add(balance)
            balance.total_days = leave_type.max_days_per_year
            balance.used_days = 0
            balances.append(balance)

        await self.db.commit()
        for balance in balances:
            await self.db.refresh(balance)
        return balances

    async def list_leave_balances(
        self,
        tenant_id: uuid.UUID,
        year: int,
        staff_id: Optional[uuid.UUID] = None,
    ) -> List[LeaveBalance]:
        query = select(LeaveBalance).where(
            and_(LeaveBalance.tenant_id == tenant_id, LeaveBalance.year == year)
        )
        if staff_id:
            query = query.where(LeaveBalance.staff_id == staff_id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _get_balance(
        self,
        tenant_id: uuid.UUID,
        staff_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        year: int,
    ) -> Optional[LeaveBalance]:
        result = await self.db.execute(
            select(LeaveBalance).where(
                and_(
                    LeaveBalance.tenant_id == tenant_id,
                    LeaveBalance.staff_id == staff_id,
                    LeaveBalance.leave_type_id == leave_type_id,
                    LeaveBalance.year == year,
                )
            )
        )
        return result.scalar_one_or_none()

    # ===========================================
    # LEAVE REQUESTS
    # ===========================================

    async def submit_leave_request(
        self,
        tenant_id: uuid.UUID,
        staff_id: uuid.UUID,
        leave_type_id: uuid.UUID,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
    ) -> LeaveRequest:
        """Create a pending request covering start_date..end_date inclusive."""
        if end_date < start_date:
            raise ValidationException(
                "End date cannot be before start date",
                field="end_date",
                code=ErrorCode.INVALID_DATE_RANGE,
            )

        staff = await self.db.execute(
            select(Staff.id).where(and_(Staff.tenant_id == tenant_id, Staff.id == staff_id))
        )
        if staff.scalar_one_or_none() is None:
            raise NotFoundException("Staff", staff_id)
        await self.get_leave_type(tenant_id, leave_type_id)

        request = LeaveRequest(
            tenant_id=tenant_id,
            staff_id=staff_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            total_days=(end_date - start_date).days + 1,
            reason=reason,
            status=LeaveStatus.PENDING,
        )
        self.db.add(request)
        await self.db.commit()
        await self.db.refresh(request)

        logger.info(f"Leave request {request.id} submitted: {request.total_days} day(s)")
        return request

    async def get_leave_request(self, tenant_id: uuid.UUID, request_id: uuid.UUID) -> LeaveRequest:
        result = await self.db.execute(
            select(LeaveRequest).where(
                and_(LeaveRequest.tenant_id == tenant_id, LeaveRequest.id == request_id)
            )
        )
        request = result.scalar_one_or_none()
        if not request:
            raise NotFoundException("Leave request", request_id)
        return request

    async def list_leave_requests(
        self,
        tenant_id: uuid.UUID,
        status: Optional[LeaveStatus] = None,
    ) -> List[LeaveRequest]:
        query = select(LeaveRequest).where(LeaveRequest.tenant_id == tenant_id)
        if status:
            query = query.where(LeaveRequest.status == status)
        result = await self.db.execute(query.order_by(LeaveRequest.created_at.desc()))
        return list(result.scalars().all())

    async def _pending_request(
        self,
        tenant_id: uuid.UUID,
        request_id: uuid.UUID,
        target: LeaveStatus,
    ) -> LeaveRequest:
        request = await self.get_leave_request(tenant_id, request_id)
        if request.status != LeaveStatus.PENDING:
            raise InvalidTransitionException("leave request", request.status.value, target.value)
        return request

    async def approve(
        self,
        tenant_id: uuid.UUID,
        request_id: uuid.UUID,
        approved_by: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        """
        Approve a pending request.

        Adds total_days to the (staff, leave type, current year) balance
        when one exists, without checking the allowance, and upserts a
        "leave" attendance row for every working day in the range.
        """
        request = await self._pending_request(tenant_id, request_id, LeaveStatus.APPROVED)
        now = datetime.now(timezone.utc)

        request.status = LeaveStatus.APPROVED
        request.approved_at = now
        request.approved_by = approved_by

        balance = await self._get_balance(
            tenant_id, request.staff_id, request.leave_type_id, now.year
        )
        if balance is not None:
            balance.used_days = balance.used_days + request.total_days

        day = request.start_date
        while day <= request.end_date:
            if day.weekday() not in self.weekend_days:
                await upsert_attendance(
                    self.db,
                    tenant_id,
                    request.staff_id,
                    day,
                    AttendanceStatus.LEAVE,
                    source="leave",
                    notes=f"Approved leave {request.id}",
                )
            day += timedelta(days=1)

        await self.db.commit()
        await self.db.refresh(request)
        logger.info(f"Leave request {request.id} approved")
        return request

    async def reject(
        self,
        tenant_id: uuid.UUID,
        request_id: uuid.UUID,
        rejection_reason: str,
        rejected_by: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        """Reject a pending request; a reason is required."""
        if not rejection_reason or not rejection_reason.strip():
            raise ValidationException("Rejection reason is required", field="rejection_reason")

        request = await self._pending_request(tenant_id, request_id, LeaveStatus.REJECTED)
        request.status = LeaveStatus.REJECTED
        request.approved_at = datetime.now(timezone.utc)
        request.approved_by = rejected_by
        request.rejection_reason = rejection_reason.strip()

        await self.db.commit()
        await self.db.refresh(request)
        return request

    async def cancel(self, tenant_id: uuid.UUID, request_id: uuid.UUID) -> LeaveRequest:
        """Withdraw a pending request. Balances and attendance are untouched."""
        request = await self._pending_request(tenant_id, request_id, LeaveStatus.CANCELLED)
        request.status = LeaveStatus.CANCELLED
        await self.db.commit()
        await self.db.refresh(request)
        return request
