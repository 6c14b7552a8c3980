"""
ISP Manager - Leave Service Tests

Leave request workflow, balances and the attendance rows approval writes.
"""

import pytest
from datetime import date, datetime, timezone

from sqlalchemy import select

from app.models.leave import LeaveStatus
from app.models.payroll import AttendanceStatus, StaffAttendance
from app.services.leave_service import LeaveService
from app.utils.error_handling import (
    ErrorCode, InvalidTransitionException, NotFoundException, ValidationException,
)


# Thursday 2024-04-04 .. Monday 2024-04-08: 5 calendar days, 3 weekdays
LEAVE_START = date(2024, 4, 4)
LEAVE_END = date(2024, 4, 8)


@pytest.fixture
def leave_service(db_session):
    return LeaveService(db_session, weekend_days=frozenset({5, 6}))


async def submit(leave_service, tenant, staff, leave_type):
    return await leave_service.submit_leave_request(
        tenant.id, staff.id, leave_type.id, LEAVE_START, LEAVE_END, reason="Family wedding",
    )


class TestSubmit:
    @pytest.mark.asyncio
    async def test_total_days_is_inclusive_calendar_range(self, leave_service, tenant, staff, leave_type):
        request = await submit(leave_service, tenant, staff, leave_type)

        assert request.status == LeaveStatus.PENDING
        assert request.total_days == 5

    @pytest.mark.asyncio
    async def test_single_day(self, leave_service, tenant, staff, leave_type):
        request = await leave_service.submit_leave_request(
            tenant.id, staff.id, leave_type.id, LEAVE_START, LEAVE_START,
        )
        assert request.total_days == 1

    @pytest.mark.asyncio
    async def test_end_before_start_rejected(self, leave_service, tenant, staff, leave_type):
        with pytest.raises(ValidationException) as exc_info:
            await leave_service.submit_leave_request(
                tenant.id, staff.id, leave_type.id, LEAVE_END, LEAVE_START,
            )
        assert exc_info.value.message == "End date cannot be before start date"
        assert exc_info.value.code == ErrorCode.INVALID_DATE_RANGE

    @pytest.mark.asyncio
    async def test_leave_type_of_other_tenant(self, leave_service, other_tenant, staff, leave_type):
        with pytest.raises(NotFoundException):
            await leave_service.submit_leave_request(
                other_tenant.id, staff.id, leave_type.id, LEAVE_START, LEAVE_END,
            )


class TestApprove:
    @pytest.mark.asyncio
    async def test_approval_charges_balance(self, leave_service, tenant, staff, leave_type):
        year = datetime.now(timezone.utc).year
        balances = await leave_service.initialize_leave_balances(tenant.id, staff.id, year)
        assert len(balances) == 1
        assert balances[0].remaining_days == 14

        request = await submit(leave_service, tenant, staff, leave_type)
        approved = await leave_service.approve(tenant.id, request.id)

        assert approved.status == LeaveStatus.APPROVED
        assert approved.approved_at is not None

        balance = (await leave_service.list_leave_balances(tenant.id, year, staff_id=staff.id))[0]
        assert balance.used_days == 5
        assert balance.remaining_days == 9

    @pytest.mark.asyncio
    async def test_approval_marks_working_days_as_leave(self, leave_service, db_session, tenant, staff, leave_type):
        request = await submit(leave_service, tenant, staff, leave_type)
        await leave_service.approve(tenant.id, request.id)

        result = await db_session.execute(
            select(StaffAttendance)
            .where(StaffAttendance.staff_id == staff.id)
            .order_by(StaffAttendance.attendance_date)
        )
        rows = list(result.scalars().all())

        assert [row.attendance_date for row in rows] == [
            date(2024, 4, 4), date(2024, 4, 5), date(2024, 4, 8),
        ]
        assert all(row.status == AttendanceStatus.LEAVE for row in rows)
        assert all(row.source == "leave" for row in rows)

    @pytest.mark.asyncio
    async def test_friday_to_sunday_marks_only_friday(self, leave_service, db_session, tenant, staff, leave_type):
        request = await leave_service.submit_leave_request(
            tenant.id, staff.id, leave_type.id, date(2024, 1, 5), date(2024, 1, 7),
        )
        assert request.total_days == 3

        await leave_service.approve(tenant.id, request.id)

        result = await db_session.execute(
            select(StaffAttendance.attendance_date, StaffAttendance.status)
            .where(StaffAttendance.staff_id == staff.id)
        )
        assert [tuple(row) for row in result.all()] == [(date(2024, 1, 5), AttendanceStatus.LEAVE)]

    @pytest.mark.asyncio
    async def test_approval_without_balance_still_succeeds(self, leave_service, tenant, staff, leave_type):
        request = await submit(leave_service, tenant, staff, leave_type)
        approved = await leave_service.approve(tenant.id, request.id)
        assert approved.status == LeaveStatus.APPROVED

    @pytest.mark.asyncio
    async def test_allowance_is_not_enforced(self, leave_service, tenant, staff, leave_type):
        year = datetime.now(timezone.utc).year
        await leave_service.initialize_leave_balances(tenant.id, staff.id, year)

        request = await leave_service.submit_leave_request(
            tenant.id, staff.id, leave_type.id, date(2024, 4, 1), date(2024, 4, 20),
        )
        await leave_service.approve(tenant.id, request.id)

        balance = (await leave_service.list_leave_balances(tenant.id, year))[0]
        assert balance.used_days == 20
        assert balance.remaining_days == -6


class TestFinalStates:
    """Only pending requests can move."""

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, leave_service, tenant, staff, leave_type):
        request = await submit(leave_service, tenant, staff, leave_type)
        with pytest.raises(ValidationException):
            await leave_service.reject(tenant.id, request.id, "   ")

    @pytest.mark.asyncio
    async def test_reject(self, leave_service, tenant, staff, leave_type):
        request = await submit(leave_service, tenant, staff, leave_type)
        rejected = await leave_service.reject(tenant.id, request.id, "Peak season")

        assert rejected.status == LeaveStatus.REJECTED
        assert rejected.rejection_reason == "Peak season"

    @pytest.mark.asyncio
    async def test_cancel_leaves_attendance_alone(self, leave_service, db_session, tenant, staff, leave_type):
        request = await submit(leave_service, tenant, staff, leave_type)
        cancelled = await leave_service.cancel(tenant.id, request.id)

        assert cancelled.status == LeaveStatus.CANCELLED
        rows = await db_session.execute(select(StaffAttendance))
        assert rows.scalars().all() == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("first", ["approve", "reject", "cancel"])
    async def test_decided_request_cannot_move_again(self, leave_service, tenant, staff, leave_type, first):
        request = await submit(leave_service, tenant, staff, leave_type)
        if first == "approve":
            await leave_service.approve(tenant.id, request.id)
        elif first == "reject":
            await leave_service.reject(tenant.id, request.id, "No cover")
        else:
            await leave_service.cancel(tenant.id, request.id)

        with pytest.raises(InvalidTransitionException):
            await leave_service.approve(tenant.id, request.id)
        with pytest.raises(InvalidTransitionException):
            await leave_service.cancel(tenant.id, request.id)

    @pytest.mark.asyncio
    async def test_list_by_status(self, leave_service, tenant, staff, leave_type):
        first = await submit(leave_service, tenant, staff, leave_type)
        await submit(leave_service, tenant, staff, leave_type)
        await leave_service.approve(tenant.id, first.id)

        pending = await leave_service.list_leave_requests(tenant.id, LeaveStatus.PENDING)
        approved = await leave_service.list_leave_requests(tenant.id, LeaveStatus.APPROVED)

        assert len(pending) == 1
        assert [r.id for r in approved] == [first.id]
