"""
ISP Manager - Leave Router

Leave types, yearly balances and the leave request workflow.
"""

import uuid
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_tenant_id, get_current_user_id
from app.models.leave import LeaveStatus
from app.services.leave_service import LeaveService
from app.schemas.leave import (
    LeaveTypeCreate,
    LeaveTypeUpdate,
    LeaveTypeResponse,
    LeaveRequestCreate,
    LeaveRejectRequest,
    LeaveRequestResponse,
    LeaveBalanceInitialize,
    LeaveBalanceResponse,
)


router = APIRouter()


def _request_response(request) -> LeaveRequestResponse:
    response = LeaveRequestResponse.model_validate(request)
    response.leave_type_name = request.leave_type.name if request.leave_type else None
    return response


# ===========================================
# LEAVE TYPES
# ===========================================

@router.post(
    "/types",
    response_model=LeaveTypeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a leave type",
)
async def create_leave_type(
    data: LeaveTypeCreate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    return await LeaveService(db).create_leave_type(tenant_id, data.model_dump())


@router.get("/types", response_model=List[LeaveTypeResponse], summary="List active leave types")
async def list_leave_types(
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    return await LeaveService(db).list_leave_types(tenant_id)


@router.patch("/types/{leave_type_id}", response_model=LeaveTypeResponse, summary="Update a leave type")
async def update_leave_type(
    leave_type_id: uuid.UUID,
    data: LeaveTypeUpdate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    return await LeaveService(db).update_leave_type(
        tenant_id, leave_type_id, data.model_dump(exclude_unset=True)
    )


@router.delete("/types/{leave_type_id}", response_model=LeaveTypeResponse, summary="Deactivate a leave type")
async def deactivate_leave_type(
    leave_type_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    return await LeaveService(db).deactivate_leave_type(tenant_id, leave_type_id)


# ===========================================
# LEAVE BALANCES
# ===========================================

@router.post(
    "/balances/initialize",
    response_model=List[LeaveBalanceResponse],
    summary="Initialize a staff member's leave balances",
    description="One balance per active leave type, reset to the type's yearly allowance.",
)
async def initialize_leave_balances(
    data: LeaveBalanceInitialize,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    return await LeaveService(db).initialize_leave_balances(tenant_id, data.staff_id, data.year)


@router.get("/balances", response_model=List[LeaveBalanceResponse], summary="Leave balances for a year")
async def list_leave_balances(
    year: int = Query(..., ge=2000, le=2100),
    staff_id: Optional[uuid.UUID] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    return await LeaveService(db).list_leave_balances(tenant_id, year, staff_id=staff_id)


# ===========================================
# LEAVE REQUESTS
# ===========================================

@router.post(
    "/requests",
    response_model=LeaveRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a leave request",
)
async def submit_leave_request(
    data: LeaveRequestCreate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    request = await LeaveService(db).submit_leave_request(
        tenant_id,
        data.staff_id,
        data.leave_type_id,
        data.start_date,
        data.end_date,
        reason=data.reason,
    )
    return _request_response(request)


@router.get("/requests", response_model=List[LeaveRequestResponse], summary="List leave requests")
async def list_leave_requests(
    request_status: Optional[LeaveStatus] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    requests = await LeaveService(db).list_leave_requests(tenant_id, status=request_status)
    return [_request_response(r) for r in requests]


@router.post(
    "/requests/{request_id}/approve",
    response_model=LeaveRequestResponse,
    summary="Approve a pending leave request",
    description="Charges the leave balance and marks the working days of the range as leave.",
)
async def approve_leave_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
    user_id: Optional[uuid.UUID] = Depends(get_current_user_id),
):
    request = await LeaveService(db).approve(tenant_id, request_id, approved_by=user_id)
    return _request_response(request)


@router.post(
    "/requests/{request_id}/reject",
    response_model=LeaveRequestResponse,
    summary="Reject a pending leave request",
)
async def reject_leave_request(
    request_id: uuid.UUID,
    data: LeaveRejectRequest,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
    user_id: Optional[uuid.UUID] = Depends(get_current_user_id),
):
    request = await LeaveService(db).reject(
        tenant_id, request_id, data.rejection_reason, rejected_by=user_id
    )
    return _request_response(request)


@router.post(
    "/requests/{request_id}/cancel",
    response_model=LeaveRequestResponse,
    summary="Cancel a pending leave request",
)
async def cancel_leave_request(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    request = await LeaveService(db).cancel(tenant_id, request_id)
    return _request_response(request)
