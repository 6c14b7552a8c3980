"""
ISP Manager - Customer API

REST API for the customer mobile app and self-care portal, mounted at
/customer-api. Customers log in with their customer code plus PPPoE
username or phone and receive a signed token valid for 30 days.

Every response uses the envelope {"success": bool, "data": ..., "message": ...};
errors come back as {"success": false, "error": "..."}.
"""

import uuid
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_customer
from app.models.customer import BillStatus, Customer, DeviceCommandType
from app.services.customer_portal_service import CustomerPortalService
from app.schemas.customer_portal import (
    LoginRequest,
    VerifyRequest,
    ProfileUpdate,
    PaymentInitiateRequest,
    RechargeRequest,
    PackageChangeRequest,
    TicketCreate,
    CustomerSummary,
    CustomerProfile,
    VerifiedCustomer,
    PackageSummary,
    BillResponse,
    CustomerPaymentResponse,
    TicketResponse,
    DeviceCommandResponse,
)
from app.utils.error_handling import ErrorCode, NotFoundException, ValidationException


router = APIRouter()

PACKAGE_CHANGE_MESSAGE = "Package change request submitted. Our team will contact you shortly."


def _ok(data: Any = None, message: Optional[str] = None) -> Dict[str, Any]:
    response: Dict[str, Any] = {"success": True, "data": data}
    if message:
        response["message"] = message
    return response


def _tenant_header(value: Optional[str]) -> Optional[uuid.UUID]:
    if not value:
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        raise ValidationException(
            "Invalid x-tenant-id header", field="x-tenant-id", code=ErrorCode.INVALID_FORMAT,
        )


# ===========================================
# AUTHENTICATION
# ===========================================

@router.post("/auth/login", summary="Customer login")
async def login(
    data: LoginRequest,
    x_tenant_id: Optional[str] = Header(None, alias="x-tenant-id"),
    db: AsyncSession = Depends(get_async_session),
):
    service = CustomerPortalService(db)
    token, customer = await service.login(
        data.customer_code,
        username=data.username,
        phone=data.phone,
        tenant_id=_tenant_header(x_tenant_id),
    )
    return _ok({"token": token, "customer": CustomerSummary.model_validate(customer)})


@router.post("/auth/verify", summary="Verify a customer token")
async def verify(
    data: VerifyRequest,
    db: AsyncSession = Depends(get_async_session),
):
    valid, customer = await CustomerPortalService(db).verify(data.token)
    return _ok({
        "valid": valid,
        "customer": VerifiedCustomer.model_validate(customer) if customer else None,
    })


# ===========================================
# PROFILE
# ===========================================

@router.get("/profile", summary="Customer profile")
async def get_profile(customer: Customer = Depends(get_current_customer)):
    return _ok(CustomerProfile.model_validate(customer))


@router.put("/profile", summary="Update contact details")
async def update_profile(
    data: ProfileUpdate,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    customer = await CustomerPortalService(db).update_profile(
        customer, data.model_dump(exclude_unset=True)
    )
    return _ok(CustomerProfile.model_validate(customer), message="Profile updated")


# ===========================================
# NETWORK
# ===========================================

@router.get("/network/status", summary="Connection and ONU status")
async def network_status(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    return _ok(await CustomerPortalService(db).network_status(customer))


@router.get("/network/bandwidth", summary="Bandwidth over the last hour")
async def bandwidth_history(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    return _ok(await CustomerPortalService(db).bandwidth_history(customer))


# ===========================================
# BILLING
# ===========================================

@router.get("/bills", summary="Customer bills")
async def list_bills(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    bill_status: Optional[BillStatus] = Query(None, alias="status"),
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    bills, total = await CustomerPortalService(db).list_bills(
        customer, limit=limit, offset=offset, status=bill_status
    )
    return _ok({
        "bills": [BillResponse.model_validate(b) for b in bills],
        "pagination": {"total": total, "limit": limit, "offset": offset},
    })


@router.get("/bills/{bill_id}", summary="A single bill")
async def get_bill(
    bill_id: str,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    try:
        key = uuid.UUID(bill_id)
    except ValueError:
        raise NotFoundException("Bill", bill_id, message="Bill not found")
    bill = await CustomerPortalService(db).get_bill(customer, key)
    return _ok(BillResponse.model_validate(bill))


@router.get("/payments", summary="Payment history")
async def list_payments(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    payments, total = await CustomerPortalService(db).list_payments(
        customer, limit=limit, offset=offset
    )
    return _ok({
        "payments": [CustomerPaymentResponse.model_validate(p) for p in payments],
        "pagination": {"total": total, "limit": limit, "offset": offset},
    })


@router.post("/payments/initiate", summary="Start a bill payment")
async def initiate_payment(
    data: PaymentInitiateRequest,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    payment = await CustomerPortalService(db).initiate_payment(
        customer, data.amount, data.payment_method, bill_id=data.bill_id
    )
    return _ok(
        {"payment_id": payment.id, "amount": float(payment.amount), "status": payment.status},
        message="Payment initiated",
    )


@router.post("/recharge", summary="Recharge the connection")
async def recharge(
    data: RechargeRequest,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    payment = await CustomerPortalService(db).recharge(
        customer, data.amount, data.payment_method, months=data.months
    )
    return _ok(
        {"payment_id": payment.id, "amount": float(payment.amount), "status": payment.status},
        message="Recharge initiated",
    )


# ===========================================
# DEVICE CONTROL
# ===========================================

async def _device_command(command: DeviceCommandType, customer: Customer, db: AsyncSession) -> Dict[str, Any]:
    device_command, message = await CustomerPortalService(db).queue_device_command(customer, command)
    return _ok(DeviceCommandResponse.model_validate(device_command), message=message)


@router.post("/device/reboot-router", summary="Reboot the customer's router")
async def reboot_router(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    return await _device_command(DeviceCommandType.REBOOT_ROUTER, customer, db)


@router.post("/device/reboot-onu", summary="Reboot the customer's ONU")
async def reboot_onu(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    return await _device_command(DeviceCommandType.REBOOT_ONU, customer, db)


@router.post("/device/disconnect", summary="Drop the current PPPoE session")
async def disconnect(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    return await _device_command(DeviceCommandType.DISCONNECT, customer, db)


# ===========================================
# PACKAGES
# ===========================================

@router.get("/packages", summary="Available packages")
async def list_packages(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    packages = await CustomerPortalService(db).list_packages(customer)
    return _ok([PackageSummary.model_validate(p) for p in packages])


@router.post("/packages/change", summary="Request a package change")
async def request_package_change(
    data: PackageChangeRequest,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    ticket = await CustomerPortalService(db).request_package_change(customer, data.package_id)
    return _ok(
        {
            "request_type": "package_change",
            "package_id": data.package_id,
            "ticket_id": ticket.ticket_number,
        },
        message=PACKAGE_CHANGE_MESSAGE,
    )


# ===========================================
# SUPPORT
# ===========================================

@router.get("/support/tickets", summary="Customer support tickets")
async def list_tickets(
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    tickets = await CustomerPortalService(db).list_tickets(customer)
    return _ok([TicketResponse.model_validate(t) for t in tickets])


@router.post("/support/tickets", summary="Open a support ticket")
async def create_ticket(
    data: TicketCreate,
    customer: Customer = Depends(get_current_customer),
    db: AsyncSession = Depends(get_async_session),
):
    ticket = await CustomerPortalService(db).create_ticket(
        customer, data.subject, data.message, category=data.category
    )
    return _ok({"ticket_id": ticket.ticket_number}, message="Support ticket created")


# Must stay last: anything not matched above
@router.api_route(
    "/{path:path}",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
async def endpoint_not_found(path: str):
    return JSONResponse(status_code=404, content={"success": False, "error": "Endpoint not found"})
