"""
ISP Manager - Payments Router

Public endpoints the billing pages and payment gateways talk to:
- POST /initiate-payment: start a checkout with the chosen gateway
- GET|POST /payment-callback: gateway return and IPN target; always
  answers with a redirect

Admin endpoints (under /api/v1/payments) list payment records and manage
the tenant's gateway credentials.
"""

import logging
import uuid
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request, status
from fastapi.responses import RedirectResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_tenant_id
from app.models.payment import PaymentStatus, TenantPaymentGateway
from app.services.payment_gateways import GATEWAY_REGISTRY
from app.services.payment_service import PaymentService
from app.schemas.payment import (
    GatewayConfigResponse,
    GatewayConfigUpdate,
    GatewayInfo,
    PaymentList,
    PaymentResponse,
)

logger = logging.getLogger(__name__)

public_router = APIRouter()
router = APIRouter()


def _gateway_config_response(row: TenantPaymentGateway) -> GatewayConfigResponse:
    return GatewayConfigResponse(
        gateway=row.gateway,
        display_name=row.display_name,
        is_enabled=row.is_enabled,
        sandbox_mode=row.sandbox_mode,
        configured_keys=sorted(key for key, value in (row.config or {}).items() if value not in (None, "")),
    )


async def _callback_body(request: Request) -> Dict[str, Any]:
    """Query parameters overlaid with the JSON or form body, if any."""
    body: Dict[str, Any] = dict(request.query_params)
    if request.method != "POST":
        return body

    content_type = request.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            payload = await request.json()
        except ValueError:
            logger.warning("Payment callback with malformed JSON body")
            payload = None
        if isinstance(payload, dict):
            body.update(payload)
    else:
        form = await request.form()
        body.update({key: value for key, value in form.items() if isinstance(value, str)})
    return body


# ===========================================
# PUBLIC ENDPOINTS
# ===========================================

@public_router.post(
    "/initiate-payment",
    summary="Initiate a gateway payment",
    description=(
        "Records a pending payment and returns the gateway checkout URL. "
        "Manual payments return no URL and an instruction message."
    ),
)
async def initiate_payment(
    payload: Dict[str, Any] = Body(...),
    db: AsyncSession = Depends(get_async_session),
):
    service = PaymentService(db)
    return await service.initiate_payment(payload)


@public_router.api_route(
    "/payment-callback",
    methods=["GET", "POST"],
    summary="Gateway return and IPN callback",
    response_class=RedirectResponse,
    status_code=status.HTTP_302_FOUND,
)
async def payment_callback(
    request: Request,
    db: AsyncSession = Depends(get_async_session),
):
    params = dict(request.query_params)
    body = await _callback_body(request)

    service = PaymentService(db)
    redirect_url = await service.handle_callback(params.get("gateway"), body, params)
    return RedirectResponse(url=redirect_url, status_code=status.HTTP_302_FOUND)


# ===========================================
# ADMIN ENDPOINTS
# ===========================================

@router.get("/gateways", response_model=List[GatewayInfo], summary="Supported payment gateways")
async def list_supported_gateways():
    return [
        GatewayInfo(name=name, display_name=gateway_class.display_name or name)
        for name, gateway_class in sorted(GATEWAY_REGISTRY.items())
    ]


@router.get(
    "/gateway-configs",
    response_model=List[GatewayConfigResponse],
    summary="Tenant gateway configurations",
)
async def list_gateway_configs(
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    rows = await PaymentService(db).list_gateway_configs(tenant_id)
    return [_gateway_config_response(row) for row in rows]


@router.put(
    "/gateway-configs/{gateway}",
    response_model=GatewayConfigResponse,
    summary="Configure a gateway for the tenant",
)
async def save_gateway_config(
    gateway: str,
    data: GatewayConfigUpdate,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    row = await PaymentService(db).save_gateway_config(
        tenant_id, gateway, data.model_dump(exclude_unset=True)
    )
    return _gateway_config_response(row)


@router.get("", response_model=PaymentList, summary="List payment records")
async def list_payments(
    payment_status: Optional[PaymentStatus] = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    payments, total = await PaymentService(db).list_payments(
        tenant_id, status=payment_status, limit=limit, offset=offset
    )
    return PaymentList(
        items=[PaymentResponse.model_validate(p) for p in payments],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{payment_id}", response_model=PaymentResponse, summary="Get a payment record")
async def get_payment(
    payment_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    return await PaymentService(db).get_payment(tenant_id, payment_id)
