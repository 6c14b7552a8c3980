"""
ISP Manager - Printable Reports Router

Standalone HTML documents that open in a new tab and print themselves.
"""

import uuid
from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_tenant_id
from app.schemas.reports import ProductCodesRequest
from app.services.report_service import ReportService

router = APIRouter()


@router.get(
    "/inventory-summary",
    response_class=HTMLResponse,
    summary="Printable inventory summary",
    description="Sales, purchases, collections and supplier payments between start and end, inclusive.",
)
async def inventory_summary(
    start: date = Query(..., description="First day (YYYY-MM-DD)"),
    end: date = Query(..., description="Last day (YYYY-MM-DD)"),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    html = await ReportService(db).render_inventory_summary(tenant_id, start, end)
    return HTMLResponse(content=html)


@router.post(
    "/product-codes",
    response_class=HTMLResponse,
    summary="Printable product QR labels",
)
async def product_codes(
    data: ProductCodesRequest,
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    html = await ReportService(db).render_product_codes(
        tenant_id,
        [item.model_dump() for item in data.items],
        columns=data.columns,
        size=data.size,
        show_price=data.show_price,
        show_name=data.show_name,
    )
    return HTMLResponse(content=html)
