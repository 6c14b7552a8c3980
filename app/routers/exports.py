"""
Export and Download Router

CSV downloads of network inventory.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_current_tenant_id
from app.services.onu_export_service import ONUExportService, onu_csv_filename

router = APIRouter()


@router.get(
    "/onus.csv",
    summary="Export ONUs as CSV",
    description="Every field is quoted. Filter by OLT and/or ONU status.",
)
async def export_onus_csv(
    olt_id: Optional[uuid.UUID] = Query(None),
    onu_status: Optional[str] = Query(None, alias="status"),
    db: AsyncSession = Depends(get_async_session),
    tenant_id: uuid.UUID = Depends(get_current_tenant_id),
):
    content = await ONUExportService(db).export_csv(tenant_id, olt_id=olt_id, status=onu_status)

    return StreamingResponse(
        iter([content]),
        media_type="text/csv",
        headers={
            "Content-Disposition": f"attachment; filename={onu_csv_filename(date.today())}"
        },
    )
