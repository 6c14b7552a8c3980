"""
ISP Manager - ONU Export Service

CSV export of the ONU inventory for the network dashboard.
"""

import csv
import io
import uuid
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.network import OLT, ONU

ONU_CSV_HEADERS = [
    "OLT",
    "PON Port",
    "ONU Name",
    "Router Name",
    "PPPoE Username",
    "MAC Address",
    "Serial Number",
    "RX Power",
    "TX Power",
    "Status",
    "Last Online",
]


def onu_csv_filename(export_date: Optional[date] = None) -> str:
    return f"onu-devices-{(export_date or date.today()).isoformat()}.csv"


def _cell(value) -> str:
    return "" if value is None else str(value)


def onus_to_csv(onus: Iterable[ONU]) -> str:
    """Render ONUs as CSV with every field quoted."""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(ONU_CSV_HEADERS)
    for onu in onus:
        writer.writerow([
            _cell(onu.olt.name if onu.olt else None),
            _cell(onu.pon_port),
            _cell(onu.name),
            _cell(onu.router_name),
            _cell(onu.pppoe_username),
            _cell(onu.mac_address),
            _cell(onu.serial_number),
            _cell(onu.rx_power),
            _cell(onu.tx_power),
            _cell(onu.status),
            onu.last_online.strftime("%Y-%m-%d %H:%M:%S") if onu.last_online else "",
        ])
    return output.getvalue()


class ONUExportService:
    """Builds ONU exports for a tenant."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_onus(
        self,
        tenant_id: uuid.UUID,
        olt_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
    ) -> List[ONU]:
        conditions = [ONU.tenant_id == tenant_id]
        if olt_id:
            conditions.append(ONU.olt_id == olt_id)
        if status:
            conditions.append(ONU.status == status)

        result = await self.db.execute(
            select(ONU)
            .join(OLT, ONU.olt_id == OLT.id)
            .where(and_(*conditions))
            .order_by(OLT.name, ONU.pon_port, ONU.onu_index, ONU.name)
        )
        return list(result.scalars().all())

    async def export_csv(
        self,
        tenant_id: uuid.UUID,
        olt_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
    ) -> str:
        return onus_to_csv(await self.list_onus(tenant_id, olt_id, status))
