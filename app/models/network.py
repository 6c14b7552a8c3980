"""
ISP Manager - Network Device Models

OLTs and the ONUs behind them. Rows are written by the OLT polling
server; this service only reads them (portal status, CSV export).
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, TenantMixin


class OLT(BaseModel, TenantMixin):
    """Optical line terminal."""

    __tablename__ = "olts"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    brand: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    onus: Mapped[List["ONU"]] = relationship("ONU", back_populates="olt")

    def __repr__(self) -> str:
        return f"<OLT(name={self.name}, ip={self.ip_address})>"


class ONU(BaseModel, TenantMixin):
    """Optical network unit at a subscriber's premises."""

    __tablename__ = "onus"

    olt_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("olts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    pon_port: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    onu_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mac_address: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    serial_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    router_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    router_mac: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    pppoe_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    rx_power: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=6, scale=2), nullable=True, comment="dBm",
    )
    tx_power: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(precision=6, scale=2), nullable=True, comment="dBm",
    )
    status: Mapped[str] = mapped_column(String(20), default="unknown", nullable=False)
    last_online: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_offline: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    alive_time: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)

    olt: Mapped["OLT"] = relationship("OLT", back_populates="onus", lazy="selectin")

    def __repr__(self) -> str:
        return f"<ONU(name={self.name}, status={self.status})>"
