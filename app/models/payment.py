"""
ISP Manager - Payment Models

Online payments initiated through a payment gateway, plus the gateway
credentials: per-tenant (`tenant_payment_gateways`) with a platform-wide
fallback (`payment_gateway_settings`).
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, Numeric, String, Text, JSON,
    Enum as SQLEnum, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TenantMixin


class PaymentStatus(str, Enum):
    """Gateway payment status."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentPurpose(str, Enum):
    """What a payment settles."""
    SUBSCRIPTION = "subscription"
    CUSTOMER_BILL = "customer_bill"


class Payment(BaseModel, TenantMixin):
    """
    A payment routed through an external gateway (or recorded manually).

    `gateway_response` keeps the redirect URLs and purpose captured at
    initiation, and later the provider's callback body.
    """

    __tablename__ = "payments"

    amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    payment_method: Mapped[str] = mapped_column(
        String(30), nullable=False,
        comment="Gateway identifier, e.g. sslcommerz, bkash, manual",
    )
    payment_for: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(PaymentStatus),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    invoice_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="SET NULL"),
        nullable=True,
    )
    gateway_response: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Payment(id={self.id}, gateway={self.payment_method}, status={self.status})>"


class TenantPaymentGateway(BaseModel, TenantMixin):
    """Gateway credentials configured by a tenant."""

    __tablename__ = "tenant_payment_gateways"

    gateway: Mapped[str] = mapped_column(String(30), nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sandbox_mode: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    config: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "gateway", name="uq_tenant_payment_gateways_tenant_gateway"),
    )


class PaymentGatewaySetting(BaseModel):
    """Platform-wide gateway credentials used when a tenant has none."""

    __tablename__ = "payment_gateway_settings"

    gateway: Mapped[str] = mapped_column(String(30), unique=True, nullable=False)
    display_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    is_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    sandbox_mode: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    config: Mapped[Dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
