"""
ISP Manager - Tenant Models

An ISP operator using the platform is a tenant. Every business row is
scoped to one tenant. Tenants are billed for their platform subscription
through `Invoice` rows, which the payment callback marks as paid.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, Date, DateTime, Numeric, String, Text, Enum as SQLEnum,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TenantMixin


class InvoiceStatus(str, Enum):
    """Subscription invoice status."""
    UNPAID = "unpaid"
    PAID = "paid"
    CANCELLED = "cancelled"


class Tenant(BaseModel):
    """An ISP operator account."""

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[Optional[str]] = mapped_column(String(100), unique=True, nullable=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name={self.name})>"


class Invoice(BaseModel, TenantMixin):
    """Platform subscription invoice issued to a tenant."""

    __tablename__ = "invoices"

    invoice_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), nullable=False,
    )
    status: Mapped[InvoiceStatus] = mapped_column(
        SQLEnum(InvoiceStatus),
        default=InvoiceStatus.UNPAID,
        nullable=False,
    )
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    paid_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Invoice(number={self.invoice_number}, status={self.status})>"
