"""
ISP Manager - Customer Models

Subscribers of an ISP tenant and everything the customer portal exposes:
packages, bills, payments, recharges, support tickets, queued device
commands and stored bandwidth samples.
"""

import uuid
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import (
    BigInteger, Boolean, Date, DateTime, ForeignKey, Integer, Numeric, String, Text, JSON,
    Enum as SQLEnum, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, TenantMixin


# ===========================================
# ENUMS
# ===========================================

class CustomerStatus(str, Enum):
    """Subscriber connection status."""
    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    PENDING = "pending"
    CANCELLED = "cancelled"


class BillStatus(str, Enum):
    """Customer bill status."""
    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"


class CustomerPaymentStatus(str, Enum):
    """Customer payment status."""
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class TicketStatus(str, Enum):
    """Support ticket status."""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class DeviceCommandType(str, Enum):
    """Commands the polling server executes on behalf of a customer."""
    REBOOT_ROUTER = "reboot_router"
    REBOOT_ONU = "reboot_onu"
    DISCONNECT = "disconnect"


# ===========================================
# PACKAGES & CUSTOMERS
# ===========================================

class ISPPackage(BaseModel, TenantMixin):
    """Internet package offered by a tenant."""

    __tablename__ = "isp_packages"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    download_speed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    upload_speed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    speed_unit: Mapped[str] = mapped_column(String(10), default="mbps", nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    validity_days: Mapped[int] = mapped_column(Integer, default=30, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class Customer(BaseModel, TenantMixin):
    """An ISP subscriber."""

    __tablename__ = "customers"

    customer_code: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    address: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    pppoe_username: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, index=True)
    package_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("isp_packages.id", ondelete="SET NULL"),
        nullable=True,
    )
    onu_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("onus.id", ondelete="SET NULL"),
        nullable=True,
    )
    status: Mapped[CustomerStatus] = mapped_column(
        SQLEnum(CustomerStatus),
        default=CustomerStatus.PENDING,
        nullable=False,
    )
    monthly_bill: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    due_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    connection_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expiry_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_payment_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    package: Mapped[Optional["ISPPackage"]] = relationship("ISPPackage", lazy="selectin")

    __table_args__ = (
        UniqueConstraint("tenant_id", "customer_code", name="uq_customers_tenant_code"),
    )

    def __repr__(self) -> str:
        return f"<Customer(code={self.customer_code}, status={self.status})>"


# ===========================================
# BILLING
# ===========================================

class CustomerBill(BaseModel, TenantMixin):
    """Monthly bill issued to a customer."""

    __tablename__ = "customer_bills"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bill_number: Mapped[str] = mapped_column(String(50), nullable=False)
    billing_month: Mapped[str] = mapped_column(String(7), nullable=False, comment="YYYY-MM")
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    bill_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[BillStatus] = mapped_column(
        SQLEnum(BillStatus),
        default=BillStatus.UNPAID,
        nullable=False,
    )
    paid_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)


class CustomerPayment(BaseModel, TenantMixin):
    """Money received from (or promised by) a customer."""

    __tablename__ = "customer_payments"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    bill_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customer_bills.id", ondelete="SET NULL"),
        nullable=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    payment_gateway: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    transaction_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[CustomerPaymentStatus] = mapped_column(
        SQLEnum(CustomerPaymentStatus),
        default=CustomerPaymentStatus.PENDING,
        nullable=False,
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class CustomerRecharge(BaseModel, TenantMixin):
    """Record of a connection period extension."""

    __tablename__ = "customer_recharges"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    months: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    old_expiry: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    new_expiry: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[str] = mapped_column(String(30), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="completed", nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


# ===========================================
# PORTAL SUPPORT
# ===========================================

class SupportTicket(BaseModel, TenantMixin):
    """Customer support ticket."""

    __tablename__ = "support_tickets"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ticket_number: Mapped[str] = mapped_column(String(30), nullable=False, unique=True)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(50), default="general", nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="medium", nullable=False)
    status: Mapped[TicketStatus] = mapped_column(
        SQLEnum(TicketStatus),
        default=TicketStatus.OPEN,
        nullable=False,
    )


class DeviceCommand(BaseModel, TenantMixin):
    """A device action requested from the portal, picked up by the polling server."""

    __tablename__ = "device_commands"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
    )
    onu_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("onus.id", ondelete="SET NULL"),
        nullable=True,
    )
    command: Mapped[DeviceCommandType] = mapped_column(SQLEnum(DeviceCommandType), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="queued", nullable=False)
    payload: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON, nullable=True)
    executed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class BandwidthSample(BaseModel, TenantMixin):
    """Traffic counter sample written by the polling server."""

    __tablename__ = "bandwidth_samples"

    customer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("customers.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sampled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    rx_bps: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
    tx_bps: Mapped[int] = mapped_column(BigInteger, default=0, nullable=False)
