"""
ISP Manager - Point of Sale Models

Products and the sales, purchases and supplier payments that feed the
printable inventory summary.
"""

from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, Date, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, TenantMixin


class Product(BaseModel, TenantMixin):
    """Stock item sold over the counter (routers, cables, ONUs...)."""

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    barcode: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    purchase_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    sale_price: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    @property
    def code_value(self) -> str:
        """Value encoded on a printed label: barcode, else SKU, else id."""
        return self.barcode or self.sku or str(self.id)


class PosSale(BaseModel, TenantMixin):
    """Counter sale."""

    __tablename__ = "pos_sales"

    invoice_number: Mapped[str] = mapped_column(String(50), nullable=False)
    sale_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    customer_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )
    due_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )


class PurchaseOrder(BaseModel, TenantMixin):
    """Stock purchase from a supplier."""

    __tablename__ = "purchase_orders"

    order_number: Mapped[str] = mapped_column(String(50), nullable=False)
    order_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    supplier_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    total: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2), default=Decimal("0.00"), nullable=False,
    )

    @property
    def due_amount(self) -> Decimal:
        return self.total - (self.paid_amount or Decimal("0"))


class SupplierPayment(BaseModel, TenantMixin):
    """Money paid out to a supplier."""

    __tablename__ = "supplier_payments"

    supplier_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    amount: Mapped[Decimal] = mapped_column(Numeric(precision=15, scale=2), nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
