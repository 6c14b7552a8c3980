"""
ISP Manager - Printable Report Service

Standalone HTML documents meant to be opened in a new tab and printed:
the inventory summary for a date range and QR label sheets for products.
"""

import base64
import io
import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Sequence

import qrcode
import qrcode.image.svg
from fastapi.templating import Jinja2Templates
from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import Customer, CustomerPayment, CustomerPaymentStatus
from app.models.pos import PosSale, Product, PurchaseOrder, SupplierPayment
from app.models.tenant import Tenant
from app.utils.error_handling import ErrorCode, NotFoundException, ValidationException

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

LABEL_COLUMN_CHOICES = (3, 4, 5, 6)
LABEL_QR_SIZES = {"small": 80, "medium": 100, "large": 130}
CURRENCY_SYMBOL = "৳"


def format_money(value: Any) -> str:
    """Thousands separators, decimals only when there are any: 1234.50 -> 1,234.5"""
    amount = Decimal(str(value or 0))
    if amount == amount.to_integral_value():
        return f"{amount:,.0f}"
    return f"{amount.normalize():,f}"


templates.env.filters["money"] = format_money


def qr_data_uri(value: str) -> str:
    """QR code for `value` as an SVG data URI usable in an <img> tag."""
    image = qrcode.make(value, image_factory=qrcode.image.svg.SvgPathImage, border=1)
    buffer = io.BytesIO()
    image.save(buffer)
    return "data:image/svg+xml;base64," + base64.b64encode(buffer.getvalue()).decode()


# ===========================================
# INVENTORY SUMMARY
# ===========================================

@dataclass
class InventoryTotals:
    total_sales: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    total_due: Decimal = Decimal("0")
    total_purchases: Decimal = Decimal("0")
    total_purchase_paid: Decimal = Decimal("0")
    total_purchase_due: Decimal = Decimal("0")
    total_collections: Decimal = Decimal("0")
    total_supplier_paid: Decimal = Decimal("0")

    @property
    def gross_profit(self) -> Decimal:
        return self.total_sales - self.total_purchases

    @property
    def net_cash_flow(self) -> Decimal:
        return self.total_collections - self.total_supplier_paid


@dataclass
class InventorySummary:
    start: date
    end: date
    sales: List[PosSale] = field(default_factory=list)
    purchases: List[PurchaseOrder] = field(default_factory=list)
    collections: List[Dict[str, Any]] = field(default_factory=list)
    supplier_payments: List[SupplierPayment] = field(default_factory=list)
    totals: InventoryTotals = field(default_factory=InventoryTotals)


def summarize(
    start: date,
    end: date,
    sales: Sequence[PosSale],
    purchases: Sequence[PurchaseOrder],
    collections: Sequence[Dict[str, Any]],
    supplier_payments: Sequence[SupplierPayment],
) -> InventorySummary:
    """Total up already-filtered rows."""
    zero = Decimal("0")
    totals = InventoryTotals(
        total_sales=sum((s.total_amount for s in sales), zero),
        total_paid=sum((s.paid_amount or zero for s in sales), zero),
        total_due=sum((s.due_amount or zero for s in sales), zero),
        total_purchases=sum((p.total for p in purchases), zero),
        total_purchase_paid=sum((p.paid_amount or zero for p in purchases), zero),
        total_collections=sum((c["amount"] for c in collections), zero),
        total_supplier_paid=sum((p.amount for p in supplier_payments), zero),
    )
    totals.total_purchase_due = totals.total_purchases - totals.total_purchase_paid
    return InventorySummary(
        start=start,
        end=end,
        sales=list(sales),
        purchases=list(purchases),
        collections=list(collections),
        supplier_payments=list(supplier_payments),
        totals=totals,
    )


class ReportService:
    """Renders printable HTML reports for a tenant."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_tenant(self, tenant_id: uuid.UUID) -> Tenant:
        tenant = await self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundException("Tenant", tenant_id)
        return tenant

    async def inventory_summary(self, tenant_id: uuid.UUID, start: date, end: date) -> InventorySummary:
        """Sales, purchases, customer collections and supplier payments in [start, end]."""
        if end < start:
            raise ValidationException(
                "End date cannot be before start date",
                field="end",
                code=ErrorCode.INVALID_DATE_RANGE,
            )

        sales = await self.db.execute(
            select(PosSale)
            .where(and_(PosSale.tenant_id == tenant_id, PosSale.sale_date.between(start, end)))
            .order_by(PosSale.sale_date, PosSale.invoice_number)
        )
        purchases = await self.db.execute(
            select(PurchaseOrder)
            .where(and_(PurchaseOrder.tenant_id == tenant_id, PurchaseOrder.order_date.between(start, end)))
            .order_by(PurchaseOrder.order_date, PurchaseOrder.order_number)
        )
        collections = await self.db.execute(
            select(CustomerPayment, Customer.name)
            .outerjoin(Customer, CustomerPayment.customer_id == Customer.id)
            .where(
                and_(
                    CustomerPayment.tenant_id == tenant_id,
                    CustomerPayment.status == CustomerPaymentStatus.COMPLETED,
                    CustomerPayment.payment_date.between(start, end),
                )
            )
            .order_by(CustomerPayment.payment_date)
        )
        supplier_payments = await self.db.execute(
            select(SupplierPayment)
            .where(and_(SupplierPayment.tenant_id == tenant_id, SupplierPayment.payment_date.between(start, end)))
            .order_by(SupplierPayment.payment_date)
        )

        collection_rows = [
            {
                "payment_date": payment.payment_date,
                "customer_name": customer_name,
                "payment_method": payment.payment_method,
                "amount": payment.amount,
            }
            for payment, customer_name in collections.all()
        ]

        return summarize(
            start,
            end,
            list(sales.scalars().all()),
            list(purchases.scalars().all()),
            collection_rows,
            list(supplier_payments.scalars().all()),
        )

    async def render_inventory_summary(self, tenant_id: uuid.UUID, start: date, end: date) -> str:
        tenant = await self._get_tenant(tenant_id)
        summary = await self.inventory_summary(tenant_id, start, end)
        logger.info(
            f"Inventory summary for tenant {tenant_id}: {start}..{end}, "
            f"{len(summary.sales)} sales, {len(summary.purchases)} purchases"
        )
        return templates.get_template("reports/inventory_summary.html").render(
            tenant=tenant,
            summary=summary,
            totals=summary.totals,
            currency=CURRENCY_SYMBOL,
            printed_at=datetime.now(timezone.utc),
        )

    # ===========================================
    # PRODUCT LABELS
    # ===========================================

    async def render_product_codes(
        self,
        tenant_id: uuid.UUID,
        items: Sequence[Dict[str, Any]],
        columns: int = 4,
        size: str = "medium",
        show_price: bool = True,
        show_name: bool = True,
    ) -> str:
        """
        Render a QR label sheet.

        Args:
            items: [{"product_id": ..., "copies": n}]; each product's label
                is repeated `copies` times
            columns: Labels per row, 3 to 6
            size: small, medium or large QR codes
        """
        if columns not in LABEL_COLUMN_CHOICES:
            raise ValidationException("Columns must be between 3 and 6", field="columns")
        if size not in LABEL_QR_SIZES:
            raise ValidationException(f"Invalid label size '{size}'", field="size")
        if not items:
            raise ValidationException("Select at least one product", field="items")

        tenant = await self._get_tenant(tenant_id)
        product_ids = [item["product_id"] for item in items]
        result = await self.db.execute(
            select(Product).where(and_(Product.tenant_id == tenant_id, Product.id.in_(product_ids)))
        )
        products = {product.id: product for product in result.scalars().all()}

        labels = []
        for item in items:
            product = products.get(item["product_id"])
            if product is None:
                raise NotFoundException("Product", item["product_id"])
            code = product.code_value
            qr = qr_data_uri(code)
            labels.extend(
                {"name": product.name, "code": code, "price": product.sale_price, "qr": qr}
                for _ in range(int(item.get("copies", 1)))
            )

        return templates.get_template("reports/product_codes.html").render(
            tenant=tenant,
            labels=labels,
            columns=columns,
            qr_size=LABEL_QR_SIZES[size],
            show_price=show_price,
            show_name=show_name,
            currency=CURRENCY_SYMBOL,
        )
