"""
ISP Manager - Payment Service

Gateway payment initiation and callback handling.

Initiation resolves the gateway's credentials (tenant first, then the
platform-wide setting), records a pending payment and hands it to the
gateway strategy from GATEWAY_REGISTRY. The callback settles the payment,
marks subscription invoices paid, and credits customer bills by
extending the connection.
"""

import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Tuple
from urllib.parse import urlencode

from sqlalchemy import select, and_, func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.customer import (
    Customer, CustomerPayment, CustomerPaymentStatus, CustomerRecharge, CustomerStatus,
)
from app.models.payment import (
    Payment, PaymentGatewaySetting, PaymentPurpose, PaymentStatus, TenantPaymentGateway,
)
from app.models.tenant import Invoice, InvoiceStatus
from app.services.payment_gateways import (
    GATEWAY_REGISTRY, CallbackOutcome, GatewayConfig, PaymentGateway, PaymentIntent,
    get_gateway_class,
)
from app.utils.error_handling import (
    AppException, ErrorCode, GatewayNotConfiguredException, MissingFieldsException,
    NotFoundException, PaymentGatewayException, ValidationException, validate_amount,
)

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("gateway", "amount", "tenant_id", "return_url", "payment_for")
ERROR_REDIRECT = "/?payment_error=true"
DEFAULT_VALIDITY_DAYS = 30


def _parse_uuid(value: Any, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        raise ValidationException(f"Invalid {field}", field=field, code=ErrorCode.INVALID_FORMAT)


def _with_query(url: str, params: Dict[str, str]) -> str:
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{urlencode(params)}"


class PaymentService:
    """Service for gateway payments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # INITIATION
    # ===========================================

    async def resolve_gateway_config(self, tenant_id: uuid.UUID, gateway: str) -> GatewayConfig:
        """
        Find the enabled configuration for a gateway.

        The tenant's own row wins; otherwise the enabled platform setting
        is used.

        Raises:
            GatewayNotConfiguredException: Neither is enabled
        """
        result = await self.db.execute(
            select(TenantPaymentGateway).where(
                and_(
                    TenantPaymentGateway.tenant_id == tenant_id,
                    TenantPaymentGateway.gateway == gateway,
                    TenantPaymentGateway.is_enabled == True,  # noqa: E712
                )
            )
        )
        tenant_gateway = result.scalar_one_or_none()
        if tenant_gateway:
            return GatewayConfig(
                gateway=gateway,
                sandbox_mode=tenant_gateway.sandbox_mode,
                config=dict(tenant_gateway.config or {}),
            )

        result = await self.db.execute(
            select(PaymentGatewaySetting).where(
                and_(
                    PaymentGatewaySetting.gateway == gateway,
                    PaymentGatewaySetting.is_enabled == True,  # noqa: E712
                )
            )
        )
        global_gateway = result.scalar_one_or_none()
        if global_gateway:
            return GatewayConfig(
                gateway=gateway,
                sandbox_mode=global_gateway.sandbox_mode,
                config=dict(global_gateway.config or {}),
            )

        raise GatewayNotConfiguredException(gateway)

    async def initiate_payment(self, request: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Create a pending payment and start the gateway checkout.

        Args:
            request: gateway, amount, tenant_id, return_url, payment_for and
                optionally cancel_url, invoice_id, customer_id,
                customer_name, customer_email, customer_phone, description

        Returns:
            {"success": True, "payment_id", "checkout_url"} plus "message"
            for manual payments

        Raises:
            MissingFieldsException: A required field is empty
            UnsupportedGatewayException: Unknown gateway identifier
            GatewayNotConfiguredException: No enabled configuration
            PaymentGatewayException: The provider refused the payment
        """
        missing = [name for name in REQUIRED_FIELDS if not request.get(name)]
        if missing:
            raise MissingFieldsException(
                missing,
                message=f"Missing required fields: {', '.join(REQUIRED_FIELDS)}",
            )

        gateway_name = str(request["gateway"])
        amount = validate_amount(request["amount"])
        tenant_id = _parse_uuid(request["tenant_id"], "tenant_id")
        try:
            payment_for = PaymentPurpose(request["payment_for"])
        except ValueError:
            raise ValidationException("Invalid payment_for", field="payment_for")
        customer_id = (
            _parse_uuid(request["customer_id"], "customer_id")
            if request.get("customer_id") else None
        )

        gateway_class = get_gateway_class(gateway_name)
        gateway_config = await self.resolve_gateway_config(tenant_id, gateway_name)

        return_url = request["return_url"]
        invoice_id = request.get("invoice_id")
        label = "Subscription" if payment_for == PaymentPurpose.SUBSCRIPTION else "Bill"

        payment = Payment(
            tenant_id=tenant_id,
            amount=amount,
            payment_method=gateway_name,
            payment_for=payment_for.value,
            status=PaymentStatus.PENDING,
            description=request.get("description") or f"{label} Payment",
            invoice_number=invoice_id if payment_for == PaymentPurpose.SUBSCRIPTION else None,
            customer_id=customer_id,
            gateway_response={
                "return_url": return_url,
                "cancel_url": request.get("cancel_url") or return_url,
                "payment_for": payment_for.value,
                "customer_id": str(customer_id) if customer_id else None,
                "invoice_id": invoice_id,
            },
        )
        self.db.add(payment)
        await self.db.commit()
        await self.db.refresh(payment)

        intent = PaymentIntent(
            payment_id=str(payment.id),
            tenant_id=str(tenant_id),
            amount=amount,
            currency=settings.payment_currency,
            payment_for=payment_for.value,
            return_url=return_url,
            callback_url=settings.payment_callback_url,
            customer_id=str(customer_id) if customer_id else None,
            customer_name=request.get("customer_name"),
            customer_email=request.get("customer_email"),
            customer_phone=request.get("customer_phone"),
            description=payment.description,
        )
        gateway = gateway_class(gateway_config, timeout=settings.payment_gateway_timeout_seconds)

        try:
            redirect = await gateway.initiate(intent)
        except PaymentGatewayException as e:
            payment.status = PaymentStatus.FAILED
            payment.gateway_response = {
                **(payment.gateway_response or {}),
                "initiation_error": e.message,
            }
            await self.db.commit()
            raise

        response: Dict[str, Any] = {
            "success": True,
            "payment_id": str(payment.id),
            "checkout_url": redirect.checkout_url,
        }
        if redirect.message:
            response["message"] = redirect.message

        if redirect.checkout_url:
            payment.transaction_id = str(payment.id)
            await self.db.commit()

        logger.info(f"Payment {payment.id} initiated via {gateway_name}")
        return response

    # ===========================================
    # CALLBACK
    # ===========================================

    async def handle_callback(
        self,
        gateway: Optional[str],
        body: Mapping[str, Any],
        params: Mapping[str, Any],
    ) -> str:
        """
        Settle a payment from a gateway callback.

        Returns:
            The URL to redirect the payer to. Any failure lands on the
            generic error redirect.
        """
        logger.info(f"Payment callback received: gateway={gateway}, status={params.get('status')}")
        try:
            return await self._handle_callback(gateway, body, params)
        except AppException as e:
            logger.warning(f"Payment callback rejected: {e.message}")
            await self.db.rollback()
            return ERROR_REDIRECT
        except SQLAlchemyError:
            logger.exception("Payment callback failed")
            await self.db.rollback()
            return ERROR_REDIRECT

    async def _handle_callback(
        self,
        gateway: Optional[str],
        body: Mapping[str, Any],
        params: Mapping[str, Any],
    ) -> str:
        gateway_class = GATEWAY_REGISTRY.get(gateway or "")
        if gateway_class is None:
            outcome = PaymentGateway.interpret_callback(body, params)
        else:
            outcome = gateway_class.interpret_callback(body, params)

        payment = await self._get_payment(outcome.payment_id)
        stored = dict(payment.gateway_response or {})
        return_url = stored.get("return_url") or outcome.return_url or "/"
        cancel_url = stored.get("cancel_url") or return_url

        if gateway_class is not None:
            if payment.status == PaymentStatus.COMPLETED:
                # Repeated notification (redirect + IPN); already settled
                logger.info(f"Payment {payment.id} already completed, ignoring callback")
                succeeded = True
            else:
                succeeded = outcome.success
                if succeeded:
                    await self._complete_payment(payment, gateway, outcome, body, stored)
                else:
                    payment.status = PaymentStatus.FAILED
                    payment.gateway_response = {**stored, f"{gateway}_response": dict(body)}
                await self.db.commit()
        else:
            succeeded = outcome.success

        if succeeded:
            return _with_query(return_url, {"payment_id": str(payment.id), "status": "success"})
        return _with_query(cancel_url, {"payment_id": str(payment.id), "status": "failed"})

    async def _get_payment(self, payment_id: Optional[str]) -> Payment:
        if not payment_id:
            raise NotFoundException("Payment")
        try:
            key = uuid.UUID(str(payment_id))
        except ValueError:
            raise NotFoundException("Payment", payment_id)
        payment = await self.db.get(Payment, key)
        if payment is None:
            raise NotFoundException("Payment", payment_id)
        return payment

    async def _complete_payment(
        self,
        payment: Payment,
        gateway: str,
        outcome: CallbackOutcome,
        body: Mapping[str, Any],
        stored: Dict[str, Any],
    ) -> None:
        now = datetime.now(timezone.utc)
        payment.status = PaymentStatus.COMPLETED
        payment.transaction_id = outcome.transaction_id or str(payment.id)
        payment.paid_at = now
        payment.gateway_response = {**stored, f"{gateway}_response": dict(body)}

        if payment.invoice_number:
            result = await self.db.execute(
                select(Invoice).where(Invoice.invoice_number == payment.invoice_number)
            )
            invoice = result.scalar_one_or_none()
            if invoice:
                invoice.status = InvoiceStatus.PAID
                invoice.paid_at = now

        payment_for = stored.get("payment_for") or outcome.payment_for
        customer_id = stored.get("customer_id") or outcome.customer_id
        if payment_for == PaymentPurpose.CUSTOMER_BILL.value and customer_id:
            amount = outcome.amount if outcome.amount is not None else payment.amount
            await self.credit_customer(payment.tenant_id, customer_id, amount, str(payment.id), gateway)

        logger.info(f"Payment {payment.id} completed via {gateway}")

    async def credit_customer(
        self,
        tenant_id: uuid.UUID,
        customer_id: Any,
        amount: Decimal,
        payment_reference: str,
        gateway: Optional[str] = None,
    ) -> Optional[Customer]:
        """
        Apply a bill payment to a customer.

        Reduces the due amount (not below zero), extends the expiry by the
        package validity from the later of today and the current expiry,
        reactivates the connection, and records the payment and recharge.
        Does not commit.
        """
        result = await self.db.execute(
            select(Customer).where(
                and_(
                    Customer.tenant_id == tenant_id,
                    Customer.id == _parse_uuid(customer_id, "customer_id"),
                )
            )
        )
        customer = result.scalar_one_or_none()
        if customer is None:
            logger.error(f"Customer not found for bill payment: {customer_id}")
            return None

        today = date.today()
        validity_days = (
            customer.package.validity_days
            if customer.package and customer.package.validity_days
            else DEFAULT_VALIDITY_DAYS
        )
        old_expiry = customer.expiry_date
        start = today if old_expiry is None or old_expiry < today else old_expiry
        new_expiry = start + timedelta(days=validity_days)

        customer.due_amount = max(Decimal("0"), (customer.due_amount or Decimal("0")) - amount)
        customer.expiry_date = new_expiry
        customer.last_payment_date = today
        customer.status = CustomerStatus.ACTIVE

        self.db.add(CustomerPayment(
            tenant_id=tenant_id,
            customer_id=customer.id,
            amount=amount,
            payment_method="online",
            payment_gateway=gateway or "auto",
            transaction_id=payment_reference,
            status=CustomerPaymentStatus.COMPLETED,
            payment_date=today,
            notes="Online payment via gateway",
        ))
        self.db.add(CustomerRecharge(
            tenant_id=tenant_id,
            customer_id=customer.id,
            amount=amount,
            months=1,
            old_expiry=old_expiry,
            new_expiry=new_expiry,
            payment_method="online",
            status="completed",
            notes=f"Gateway payment {payment_reference}",
        ))

        logger.info(f"Customer {customer.id} credited {amount}, expiry now {new_expiry}")
        return customer

    # ===========================================
    # RECORDS & CONFIGURATION
    # ===========================================

    async def list_payments(
        self,
        tenant_id: uuid.UUID,
        status: Optional[PaymentStatus] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Payment], int]:
        """Tenant payments, newest first, with the unpaginated total."""
        conditions = [Payment.tenant_id == tenant_id]
        if status:
            conditions.append(Payment.status == status)

        total = await self.db.execute(select(func.count(Payment.id)).where(and_(*conditions)))
        result = await self.db.execute(
            select(Payment)
            .where(and_(*conditions))
            .order_by(Payment.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total.scalar_one()

    async def get_payment(self, tenant_id: uuid.UUID, payment_id: uuid.UUID) -> Payment:
        payment = await self.db.get(Payment, payment_id)
        if payment is None or payment.tenant_id != tenant_id:
            raise NotFoundException("Payment", payment_id)
        return payment

    async def list_gateway_configs(self, tenant_id: uuid.UUID) -> List[TenantPaymentGateway]:
        result = await self.db.execute(
            select(TenantPaymentGateway)
            .where(TenantPaymentGateway.tenant_id == tenant_id)
            .order_by(TenantPaymentGateway.gateway)
        )
        return list(result.scalars().all())

    async def save_gateway_config(
        self,
        tenant_id: uuid.UUID,
        gateway: str,
        data: Dict[str, Any],
    ) -> TenantPaymentGateway:
        """
        Create or update a tenant's credentials for a gateway.

        Raises:
            UnsupportedGatewayException: gateway is not in the registry
        """
        get_gateway_class(gateway)
        result = await self.db.execute(
            select(TenantPaymentGateway).where(
                and_(
                    TenantPaymentGateway.tenant_id == tenant_id,
                    TenantPaymentGateway.gateway == gateway,
                )
            )
        )
        row = result.scalar_one_or_none()
        if row is None:
            row = TenantPaymentGateway(tenant_id=tenant_id, gateway=gateway, config={})
            self.db.add(row)
        for key, value in data.items():
            setattr(row, key, value)

        await self.db.commit()
        await self.db.refresh(row)
        logger.info(f"Gateway {gateway} configured for tenant {tenant_id} (enabled={row.is_enabled})")
        return row
