"""
ISP Manager - Payment Service Tests

Payment initiation (configuration lookup, validation, provider failures)
and callback settlement including customer bill credit.
"""

from datetime import date, timedelta
from decimal import Decimal
from urllib.parse import parse_qs, urlparse
from uuid import UUID, uuid4

import httpx
import pytest
import pytest_asyncio
import respx
from sqlalchemy import select, func

from app.models.customer import (
    CustomerPayment, CustomerPaymentStatus, CustomerRecharge, CustomerStatus,
)
from app.models.payment import (
    Payment, PaymentGatewaySetting, PaymentPurpose, PaymentStatus, TenantPaymentGateway,
)
from app.models.tenant import Invoice, InvoiceStatus
from app.services.payment_service import ERROR_REDIRECT, PaymentService
from app.utils.error_handling import (
    GatewayNotConfiguredException,
    InvalidAmountException,
    MissingFieldsException,
    PaymentGatewayException,
    UnsupportedGatewayException,
)


SSLCOMMERZ_API = "https://sandbox.sslcommerz.com/gwprocess/v4/api.php"
RETURN_URL = "https://portal.example.com/billing"


def checkout_request(tenant, **overrides):
    request = {
        "gateway": "sslcommerz",
        "amount": "1000",
        "tenant_id": str(tenant.id),
        "return_url": RETURN_URL,
        "payment_for": "customer_bill",
    }
    request.update(overrides)
    return request


async def payment_count(db_session):
    return await db_session.scalar(select(func.count(Payment.id)))


@pytest_asyncio.fixture
async def bill_payment(db_session, tenant, customer):
    """A pending customer bill payment as initiation leaves it."""
    payment = Payment(
        tenant_id=tenant.id,
        amount=Decimal("1000"),
        payment_method="sslcommerz",
        payment_for=PaymentPurpose.CUSTOMER_BILL.value,
        status=PaymentStatus.PENDING,
        customer_id=customer.id,
        gateway_response={
            "return_url": RETURN_URL,
            "cancel_url": "https://portal.example.com/billing/cancelled",
            "payment_for": "customer_bill",
            "customer_id": str(customer.id),
        },
    )
    db_session.add(payment)
    await db_session.commit()
    await db_session.refresh(payment)
    return payment


def redirect_query(url):
    return {key: values[0] for key, values in parse_qs(urlparse(url).query).items()}


# =============================================================================
# INITIATION
# =============================================================================

class TestInitiatePayment:
    @pytest.mark.asyncio
    async def test_missing_fields(self, db_session, tenant):
        service = PaymentService(db_session)
        with pytest.raises(MissingFieldsException) as exc_info:
            await service.initiate_payment({"gateway": "sslcommerz", "amount": "100"})

        assert exc_info.value.message == (
            "Missing required fields: gateway, amount, tenant_id, return_url, payment_for"
        )
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_unsupported_gateway_creates_nothing(self, db_session, tenant):
        service = PaymentService(db_session)
        with pytest.raises(UnsupportedGatewayException):
            await service.initiate_payment(checkout_request(tenant, gateway="paypal"))
        assert await payment_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_unconfigured_gateway_fails_before_any_http(self, db_session, tenant):
        service = PaymentService(db_session)
        with respx.mock() as router:
            with pytest.raises(GatewayNotConfiguredException) as exc_info:
                await service.initiate_payment(checkout_request(tenant))
            assert router.calls.call_count == 0

        assert exc_info.value.message == "Payment gateway sslcommerz is not configured or enabled"
        assert await payment_count(db_session) == 0

    @pytest.mark.asyncio
    async def test_disabled_tenant_config_is_ignored(self, db_session, tenant, sslcommerz_config):
        sslcommerz_config.is_enabled = False
        await db_session.commit()

        with pytest.raises(GatewayNotConfiguredException):
            await PaymentService(db_session).initiate_payment(checkout_request(tenant))

    @pytest.mark.asyncio
    async def test_non_positive_amount(self, db_session, tenant, sslcommerz_config):
        with pytest.raises(InvalidAmountException) as exc_info:
            await PaymentService(db_session).initiate_payment(checkout_request(tenant, amount="-5"))
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_redirect_flow(self, db_session, tenant, sslcommerz_config):
        service = PaymentService(db_session)
        with respx.mock(assert_all_called=True) as router:
            route = router.post(SSLCOMMERZ_API).mock(return_value=httpx.Response(
                200, json={"status": "SUCCESS", "GatewayPageURL": "https://sandbox.sslcommerz.com/pay/1"},
            ))
            result = await service.initiate_payment(checkout_request(tenant, customer_name="Karim"))

        assert result["success"] is True
        assert result["checkout_url"] == "https://sandbox.sslcommerz.com/pay/1"
        assert "message" not in result

        payment = await db_session.get(Payment, UUID(result["payment_id"]))
        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal("1000")
        assert payment.payment_method == "sslcommerz"
        assert payment.transaction_id == result["payment_id"]
        assert payment.gateway_response["return_url"] == RETURN_URL
        assert payment.gateway_response["cancel_url"] == RETURN_URL

        sent = parse_qs(route.calls.last.request.content.decode())
        assert sent["tran_id"] == [result["payment_id"]]
        assert sent["success_url"][0].startswith("https://isp.example.com/payment-callback?")

    @pytest.mark.asyncio
    async def test_platform_setting_used_when_tenant_has_none(self, db_session, tenant):
        db_session.add(PaymentGatewaySetting(
            gateway="sslcommerz", is_enabled=True, sandbox_mode=False,
            config={"store_id": "platform", "store_password": "secret"},
        ))
        await db_session.commit()

        config = await PaymentService(db_session).resolve_gateway_config(tenant.id, "sslcommerz")
        assert config.sandbox_mode is False
        assert config.get("store_id") == "platform"

    @pytest.mark.asyncio
    async def test_tenant_config_wins(self, db_session, tenant, sslcommerz_config):
        db_session.add(PaymentGatewaySetting(
            gateway="sslcommerz", is_enabled=True, config={"store_id": "platform"},
        ))
        await db_session.commit()

        config = await PaymentService(db_session).resolve_gateway_config(tenant.id, "sslcommerz")
        assert config.get("store_id") == "testbox"

    @pytest.mark.asyncio
    async def test_provider_failure_marks_payment_failed(self, db_session, tenant, sslcommerz_config):
        service = PaymentService(db_session)
        with respx.mock() as router:
            router.post(SSLCOMMERZ_API).mock(return_value=httpx.Response(
                200, json={"status": "FAILED", "failedreason": "Invalid store"},
            ))
            with pytest.raises(PaymentGatewayException) as exc_info:
                await service.initiate_payment(checkout_request(tenant))

        assert exc_info.value.message == "Invalid store"
        payment = (await db_session.execute(select(Payment))).scalar_one()
        assert payment.status == PaymentStatus.FAILED
        assert payment.gateway_response["initiation_error"] == "Invalid store"

    @pytest.mark.asyncio
    async def test_manual_payment(self, db_session, tenant, manual_config):
        result = await PaymentService(db_session).initiate_payment(
            checkout_request(tenant, gateway="manual", payment_for="subscription", invoice_id="INV-100"),
        )

        assert result["checkout_url"] is None
        assert result["message"] == (
            "Manual payment created. Please complete payment and submit transaction ID."
        )
        payment = (await db_session.execute(select(Payment))).scalar_one()
        assert payment.status == PaymentStatus.PENDING
        assert payment.invoice_number == "INV-100"
        assert payment.description == "Subscription Payment"
        assert payment.transaction_id is None

    @pytest.mark.asyncio
    async def test_nagad_refused_and_recorded_failed(self, db_session, tenant):
        db_session.add(TenantPaymentGateway(
            tenant_id=tenant.id, gateway="nagad", is_enabled=True, config={"merchant_id": "m1"},
        ))
        await db_session.commit()

        with pytest.raises(PaymentGatewayException):
            await PaymentService(db_session).initiate_payment(checkout_request(tenant, gateway="nagad"))

        payment = (await db_session.execute(select(Payment))).scalar_one()
        assert payment.status == PaymentStatus.FAILED


# =============================================================================
# CALLBACK
# =============================================================================

class TestCallback:
    @pytest.mark.asyncio
    async def test_success_credits_customer(self, db_session, customer, bill_payment):
        old_expiry = customer.expiry_date
        service = PaymentService(db_session)

        url = await service.handle_callback(
            "sslcommerz",
            {"tran_id": str(bill_payment.id), "val_id": "VAL-1", "amount": "1000.00"},
            {"gateway": "sslcommerz", "status": "success"},
        )

        assert url.startswith(RETURN_URL + "?")
        assert redirect_query(url) == {"payment_id": str(bill_payment.id), "status": "success"}

        await db_session.refresh(bill_payment)
        assert bill_payment.status == PaymentStatus.COMPLETED
        assert bill_payment.transaction_id == "VAL-1"
        assert bill_payment.paid_at is not None
        assert bill_payment.gateway_response["sslcommerz_response"]["val_id"] == "VAL-1"

        await db_session.refresh(customer)
        assert customer.due_amount == Decimal("0")
        assert customer.expiry_date == old_expiry + timedelta(days=30)
        assert customer.last_payment_date == date.today()
        assert customer.status == CustomerStatus.ACTIVE

        payments = (await db_session.execute(select(CustomerPayment))).scalars().all()
        assert len(payments) == 1
        assert payments[0].status == CustomerPaymentStatus.COMPLETED
        assert payments[0].payment_gateway == "sslcommerz"
        assert payments[0].transaction_id == str(bill_payment.id)

        recharge = (await db_session.execute(select(CustomerRecharge))).scalar_one()
        assert recharge.old_expiry == old_expiry
        assert recharge.new_expiry == customer.expiry_date

    @pytest.mark.asyncio
    async def test_expired_customer_extends_from_today(self, db_session, customer, bill_payment):
        customer.expiry_date = date.today() - timedelta(days=10)
        customer.status = CustomerStatus.EXPIRED
        await db_session.commit()

        await PaymentService(db_session).handle_callback(
            "sslcommerz", {"tran_id": str(bill_payment.id)}, {"status": "success"},
        )

        await db_session.refresh(customer)
        assert customer.expiry_date == date.today() + timedelta(days=30)
        assert customer.status == CustomerStatus.ACTIVE
        # No amount in the callback: the stored amount is credited
        assert customer.due_amount == Decimal("0")

    @pytest.mark.asyncio
    async def test_repeated_callback_credits_once(self, db_session, customer, bill_payment):
        service = PaymentService(db_session)
        body = {"tran_id": str(bill_payment.id), "val_id": "VAL-1"}

        await service.handle_callback("sslcommerz", body, {"status": "success"})
        url = await service.handle_callback("sslcommerz", body, {"status": "ipn"})

        assert redirect_query(url)["status"] == "success"
        count = await db_session.scalar(select(func.count(CustomerPayment.id)))
        assert count == 1

    @pytest.mark.asyncio
    async def test_failure_redirects_to_cancel_url(self, db_session, customer, bill_payment):
        url = await PaymentService(db_session).handle_callback(
            "sslcommerz", {"tran_id": str(bill_payment.id)}, {"status": "fail"},
        )

        assert url.startswith("https://portal.example.com/billing/cancelled?")
        assert redirect_query(url)["status"] == "failed"
        await db_session.refresh(bill_payment)
        assert bill_payment.status == PaymentStatus.FAILED

        await db_session.refresh(customer)
        assert customer.due_amount == Decimal("1000")

    @pytest.mark.asyncio
    async def test_unknown_payment_goes_to_error_page(self, db_session, tenant):
        url = await PaymentService(db_session).handle_callback(
            "sslcommerz", {"tran_id": str(uuid4())}, {"status": "success"},
        )
        assert url == ERROR_REDIRECT

    @pytest.mark.asyncio
    async def test_missing_payment_id_goes_to_error_page(self, db_session, tenant):
        url = await PaymentService(db_session).handle_callback("bkash", {}, {"status": "success"})
        assert url == ERROR_REDIRECT

    @pytest.mark.asyncio
    async def test_unknown_gateway_only_redirects(self, db_session, bill_payment):
        url = await PaymentService(db_session).handle_callback(
            None, {"order_id": str(bill_payment.id)}, {"status": "success"},
        )

        assert redirect_query(url)["status"] == "success"
        await db_session.refresh(bill_payment)
        assert bill_payment.status == PaymentStatus.PENDING

    @pytest.mark.asyncio
    async def test_subscription_invoice_marked_paid(self, db_session, tenant):
        invoice = Invoice(tenant_id=tenant.id, invoice_number="INV-2024-001", amount=Decimal("2500"))
        payment = Payment(
            tenant_id=tenant.id,
            amount=Decimal("2500"),
            payment_method="uddoktapay",
            payment_for=PaymentPurpose.SUBSCRIPTION.value,
            invoice_number="INV-2024-001",
            gateway_response={"return_url": "/billing", "payment_for": "subscription"},
        )
        db_session.add_all([invoice, payment])
        await db_session.commit()

        url = await PaymentService(db_session).handle_callback(
            "uddoktapay",
            {"status": "COMPLETED", "invoice_id": "UD-1", "metadata": {"payment_id": str(payment.id)}},
            {"gateway": "uddoktapay", "status": "success"},
        )

        assert url.startswith("/billing?")
        await db_session.refresh(invoice)
        assert invoice.status == InvoiceStatus.PAID
        assert invoice.paid_at is not None
        assert await db_session.scalar(select(func.count(CustomerPayment.id))) == 0


# =============================================================================
# RECORDS & CONFIGURATION
# =============================================================================

class TestRecords:
    @pytest.mark.asyncio
    async def test_list_payments_scoped_to_tenant(self, db_session, tenant, other_tenant, bill_payment):
        db_session.add(Payment(
            tenant_id=other_tenant.id, amount=Decimal("10"), payment_method="manual",
            payment_for="subscription",
        ))
        await db_session.commit()

        items, total = await PaymentService(db_session).list_payments(tenant.id)
        assert total == 1
        assert [p.id for p in items] == [bill_payment.id]

    @pytest.mark.asyncio
    async def test_save_gateway_config_upserts(self, db_session, tenant):
        service = PaymentService(db_session)
        row = await service.save_gateway_config(
            tenant.id, "bkash", {"is_enabled": True, "config": {"app_key": "k"}},
        )
        again = await service.save_gateway_config(tenant.id, "bkash", {"sandbox_mode": False})

        assert again.id == row.id
        assert again.is_enabled is True
        assert again.sandbox_mode is False
        assert again.config == {"app_key": "k"}

    @pytest.mark.asyncio
    async def test_save_unknown_gateway(self, db_session, tenant):
        with pytest.raises(UnsupportedGatewayException):
            await PaymentService(db_session).save_gateway_config(tenant.id, "paypal", {"is_enabled": True})
