"""
ISP Manager - Customer API Tests

End-to-end tests of /customer-api through the ASGI app.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select

from app.models.customer import (
    BandwidthSample, BillStatus, Customer, CustomerBill, CustomerStatus, DeviceCommand,
    DeviceCommandType, ISPPackage, SupportTicket,
)
from app.utils.security import create_access_token, create_customer_token


API = "/customer-api"


@pytest_asyncio.fixture
async def bills(db_session, tenant, customer):
    rows = [
        CustomerBill(
            tenant_id=tenant.id,
            customer_id=customer.id,
            bill_number=f"B-2024-0{month}",
            billing_month=f"2024-0{month}",
            amount=Decimal("1000"),
            paid_amount=Decimal("1000") if month < 4 else Decimal("0"),
            bill_date=date(2024, month, 1),
            due_date=date(2024, month, 10),
            status=BillStatus.PAID if month < 4 else BillStatus.UNPAID,
        )
        for month in (2, 3, 4)
    ]
    db_session.add_all(rows)
    await db_session.commit()
    return rows


# =============================================================================
# AUTHENTICATION
# =============================================================================

class TestLogin:
    @pytest.mark.asyncio
    async def test_login_with_username(self, client, customer):
        response = await client.post(
            f"{API}/auth/login", json={"customer_code": "C-1001", "username": "karim1001"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["token"]
        data = body["data"]["customer"]
        assert data["customer_code"] == "C-1001"
        assert data["status"] == "active"
        assert data["monthly_bill"] == 1000.0
        assert data["package"]["name"] == "Home 20 Mbps"

    @pytest.mark.asyncio
    async def test_login_with_phone(self, client, customer):
        response = await client.post(
            f"{API}/auth/login", json={"customer_code": "C-1001", "phone": "01911000000"},
        )
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_wrong_credentials(self, client, customer):
        response = await client.post(
            f"{API}/auth/login", json={"customer_code": "C-1001", "username": "someone-else"},
        )
        assert response.status_code == 401
        assert response.json()["success"] is False
        assert response.json()["error"] == "Invalid credentials"

    @pytest.mark.asyncio
    async def test_missing_credentials(self, client, customer):
        response = await client.post(f"{API}/auth/login", json={"customer_code": "C-1001"})
        assert response.status_code == 400
        assert response.json()["error"] == "Missing credentials"

    @pytest.mark.asyncio
    async def test_same_code_in_two_tenants_needs_tenant_header(self, client, db_session, other_tenant, customer):
        db_session.add(Customer(
            tenant_id=other_tenant.id,
            customer_code="C-1001",
            name="Another Karim",
            pppoe_username="karim1001",
            status=CustomerStatus.ACTIVE,
        ))
        await db_session.commit()
        credentials = {"customer_code": "C-1001", "username": "karim1001"}

        ambiguous = await client.post(f"{API}/auth/login", json=credentials)
        assert ambiguous.status_code == 401

        scoped = await client.post(
            f"{API}/auth/login", json=credentials, headers={"x-tenant-id": str(other_tenant.id)},
        )
        assert scoped.status_code == 200
        assert scoped.json()["data"]["customer"]["name"] == "Another Karim"

    @pytest.mark.asyncio
    async def test_verify(self, client, customer):
        response = await client.post(
            f"{API}/auth/verify", json={"token": create_customer_token(customer.id)},
        )
        data = response.json()["data"]
        assert data["valid"] is True
        assert data["customer"]["id"] == str(customer.id)

    @pytest.mark.asyncio
    async def test_verify_forged_token(self, client, customer):
        response = await client.post(f"{API}/auth/verify", json={"token": "not-a-token"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token"


class TestTokenChecks:
    @pytest.mark.asyncio
    async def test_missing_token(self, client, customer):
        response = await client.get(f"{API}/profile")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "Unauthorized", "code": "UNAUTHORIZED"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,path", [
        ("GET", "/profile"),
        ("PUT", "/profile"),
        ("GET", "/network/status"),
        ("GET", "/network/bandwidth"),
        ("GET", "/bills"),
        ("GET", "/bills/00000000-0000-0000-0000-000000000001"),
        ("GET", "/payments"),
        ("POST", "/payments/initiate"),
        ("POST", "/recharge"),
        ("POST", "/device/reboot-router"),
        ("POST", "/device/reboot-onu"),
        ("POST", "/device/disconnect"),
        ("GET", "/packages"),
        ("POST", "/packages/change"),
        ("GET", "/support/tickets"),
        ("POST", "/support/tickets"),
    ])
    async def test_expired_token(self, client, customer, method, path):
        token = create_customer_token(customer.id, expires_delta=timedelta(seconds=-5))
        kwargs = {"headers": {"Authorization": f"Bearer {token}"}}
        if method != "GET":
            kwargs["json"] = {}

        response = await client.request(method, f"{API}{path}", **kwargs)

        assert response.status_code == 401
        assert response.json()["error"] == "Token expired"

    @pytest.mark.asyncio
    async def test_admin_token_is_not_a_customer_token(self, client, tenant, customer):
        token = create_access_token({"sub": str(customer.id), "tenant_id": str(tenant.id)})
        response = await client.get(f"{API}/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 401
        assert response.json()["error"] == "Invalid token"

    @pytest.mark.asyncio
    async def test_deleted_customer(self, client, customer):
        token = create_customer_token(uuid4())
        response = await client.get(f"{API}/profile", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 404
        assert response.json()["error"] == "Customer not found"


# =============================================================================
# PROFILE & NETWORK
# =============================================================================

class TestProfile:
    @pytest.mark.asyncio
    async def test_get_profile(self, client, customer, customer_headers):
        response = await client.get(f"{API}/profile", headers=customer_headers)
        data = response.json()["data"]
        assert data["name"] == "Karim Ahmed"
        assert data["address"] == "Flat 3B, Mirpur 10, Dhaka"
        assert data["due_amount"] == 1000.0

    @pytest.mark.asyncio
    async def test_only_contact_fields_change(self, client, db_session, customer, customer_headers):
        response = await client.put(
            f"{API}/profile",
            json={"phone": "01999999999", "name": "Hacker", "due_amount": 0},
            headers=customer_headers,
        )

        body = response.json()
        assert body["message"] == "Profile updated"
        assert body["data"]["phone"] == "01999999999"
        assert body["data"]["name"] == "Karim Ahmed"
        assert body["data"]["due_amount"] == 1000.0

    @pytest.mark.asyncio
    async def test_invalid_email(self, client, customer, customer_headers):
        response = await client.put(
            f"{API}/profile", json={"email": "not-an-email"}, headers=customer_headers,
        )
        assert response.status_code == 400
        assert response.json()["success"] is False


class TestNetwork:
    @pytest.mark.asyncio
    async def test_status_without_onu(self, client, customer, customer_headers):
        data = (await client.get(f"{API}/network/status", headers=customer_headers)).json()["data"]

        assert data["is_online"] is True
        assert data["onu_status"] == "unknown"
        assert data["mac_address"] == "N/A"
        assert data["uptime"] == "0d 0h 0m"
        assert data["rx_bandwidth"] is None

    @pytest.mark.asyncio
    async def test_status_with_onu_and_sample(self, client, db_session, tenant, customer, onu, customer_headers):
        customer.onu_id = onu.id
        db_session.add(BandwidthSample(
            tenant_id=tenant.id,
            customer_id=customer.id,
            sampled_at=datetime.now(timezone.utc) - timedelta(minutes=1),
            rx_bps=12_500_000,
            tx_bps=3_000_000,
        ))
        await db_session.commit()

        data = (await client.get(f"{API}/network/status", headers=customer_headers)).json()["data"]
        assert data["onu_status"] == "online"
        assert data["mac_address"] == "AA:BB:CC:00:00:01"
        assert data["uptime"] == "3d 4h 10m"
        assert data["rx_bandwidth"] == 12.5
        assert data["tx_bandwidth"] == 3.0

    @pytest.mark.asyncio
    async def test_bandwidth_history_last_hour(self, client, db_session, tenant, customer, customer_headers):
        now = datetime.now(timezone.utc)
        db_session.add_all([
            BandwidthSample(tenant_id=tenant.id, customer_id=customer.id,
                            sampled_at=now - timedelta(hours=3), rx_bps=1, tx_bps=1),
            BandwidthSample(tenant_id=tenant.id, customer_id=customer.id,
                            sampled_at=now - timedelta(minutes=20), rx_bps=2_000_000, tx_bps=1_000_000),
            BandwidthSample(tenant_id=tenant.id, customer_id=customer.id,
                            sampled_at=now - timedelta(minutes=10), rx_bps=4_000_000, tx_bps=1_000_000),
        ])
        await db_session.commit()

        data = (await client.get(f"{API}/network/bandwidth", headers=customer_headers)).json()["data"]
        assert [point["rx_mbps"] for point in data] == [2.0, 4.0]


# =============================================================================
# BILLING
# =============================================================================

class TestBills:
    @pytest.mark.asyncio
    async def test_list_newest_first(self, client, bills, customer_headers):
        data = (await client.get(f"{API}/bills?limit=2", headers=customer_headers)).json()["data"]

        assert [b["billing_month"] for b in data["bills"]] == ["2024-04", "2024-03"]
        assert data["pagination"] == {"total": 3, "limit": 2, "offset": 0}

    @pytest.mark.asyncio
    async def test_filter_by_status(self, client, bills, customer_headers):
        data = (await client.get(f"{API}/bills?status=unpaid", headers=customer_headers)).json()["data"]
        assert len(data["bills"]) == 1
        assert data["bills"][0]["amount"] == 1000.0

    @pytest.mark.asyncio
    async def test_bill_of_another_customer(self, client, db_session, tenant, bills, customer_headers):
        stranger = Customer(tenant_id=tenant.id, customer_code="C-2000", name="Stranger")
        db_session.add(stranger)
        await db_session.flush()
        foreign = CustomerBill(
            tenant_id=tenant.id, customer_id=stranger.id, bill_number="B-X", billing_month="2024-04",
            amount=Decimal("500"), bill_date=date(2024, 4, 1),
        )
        db_session.add(foreign)
        await db_session.commit()

        response = await client.get(f"{API}/bills/{foreign.id}", headers=customer_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Bill not found"

    @pytest.mark.asyncio
    async def test_malformed_bill_id(self, client, customer_headers):
        response = await client.get(f"{API}/bills/not-a-uuid", headers=customer_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "Bill not found"

    @pytest.mark.asyncio
    async def test_initiate_payment(self, client, bills, customer_headers):
        response = await client.post(
            f"{API}/payments/initiate",
            json={"amount": 1000, "payment_method": "bkash", "bill_id": str(bills[-1].id)},
            headers=customer_headers,
        )

        body = response.json()
        assert body["message"] == "Payment initiated"
        assert body["data"]["status"] == "pending"
        assert body["data"]["amount"] == 1000.0

        history = (await client.get(f"{API}/payments", headers=customer_headers)).json()["data"]
        assert history["pagination"]["total"] == 1
        assert history["payments"][0]["payment_method"] == "bkash"

    @pytest.mark.asyncio
    async def test_initiate_payment_requires_amount_and_method(self, client, customer, customer_headers):
        response = await client.post(
            f"{API}/payments/initiate", json={"amount": 1000}, headers=customer_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Amount and payment method required"

    @pytest.mark.asyncio
    async def test_recharge(self, client, customer, customer_headers):
        response = await client.post(
            f"{API}/recharge",
            json={"amount": 2000, "payment_method": "nagad", "months": 2},
            headers=customer_headers,
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Recharge initiated"


# =============================================================================
# DEVICE, PACKAGES, SUPPORT
# =============================================================================

class TestDevice:
    @pytest.mark.asyncio
    async def test_reboot_onu_requires_onu(self, client, customer, customer_headers):
        response = await client.post(f"{API}/device/reboot-onu", headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "ONU not assigned"

    @pytest.mark.asyncio
    async def test_reboot_router_is_queued(self, client, db_session, customer, customer_headers):
        response = await client.post(f"{API}/device/reboot-router", headers=customer_headers)

        body = response.json()
        assert body["message"] == "Router reboot command sent. Please wait 1-2 minutes."
        assert body["data"]["command"] == "reboot_router"
        assert body["data"]["status"] == "queued"

        command = (await db_session.execute(select(DeviceCommand))).scalar_one()
        assert command.command == DeviceCommandType.REBOOT_ROUTER
        assert command.payload == {"pppoe_username": "karim1001"}

    @pytest.mark.asyncio
    async def test_reboot_onu_with_onu(self, client, db_session, customer, onu, customer_headers):
        customer.onu_id = onu.id
        await db_session.commit()

        response = await client.post(f"{API}/device/reboot-onu", headers=customer_headers)
        assert response.json()["message"] == "ONU reboot command sent. Please wait 2-3 minutes."


class TestPackages:
    @pytest.mark.asyncio
    async def test_list_active_packages(self, client, db_session, tenant, package, customer_headers):
        db_session.add(ISPPackage(tenant_id=tenant.id, name="Retired 5 Mbps", price=Decimal("300"), is_active=False))
        await db_session.commit()

        data = (await client.get(f"{API}/packages", headers=customer_headers)).json()["data"]
        assert [p["name"] for p in data] == ["Home 20 Mbps"]
        assert data[0]["price"] == 1000.0

    @pytest.mark.asyncio
    async def test_package_change_opens_ticket(self, client, db_session, package, customer_headers):
        response = await client.post(
            f"{API}/packages/change", json={"package_id": str(package.id)}, headers=customer_headers,
        )

        body = response.json()
        assert body["message"] == "Package change request submitted. Our team will contact you shortly."
        assert body["data"]["request_type"] == "package_change"
        assert body["data"]["ticket_id"].startswith("TKT-")

        ticket = (await db_session.execute(select(SupportTicket))).scalar_one()
        assert ticket.category == "package_change"

    @pytest.mark.asyncio
    async def test_package_change_needs_package(self, client, customer, customer_headers):
        response = await client.post(f"{API}/packages/change", json={}, headers=customer_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "Package ID required"


class TestSupport:
    @pytest.mark.asyncio
    async def test_create_and_list(self, client, customer, customer_headers):
        created = await client.post(
            f"{API}/support/tickets",
            json={"subject": "Slow speed", "message": "Speed drops every evening"},
            headers=customer_headers,
        )
        assert created.json()["message"] == "Support ticket created"

        tickets = (await client.get(f"{API}/support/tickets", headers=customer_headers)).json()["data"]
        assert len(tickets) == 1
        assert tickets[0]["subject"] == "Slow speed"
        assert tickets[0]["status"] == "open"
        assert tickets[0]["category"] == "general"

    @pytest.mark.asyncio
    async def test_subject_and_message_required(self, client, customer, customer_headers):
        response = await client.post(
            f"{API}/support/tickets", json={"subject": "Slow"}, headers=customer_headers,
        )
        assert response.status_code == 400
        assert response.json()["error"] == "Subject and message required"


class TestUnknownEndpoint:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("method,path", [("GET", "/nope"), ("POST", "/device/reboot-everything")])
    async def test_not_found_envelope(self, client, method, path):
        response = await client.request(method, f"{API}{path}")
        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Endpoint not found"}
