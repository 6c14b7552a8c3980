"""
ISP Manager - Customer Portal Service

Everything a logged-in subscriber can see or request: profile, network
status, bills, payments, device commands, packages, support tickets and
recharges. Every query is scoped to the customer from the token.
"""

import logging
import secrets
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, and_, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.customer import (
    BandwidthSample, BillStatus, Customer, CustomerBill, CustomerPayment, CustomerPaymentStatus,
    CustomerStatus,
    DeviceCommand, DeviceCommandType, ISPPackage, SupportTicket, TicketStatus,
)
from app.models.network import ONU
from app.utils.error_handling import (
    AuthenticationException, ErrorCode, NotFoundException, ValidationException, validate_amount,
)
from app.utils.security import create_customer_token, customer_id_from_token

logger = logging.getLogger(__name__)

PROFILE_UPDATABLE_FIELDS = ("phone", "email", "address")
BANDWIDTH_WINDOW_MINUTES = 60
DEFAULT_UPTIME = "0d 0h 0m"

DEVICE_COMMAND_MESSAGES = {
    DeviceCommandType.REBOOT_ROUTER: "Router reboot command sent. Please wait 1-2 minutes.",
    DeviceCommandType.REBOOT_ONU: "ONU reboot command sent. Please wait 2-3 minutes.",
    DeviceCommandType.DISCONNECT: "Session disconnected. Reconnecting...",
}


def _bits_to_mbps(value: Optional[int]) -> float:
    return round((value or 0) / 1_000_000, 2)


class CustomerPortalService:
    """Service behind the customer API."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================================
    # AUTHENTICATION
    # ===========================================

    async def login(
        self,
        customer_code: Optional[str],
        username: Optional[str] = None,
        phone: Optional[str] = None,
        tenant_id: Optional[uuid.UUID] = None,
    ) -> Tuple[str, Customer]:
        """
        Authenticate a customer by code plus PPPoE username or phone.

        The username wins when both are given.

        Returns:
            (token, customer)
        """
        if not customer_code or not (username or phone):
            raise ValidationException("Missing credentials")

        query = select(Customer).where(Customer.customer_code == customer_code)
        if username:
            query = query.where(Customer.pppoe_username == username)
        else:
            query = query.where(Customer.phone == phone)
        if tenant_id:
            query = query.where(Customer.tenant_id == tenant_id)

        result = await self.db.execute(query.limit(2))
        matches = list(result.scalars().all())
        # The same code can exist in several tenants; without a tenant header
        # an ambiguous match is refused
        if len(matches) != 1:
            raise AuthenticationException("Invalid credentials", code=ErrorCode.INVALID_CREDENTIALS)

        customer = matches[0]
        logger.info(f"Customer {customer.id} logged in")
        return create_customer_token(str(customer.id)), customer

    async def verify(self, token: Optional[str]) -> Tuple[bool, Optional[Customer]]:
        """Check a token and return (valid, customer)."""
        if not token:
            raise ValidationException("Token is required", field="token")
        customer_id = customer_id_from_token(token)
        customer = await self.db.get(Customer, customer_id)
        return customer is not None, customer

    async def get_customer(self, customer_id: uuid.UUID) -> Customer:
        customer = await self.db.get(Customer, customer_id)
        if customer is None:
            raise NotFoundException("Customer", customer_id, message="Customer not found")
        return customer

    # ===========================================
    # PROFILE
    # ===========================================

    async def update_profile(self, customer: Customer, data: Dict[str, Any]) -> Customer:
        """Update contact details. Other fields in `data` are ignored."""
        for field in PROFILE_UPDATABLE_FIELDS:
            if field in data:
                setattr(customer, field, data[field])
        await self.db.commit()
        await self.db.refresh(customer)
        return customer

    # ===========================================
    # NETWORK
    # ===========================================

    async def _get_onu(self, customer: Customer) -> Optional[ONU]:
        if not customer.onu_id:
            return None
        return await self.db.get(ONU, customer.onu_id)

    async def network_status(self, customer: Customer) -> Dict[str, Any]:
        """
        Connection status from the ONU record and the latest stored sample.

        Bandwidth and traffic figures are None until the polling server
        has written a sample for the customer.
        """
        onu = await self._get_onu(customer)

        result = await self.db.execute(
            select(BandwidthSample)
            .where(BandwidthSample.customer_id == customer.id)
            .order_by(BandwidthSample.sampled_at.desc())
            .limit(1)
        )
        sample = result.scalar_one_or_none()

        return {
            "is_online": customer.status == CustomerStatus.ACTIVE,
            "uptime": (onu.alive_time if onu else None) or DEFAULT_UPTIME,
            "rx_bandwidth": _bits_to_mbps(sample.rx_bps) if sample else None,
            "tx_bandwidth": _bits_to_mbps(sample.tx_bps) if sample else None,
            "sampled_at": sample.sampled_at if sample else None,
            "mac_address": (onu.mac_address if onu else None) or "N/A",
            "onu_status": onu.status if onu else "unknown",
            "onu_rx_power": onu.rx_power if onu else None,
            "onu_tx_power": onu.tx_power if onu else None,
            "last_online": onu.last_online if onu else None,
            "last_offline": onu.last_offline if onu else None,
        }

    async def bandwidth_history(self, customer: Customer) -> List[Dict[str, Any]]:
        """Stored samples from the last hour, oldest first."""
        since = datetime.now(timezone.utc) - timedelta(minutes=BANDWIDTH_WINDOW_MINUTES)
        result = await self.db.execute(
            select(BandwidthSample)
            .where(
                and_(
                    BandwidthSample.customer_id == customer.id,
                    BandwidthSample.sampled_at >= since,
                )
            )
            .order_by(BandwidthSample.sampled_at.asc())
        )
        return [
            {
                "timestamp": sample.sampled_at,
                "rx_mbps": _bits_to_mbps(sample.rx_bps),
                "tx_mbps": _bits_to_mbps(sample.tx_bps),
            }
            for sample in result.scalars().all()
        ]

    # ===========================================
    # BILLS & PAYMENTS
    # ===========================================

    async def list_bills(
        self,
        customer: Customer,
        limit: int = 20,
        offset: int = 0,
        status: Optional[BillStatus] = None,
    ) -> Tuple[List[CustomerBill], int]:
        conditions = [CustomerBill.customer_id == customer.id]
        if status:
            conditions.append(CustomerBill.status == status)

        total = await self.db.scalar(select(func.count(CustomerBill.id)).where(and_(*conditions)))
        result = await self.db.execute(
            select(CustomerBill)
            .where(and_(*conditions))
            .order_by(CustomerBill.bill_date.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def get_bill(self, customer: Customer, bill_id: uuid.UUID) -> CustomerBill:
        result = await self.db.execute(
            select(CustomerBill).where(
                and_(CustomerBill.id == bill_id, CustomerBill.customer_id == customer.id)
            )
        )
        bill = result.scalar_one_or_none()
        if bill is None:
            raise NotFoundException("Bill", bill_id, message="Bill not found")
        return bill

    async def list_payments(
        self,
        customer: Customer,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[CustomerPayment], int]:
        total = await self.db.scalar(
            select(func.count(CustomerPayment.id)).where(CustomerPayment.customer_id == customer.id)
        )
        result = await self.db.execute(
            select(CustomerPayment)
            .where(CustomerPayment.customer_id == customer.id)
            .order_by(CustomerPayment.payment_date.desc(), CustomerPayment.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def _create_pending_payment(
        self,
        customer: Customer,
        amount: Any,
        payment_method: Optional[str],
        bill_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> CustomerPayment:
        if not amount or not payment_method:
            raise ValidationException("Amount and payment method required")
        amount = validate_amount(amount)
        if bill_id:
            await self.get_bill(customer, bill_id)

        payment = CustomerPayment(
            tenant_id=customer.tenant_id,
            customer_id=customer.id,
            bill_id=bill_id,
            amount=amount,
            payment_method=payment_method,
            status=CustomerPaymentStatus.PENDING,
            payment_date=date.today(),
            notes=notes,
        )
        self.db.add(payment)
        await self.db.commit()
        await self.db.refresh(payment)
        return payment

    async def initiate_payment(
        self,
        customer: Customer,
        amount: Any,
        payment_method: Optional[str],
        bill_id: Optional[uuid.UUID] = None,
    ) -> CustomerPayment:
        """Record a pending payment the customer intends to make."""
        payment = await self._create_pending_payment(customer, amount, payment_method, bill_id)
        logger.info(f"Customer {customer.id} initiated payment {payment.id}")
        return payment

    async def recharge(
        self,
        customer: Customer,
        amount: Any,
        payment_method: Optional[str],
        months: Optional[int] = None,
    ) -> CustomerPayment:
        months = months or 1
        if months < 1:
            raise ValidationException("Months must be at least 1", field="months")
        return await self._create_pending_payment(
            customer, amount, payment_method, notes=f"Recharge for {months} month(s)",
        )

    # ===========================================
    # DEVICE CONTROL
    # ===========================================

    async def queue_device_command(
        self,
        customer: Customer,
        command: DeviceCommandType,
    ) -> Tuple[DeviceCommand, str]:
        """
        Queue a device command for the polling server.

        Returns:
            (command row, message for the customer)
        """
        if command == DeviceCommandType.REBOOT_ONU and not customer.onu_id:
            raise ValidationException("ONU not assigned")

        device_command = DeviceCommand(
            tenant_id=customer.tenant_id,
            customer_id=customer.id,
            onu_id=customer.onu_id,
            command=command,
            status="queued",
            payload={"pppoe_username": customer.pppoe_username},
        )
        self.db.add(device_command)
        await self.db.commit()
        await self.db.refresh(device_command)

        logger.info(f"Queued {command.value} for customer {customer.id}")
        return device_command, DEVICE_COMMAND_MESSAGES[command]

    # ===========================================
    # PACKAGES
    # ===========================================

    async def list_packages(self, customer: Customer) -> List[ISPPackage]:
        result = await self.db.execute(
            select(ISPPackage)
            .where(
                and_(
                    ISPPackage.tenant_id == customer.tenant_id,
                    ISPPackage.is_active == True,  # noqa: E712
                )
            )
            .order_by(ISPPackage.sort_order, ISPPackage.name)
        )
        return list(result.scalars().all())

    async def request_package_change(
        self,
        customer: Customer,
        package_id: Optional[uuid.UUID],
    ) -> SupportTicket:
        """Record a package change request as a support ticket for staff."""
        if not package_id:
            raise ValidationException("Package ID required", field="package_id")

        result = await self.db.execute(
            select(ISPPackage).where(
                and_(
                    ISPPackage.id == package_id,
                    ISPPackage.tenant_id == customer.tenant_id,
                    ISPPackage.is_active == True,  # noqa: E712
                )
            )
        )
        package = result.scalar_one_or_none()
        if package is None:
            raise NotFoundException("Package", package_id, message="Package not found")

        current = customer.package.name if customer.package else "none"
        return await self.create_ticket(
            customer,
            subject=f"Package change request: {package.name}",
            message=f"Customer {customer.customer_code} requests a change from {current} to {package.name}.",
            category="package_change",
        )

    # ===========================================
    # SUPPORT
    # ===========================================

    async def list_tickets(self, customer: Customer) -> List[SupportTicket]:
        result = await self.db.execute(
            select(SupportTicket)
            .where(SupportTicket.customer_id == customer.id)
            .order_by(SupportTicket.created_at.desc())
        )
        return list(result.scalars().all())

    async def create_ticket(
        self,
        customer: Customer,
        subject: Optional[str],
        message: Optional[str],
        category: Optional[str] = None,
    ) -> SupportTicket:
        if not subject or not message:
            raise ValidationException("Subject and message required")

        ticket = SupportTicket(
            tenant_id=customer.tenant_id,
            customer_id=customer.id,
            ticket_number=self._ticket_number(),
            subject=subject,
            description=message,
            category=category or "general",
            status=TicketStatus.OPEN,
        )
        self.db.add(ticket)
        await self.db.commit()
        await self.db.refresh(ticket)
        return ticket

    @staticmethod
    def _ticket_number() -> str:
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
        return f"TKT-{stamp}{secrets.randbelow(1000):03d}"
