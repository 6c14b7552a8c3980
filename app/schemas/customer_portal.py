"""
ISP Manager - Customer API Schemas

Request bodies are lenient (every field optional) so the service can
answer with the customer app's own error messages. Money is returned as
plain numbers.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field

from app.models.customer import (
    BillStatus, CustomerPaymentStatus, CustomerStatus, DeviceCommandType, TicketStatus,
)


# ===========================================
# REQUESTS
# ===========================================

class LoginRequest(BaseModel):
    customer_code: Optional[str] = None
    username: Optional[str] = None
    phone: Optional[str] = None


class VerifyRequest(BaseModel):
    token: Optional[str] = None


class ProfileUpdate(BaseModel):
    phone: Optional[str] = Field(None, max_length=30)
    email: Optional[EmailStr] = None
    address: Optional[str] = None


class PaymentInitiateRequest(BaseModel):
    amount: Optional[float] = None
    payment_method: Optional[str] = None
    bill_id: Optional[UUID] = None


class RechargeRequest(BaseModel):
    amount: Optional[float] = None
    payment_method: Optional[str] = None
    months: Optional[int] = None


class PackageChangeRequest(BaseModel):
    package_id: Optional[UUID] = None


class TicketCreate(BaseModel):
    subject: Optional[str] = None
    message: Optional[str] = None
    category: Optional[str] = None


# ===========================================
# RESPONSES
# ===========================================

class PackageSummary(BaseModel):
    id: UUID
    name: str
    description: Optional[str] = None
    download_speed: int
    upload_speed: int
    speed_unit: str
    price: float
    validity_days: int

    class Config:
        from_attributes = True


class CustomerSummary(BaseModel):
    """Customer as returned at login."""
    id: UUID
    name: str
    phone: Optional[str] = None
    email: Optional[str] = None
    customer_code: str
    status: CustomerStatus
    pppoe_username: Optional[str] = None
    monthly_bill: float
    due_amount: float
    expiry_date: Optional[date] = None
    package: Optional[PackageSummary] = None

    class Config:
        from_attributes = True


class CustomerProfile(CustomerSummary):
    address: Optional[str] = None
    connection_date: Optional[date] = None
    last_payment_date: Optional[date] = None


class VerifiedCustomer(BaseModel):
    id: UUID
    name: str
    status: CustomerStatus

    class Config:
        from_attributes = True


class BillResponse(BaseModel):
    id: UUID
    bill_number: str
    billing_month: str
    amount: float
    paid_amount: float
    bill_date: date
    due_date: Optional[date] = None
    status: BillStatus
    paid_date: Optional[date] = None

    class Config:
        from_attributes = True


class CustomerPaymentResponse(BaseModel):
    id: UUID
    bill_id: Optional[UUID] = None
    amount: float
    payment_method: str
    payment_gateway: Optional[str] = None
    transaction_id: Optional[str] = None
    status: CustomerPaymentStatus
    payment_date: date
    notes: Optional[str] = None

    class Config:
        from_attributes = True


class TicketResponse(BaseModel):
    id: UUID
    ticket_number: str
    subject: str
    category: str
    priority: str
    status: TicketStatus
    created_at: datetime

    class Config:
        from_attributes = True


class DeviceCommandResponse(BaseModel):
    id: UUID
    command: DeviceCommandType
    status: str

    class Config:
        from_attributes = True
