"""
ISP Manager - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin, TenantMixin
from app.models.tenant import Tenant, Invoice, InvoiceStatus
from app.models.payroll import (
    AttendanceStatus,
    LoanStatus,
    LoanType,
    SalaryType,
    SalaryStatus,
    PayrollRunStatus,
    ReviewStatus,
    StaffShift,
    Staff,
    StaffAttendance,
    StaffLoan,
    LoanDeduction,
    PayrollRun,
    SalaryPayment,
    PerformanceReview,
)
from app.models.leave import LeaveStatus, LeaveType, LeaveRequest, LeaveBalance
from app.models.network import OLT, ONU
from app.models.customer import (
    CustomerStatus,
    BillStatus,
    CustomerPaymentStatus,
    TicketStatus,
    DeviceCommandType,
    ISPPackage,
    Customer,
    CustomerBill,
    CustomerPayment,
    CustomerRecharge,
    SupportTicket,
    DeviceCommand,
    BandwidthSample,
)
from app.models.payment import (
    PaymentStatus,
    PaymentPurpose,
    Payment,
    TenantPaymentGateway,
    PaymentGatewaySetting,
)
from app.models.pos import Product, PosSale, PurchaseOrder, SupplierPayment

__all__ = [
    # Base
    "BaseModel",
    "TimestampMixin",
    "TenantMixin",
    # Tenant
    "Tenant",
    "Invoice",
    "InvoiceStatus",
    # Payroll
    "AttendanceStatus",
    "LoanStatus",
    "LoanType",
    "SalaryType",
    "SalaryStatus",
    "PayrollRunStatus",
    "ReviewStatus",
    "StaffShift",
    "Staff",
    "StaffAttendance",
    "StaffLoan",
    "LoanDeduction",
    "PayrollRun",
    "SalaryPayment",
    "PerformanceReview",
    # Leave
    "LeaveStatus",
    "LeaveType",
    "LeaveRequest",
    "LeaveBalance",
    # Network
    "OLT",
    "ONU",
    # Customers
    "CustomerStatus",
    "BillStatus",
    "CustomerPaymentStatus",
    "TicketStatus",
    "DeviceCommandType",
    "ISPPackage",
    "Customer",
    "CustomerBill",
    "CustomerPayment",
    "CustomerRecharge",
    "SupportTicket",
    "DeviceCommand",
    "BandwidthSample",
    # Payments
    "PaymentStatus",
    "PaymentPurpose",
    "Payment",
    "TenantPaymentGateway",
    "PaymentGatewaySetting",
    # Point of sale
    "Product",
    "PosSale",
    "PurchaseOrder",
    "SupplierPayment",
]
