"""
ISP Manager - Services Package

Business logic services.
"""

from app.services.payroll_calculator import PayrollCalculator, SalaryBreakdown
from app.services.payroll_service import PayrollService
from app.services.leave_service import LeaveService
from app.services.payment_service import PaymentService
from app.services.customer_portal_service import CustomerPortalService
from app.services.onu_export_service import ONUExportService
from app.services.report_service import ReportService

__all__ = [
    # Staff
    "PayrollCalculator",
    "SalaryBreakdown",
    "PayrollService",
    "LeaveService",
    # Payments
    "PaymentService",
    # Customer portal
    "CustomerPortalService",
    # Network & reports
    "ONUExportService",
    "ReportService",
]
