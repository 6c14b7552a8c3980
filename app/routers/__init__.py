"""
ISP Manager - Routers Package

FastAPI route handlers.

Routers:
- payroll: Staff, shifts, attendance, loans and monthly payroll
- leave: Leave types, balances and requests
- payments: Gateway payment initiation, callbacks and payment records
- customer_api: Customer app / self-care API
- exports: CSV downloads
- reports: Printable HTML reports
"""

from app.routers import (
    payroll,
    leave,
    payments,
    customer_api,
    exports,
    reports,
)

__all__ = [
    "payroll",
    "leave",
    "payments",
    "customer_api",
    "exports",
    "reports",
]
