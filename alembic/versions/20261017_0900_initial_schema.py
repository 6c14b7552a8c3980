"""Initial ISP Manager schema

Revision ID: 20261017_0900_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000

Creates every table declared in app.models:
- tenants, invoices
- staff, staff_shifts, staff_attendance, staff_loans, loan_deductions,
  payroll_runs, salary_payments, performance_reviews
- leave_types, leave_requests, leave_balances
- payments, tenant_payment_gateways, payment_gateway_settings
- isp_packages, customers, customer_bills, customer_payments,
  customer_recharges, support_tickets, device_commands, bandwidth_samples
- olts, onus
- products, pos_sales, purchase_orders, supplier_payments
"""

from alembic import op

from app.database import Base
import app.models  # noqa: F401

# revision identifiers
revision = '20261017_0900_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create all tables that do not exist yet."""
    Base.metadata.create_all(bind=op.get_bind(), checkfirst=True)


def downgrade() -> None:
    """Drop all tables."""
    Base.metadata.drop_all(bind=op.get_bind())
