"""
ISP Manager - Leave Models

Leave types, staff leave requests and yearly leave balances.
"""

import uuid
from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean, Date, DateTime, ForeignKey, Integer, String, Text,
    Enum as SQLEnum, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import BaseModel, TenantMixin


class LeaveStatus(str, Enum):
    """Leave request status. Everything except PENDING is terminal."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class LeaveType(BaseModel, TenantMixin):
    """Kind of leave a tenant grants (annual, sick, casual...)."""

    __tablename__ = "leave_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    max_days_per_year: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    color: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<LeaveType(name={self.name}, max_days={self.max_days_per_year})>"


class LeaveRequest(BaseModel, TenantMixin):
    """A staff member's request for leave over an inclusive date range."""

    __tablename__ = "leave_requests"

    staff_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("leave_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[int] = mapped_column(
        Integer, nullable=False,
        comment="Inclusive calendar days, weekends included",
    )
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[LeaveStatus] = mapped_column(
        SQLEnum(LeaveStatus),
        default=LeaveStatus.PENDING,
        nullable=False,
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True,
        comment="Set on approval and on rejection",
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    leave_type: Mapped["LeaveType"] = relationship("LeaveType", lazy="selectin")

    def __repr__(self) -> str:
        return f"<LeaveRequest(staff={self.staff_id}, {self.start_date}..{self.end_date}, status={self.status})>"


class LeaveBalance(BaseModel, TenantMixin):
    """Yearly allowance and usage of one leave type for one staff member."""

    __tablename__ = "leave_balances"

    staff_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("staff.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("leave_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    used_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "staff_id", "leave_type_id", "year",
            name="uq_leave_balances_tenant_staff_type_year",
        ),
    )

    @property
    def remaining_days(self) -> int:
        """Not clamped; over-approved leave shows as a negative balance."""
        return self.total_days - self.used_days
