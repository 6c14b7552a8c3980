"""
ISP Manager - Leave Schemas
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.leave import LeaveStatus


# ===========================================
# LEAVE TYPE SCHEMAS
# ===========================================

class LeaveTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=20)
    max_days_per_year: int = Field(0, ge=0, le=366)
    is_paid: bool = True
    color: Optional[str] = Field(None, max_length=20)


class LeaveTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    code: Optional[str] = Field(None, max_length=20)
    max_days_per_year: Optional[int] = Field(None, ge=0, le=366)
    is_paid: Optional[bool] = None
    color: Optional[str] = Field(None, max_length=20)
    is_active: Optional[bool] = None


class LeaveTypeResponse(LeaveTypeCreate):
    id: UUID
    is_active: bool

    class Config:
        from_attributes = True


# ===========================================
# LEAVE REQUEST SCHEMAS
# ===========================================

class LeaveRequestCreate(BaseModel):
    """Submit a leave request for an inclusive date range."""
    staff_id: UUID
    leave_type_id: UUID
    start_date: date
    end_date: date
    reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class LeaveRejectRequest(BaseModel):
    rejection_reason: str = Field(..., min_length=1)


class LeaveRequestResponse(BaseModel):
    id: UUID
    staff_id: UUID
    leave_type_id: UUID
    leave_type_name: Optional[str] = None
    start_date: date
    end_date: date
    total_days: int
    reason: Optional[str] = None
    status: LeaveStatus
    approved_by: Optional[UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


# ===========================================
# LEAVE BALANCE SCHEMAS
# ===========================================

class LeaveBalanceInitialize(BaseModel):
    staff_id: UUID
    year: int = Field(..., ge=2000, le=2100)


class LeaveBalanceResponse(BaseModel):
    id: UUID
    staff_id: UUID
    leave_type_id: UUID
    year: int
    total_days: int
    used_days: int
    remaining_days: int

    class Config:
        from_attributes = True
