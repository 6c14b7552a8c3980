"""
ISP Manager - Payment Schemas
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.payment import PaymentStatus


class PaymentResponse(BaseModel):
    """Gateway payment record."""
    id: UUID
    amount: Decimal
    payment_method: str
    payment_for: str
    status: PaymentStatus
    description: Optional[str] = None
    invoice_number: Optional[str] = None
    transaction_id: Optional[str] = None
    customer_id: Optional[UUID] = None
    gateway_response: Optional[Dict[str, Any]] = None
    paid_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PaymentList(BaseModel):
    items: List[PaymentResponse]
    total: int
    limit: int
    offset: int


# ===========================================
# GATEWAY CONFIGURATION
# ===========================================

class GatewayConfigUpdate(BaseModel):
    """Tenant credentials for one gateway; keys depend on the gateway."""
    display_name: Optional[str] = Field(None, max_length=100)
    is_enabled: Optional[bool] = None
    sandbox_mode: Optional[bool] = None
    config: Optional[Dict[str, Any]] = None


class GatewayConfigResponse(BaseModel):
    """Configured gateway. Credential values are never returned."""
    gateway: str
    display_name: Optional[str] = None
    is_enabled: bool
    sandbox_mode: bool
    configured_keys: List[str] = []


class GatewayInfo(BaseModel):
    name: str
    display_name: str
