"""
ISP Manager - Report Schemas
"""

from typing import List, Literal
from uuid import UUID

from pydantic import BaseModel, Field


class LabelItem(BaseModel):
    product_id: UUID
    copies: int = Field(1, ge=1, le=500)


class ProductCodesRequest(BaseModel):
    """QR label sheet options."""
    items: List[LabelItem] = Field(..., min_length=1)
    columns: int = Field(4, ge=3, le=6)
    size: Literal["small", "medium", "large"] = "medium"
    show_price: bool = True
    show_name: bool = True
