"""
Pydantic schemas for the customer service ledger.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field

ServiceType = Literal["food_discount", "bus_discount", "cashback", "promotional_gift"]


class ServiceApply(BaseModel):
    booking_reference: str = Field(..., min_length=1, max_length=20)
    service_type: ServiceType
    amount: Optional[Decimal] = None
    note: Optional[str] = Field(None, max_length=1000)


class ServiceApproval(BaseModel):
    """Support-side input when honouring a service; discounts need a rate."""

    discount_percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class ServiceResponse(BaseModel):
    id: int
    booking_id: int
    user_id: int
    service_type: str
    service_details: dict[str, Any]
    is_active: bool
    applied_at: Optional[datetime]
    expires_at: Optional[datetime]
    created_at: datetime

    model_config = {"from_attributes": True}


class ExpireResponse(BaseModel):
    expired: int
