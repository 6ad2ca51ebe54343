"""
Pydantic schemas for transportation add-ons.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

TransportType = Literal["bus", "private_car", "minibus"]


class TransportCreate(BaseModel):
    booking_id: int
    transport_type: TransportType
    pickup_location: str = Field(..., min_length=1, max_length=500)
    pickup_time: datetime
    return_time: Optional[datetime] = None
    passengers_count: int = Field(1, gt=0, le=100)
    special_requests: Optional[str] = Field(None, max_length=2000)

    @model_validator(mode="after")
    def _return_after_pickup(self):
        if self.return_time is not None and self.return_time <= self.pickup_time:
            raise ValueError("return_time must be after pickup_time")
        return self


class TransportResponse(BaseModel):
    id: int
    booking_id: int
    user_id: int
    transport_type: str
    pickup_location: str
    pickup_time: datetime
    return_time: Optional[datetime]
    passengers_count: int
    price: Decimal
    status: str
    special_requests: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class TransportQuote(BaseModel):
    transport_type: TransportType
    passengers_count: int
    price: Decimal
