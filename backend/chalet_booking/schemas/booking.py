"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

BookingStatus = Literal["pending", "confirmed", "cancelled", "completed"]
PaymentStatus = Literal["pending", "paid", "partial", "refunded"]


class BookingCreate(BaseModel):
    listing_id: int
    check_in: date
    check_out: date
    guests_count: int = Field(..., gt=0, le=1000)
    children_count: int = Field(0, ge=0, le=1000)
    special_requests: Optional[str] = Field(None, max_length=2000)


class BookingResponse(BaseModel):
    id: int
    listing_id: int
    user_id: int
    check_in: date
    check_out: date
    guests_count: int
    children_count: int
    total_amount: Decimal
    discount_amount: Decimal
    cashback_amount: Decimal
    status: str
    payment_status: str
    special_requests: Optional[str]
    booking_reference: str
    created_at: datetime

    model_config = {"from_attributes": True}


class BookingCancelResponse(BaseModel):
    message: str
    booking_id: int
    booking_reference: str
    status: str


class BookingStatusUpdate(BaseModel):
    status: Optional[BookingStatus] = None
    payment_status: Optional[PaymentStatus] = None

    @model_validator(mode="after")
    def _something_to_change(self):
        if self.status is None and self.payment_status is None:
            raise ValueError("status or payment_status is required")
        return self


class QuoteRequest(BaseModel):
    check_in: date
    check_out: date
    guests_count: int = Field(..., gt=0, le=1000)


class PriceQuote(BaseModel):
    nights: int
    subtotal: Decimal
    discount: Decimal
    cashback: Decimal
    total: Decimal
    available: Optional[bool] = None
