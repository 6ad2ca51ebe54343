"""
Pydantic schemas for listing management, search and availability.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, model_validator

Category = Literal["youth", "family"]


class Coordinates(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ListingCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    governorate: str = Field(..., min_length=1, max_length=100)
    address: str = Field(..., min_length=1, max_length=500)
    coordinates: Optional[Coordinates] = None
    category: Category
    price_per_day: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    max_capacity: int = Field(..., gt=0, le=1000)
    features: list[str] = Field(default_factory=list)
    images: list[str] = Field(default_factory=list)
    has_pool: bool = False
    pool_sanitized: bool = False
    cleanliness_rating: Decimal = Field(Decimal("5.0"), ge=0, le=5, decimal_places=1)
    is_active: bool = True


class ListingUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=5000)
    governorate: Optional[str] = Field(None, min_length=1, max_length=100)
    address: Optional[str] = Field(None, min_length=1, max_length=500)
    coordinates: Optional[Coordinates] = None
    category: Optional[Category] = None
    price_per_day: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    max_capacity: Optional[int] = Field(None, gt=0, le=1000)
    features: Optional[list[str]] = None
    images: Optional[list[str]] = None
    has_pool: Optional[bool] = None
    pool_sanitized: Optional[bool] = None
    cleanliness_rating: Optional[Decimal] = Field(None, ge=0, le=5, decimal_places=1)
    is_active: Optional[bool] = None


class ListingResponse(BaseModel):
    id: int
    owner_id: int
    name: str
    description: Optional[str]
    governorate: str
    address: str
    coordinates: Optional[Coordinates]
    category: str
    price_per_day: Decimal
    max_capacity: int
    features: list[str]
    images: list[str]
    has_pool: bool
    pool_sanitized: bool
    cleanliness_rating: Decimal
    is_active: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class ListingListResponse(BaseModel):
    listings: list[ListingResponse]
    total: int
    page: int
    page_size: int
    cached: bool = False


class ListingSearch(BaseModel):
    category: Optional[Category] = None
    governorate: Optional[str] = None
    max_price: Optional[Decimal] = Field(None, ge=0)
    guests: Optional[int] = Field(None, gt=0)
    check_in: Optional[date] = None
    check_out: Optional[date] = None
    page: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)

    @model_validator(mode="after")
    def _dates_together(self):
        if (self.check_in is None) != (self.check_out is None):
            raise ValueError("check_in and check_out must be given together")
        if self.check_in and self.check_out and self.check_out <= self.check_in:
            raise ValueError("check_out must be after check_in")
        return self

    def cache_key(self) -> str:
        parts = self.model_dump(mode="json")
        return "&".join(f"{k}={parts[k]}" for k in sorted(parts))


class DashboardStats(BaseModel):
    total_listings: int
    active_listings: int
    average_price_per_day: Decimal


class BookedRange(BaseModel):
    check_in: date
    check_out: date
    status: str


class AvailabilityResponse(BaseModel):
    listing_id: int
    start: date
    end: date
    booked: list[BookedRange]
    requested_available: Optional[bool] = None
