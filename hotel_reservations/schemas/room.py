"""Room and availability Pydantic schemas."""

from datetime import date
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RoomCategoryResponse(BaseModel):
    """Schema for room category response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None = None
    base_price: Decimal
    max_occupancy: int
    amenities: list | None = None
    images: list | None = None


class RoomResponse(BaseModel):
    """Room joined with its category."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    room_number: str
    category_id: UUID
    status: str
    floor: int
    notes: str | None = None
    category: RoomCategoryResponse


class AvailableRoomResponse(RoomResponse):
    """Free room with the price of the requested stay."""

    total_price: Decimal
    nights: int


class AvailabilityResponse(BaseModel):
    """Schema for availability search results."""

    check_in: date
    check_out: date
    guest_count: int
    rooms: list[AvailableRoomResponse]
    total: int


class PriceQuoteResponse(BaseModel):
    """Schema for a single-room price quote."""

    base_rate: Decimal
    check_in: date
    check_out: date
    nights: int
    total_price: Decimal
    currency: str = Field(default="USD")
