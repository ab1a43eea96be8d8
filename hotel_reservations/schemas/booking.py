"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from hotel_reservations.config import settings

BookingStatus = Literal["pending_payment", "confirmed", "checked_in", "checked_out", "cancelled"]


class BookingCreate(BaseModel):
    """Schema for creating a booking.

    ``guest_id`` may only be set by staff; guests always book for themselves.
    """

    room_ids: list[UUID] = Field(..., min_length=1)
    check_in: date
    check_out: date
    guest_count: int = Field(default=1, ge=1, le=settings.max_guest_count)
    special_requests: str | None = Field(None, max_length=1000)
    guest_id: UUID | None = None


class BookingStatusUpdate(BaseModel):
    """Schema for moving a booking to a new status."""

    status: str


class BookingCancelRequest(BaseModel):
    """Schema for canceling a booking."""

    reason: str | None = Field(None, max_length=1000)


class BookingRoomResponse(BaseModel):
    """Schema for a booked room."""

    model_config = ConfigDict(from_attributes=True)

    room_id: UUID
    room_number: str
    category_name: str
    nightly_rate: Decimal


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    guest_id: UUID

    # Dates
    check_in: date
    check_out: date
    nights: int

    guest_count: int
    special_requests: str | None

    # Rooms
    room_ids: list[UUID]
    room_links: list[BookingRoomResponse]

    total_price: Decimal
    status: str
    cancellation_reason: str | None

    # Timestamps
    confirmed_at: datetime | None
    checked_in_at: datetime | None
    checked_out_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime
    updated_at: datetime


class BookingListResponse(BaseModel):
    """Schema for booking list."""

    bookings: list[BookingResponse]
    total: int
