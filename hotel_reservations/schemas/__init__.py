"""Pydantic schemas for request/response validation."""

from hotel_reservations.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
)
from hotel_reservations.schemas.food_order import (
    FoodOrderCreate,
    FoodOrderItemCreate,
    FoodOrderListResponse,
    FoodOrderResponse,
    FoodOrderStatusUpdate,
)
from hotel_reservations.schemas.room import (
    AvailabilityResponse,
    AvailableRoomResponse,
    PriceQuoteResponse,
    RoomCategoryResponse,
    RoomResponse,
)

__all__ = [
    # Booking
    "BookingCreate",
    "BookingStatusUpdate",
    "BookingCancelRequest",
    "BookingResponse",
    "BookingListResponse",
    # Food orders
    "FoodOrderCreate",
    "FoodOrderItemCreate",
    "FoodOrderStatusUpdate",
    "FoodOrderResponse",
    "FoodOrderListResponse",
    # Rooms
    "AvailabilityResponse",
    "AvailableRoomResponse",
    "PriceQuoteResponse",
    "RoomCategoryResponse",
    "RoomResponse",
]
