"""Database models."""

from hotel_reservations.models.admin import AuditLog
from hotel_reservations.models.booking import Booking, BookingRoom
from hotel_reservations.models.food import FoodItem, FoodOrder, FoodOrderItem
from hotel_reservations.models.room import Room, RoomCategory
from hotel_reservations.models.user import User

__all__ = [
    # User
    "User",
    # Rooms
    "Room",
    "RoomCategory",
    # Booking
    "Booking",
    "BookingRoom",
    # Food
    "FoodItem",
    "FoodOrder",
    "FoodOrderItem",
    # Admin
    "AuditLog",
]
