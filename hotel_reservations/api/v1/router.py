"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from hotel_reservations.api.v1 import audit_logs, availability, bookings, food_orders, rooms

api_router = APIRouter()

# Availability
api_router.include_router(availability.router, prefix="/availability", tags=["Availability"])

# Rooms
api_router.include_router(rooms.router, prefix="/rooms", tags=["Rooms"])

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Room service
api_router.include_router(food_orders.router, prefix="/food-orders", tags=["Food Orders"])

# Audit
api_router.include_router(audit_logs.router, prefix="/audit-logs", tags=["Audit"])
