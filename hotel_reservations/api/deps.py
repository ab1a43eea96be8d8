"""API dependencies for identity, sessions and services."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from hotel_reservations.core.exceptions import AuthenticationError, AuthorizationError
from hotel_reservations.core.security import verify_token
from hotel_reservations.database import get_db
from hotel_reservations.models.user import User
from hotel_reservations.services.availability_service import (
    AvailabilityService,
    availability_service,
)
from hotel_reservations.services.booking_service import BookingService, booking_service
from hotel_reservations.services.food_order_service import (
    FoodOrderService,
    food_order_service,
)

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """Get the current authenticated user from the bearer token."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = verify_token(credentials.credentials, token_type="access")
    user_id = payload.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token payload")
    try:
        user_uuid = UUID(user_id)
    except ValueError:
        raise AuthenticationError("Invalid token subject")

    user = await db.get(User, user_uuid)
    if not user:
        raise AuthenticationError("User not found")
    return user


async def get_current_active_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    """Get current user and verify they are active."""
    if not current_user.is_active:
        raise AuthorizationError("User account is deactivated")
    return current_user


def get_availability_service() -> AvailabilityService:
    return availability_service


def get_booking_service() -> BookingService:
    return booking_service


def get_food_order_service() -> FoodOrderService:
    return food_order_service
