"""Core utilities and security modules."""

from hotel_reservations.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    PersistenceError,
    RoomUnavailable,
    TransientConflict,
    TransitionError,
    ValidationError,
)
from hotel_reservations.core.security import create_access_token, verify_token

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "PersistenceError",
    "RoomUnavailable",
    "TransientConflict",
    "TransitionError",
    "ValidationError",
    "create_access_token",
    "verify_token",
]
