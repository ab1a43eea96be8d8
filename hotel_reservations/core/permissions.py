"""Role-based access control and permissions."""

from enum import Enum
from typing import Annotated, Any, Callable

from fastapi import Depends

from hotel_reservations.api.deps import get_current_active_user
from hotel_reservations.core.exceptions import AuthorizationError
from hotel_reservations.models.user import User


class UserRole(str, Enum):
    """User roles in the system."""

    GUEST = "guest"
    RECEPTIONIST = "receptionist"
    MANAGER = "manager"
    ADMIN = "admin"


class Permission(str, Enum):
    """System permissions."""

    # Own bookings
    CREATE_BOOKING = "create_booking"
    VIEW_BOOKING = "view_booking"
    CANCEL_BOOKING = "cancel_booking"

    # Front desk
    BOOK_FOR_GUEST = "book_for_guest"
    VIEW_ALL_BOOKINGS = "view_all_bookings"
    UPDATE_BOOKING_STATUS = "update_booking_status"

    # Room service
    PLACE_FOOD_ORDER = "place_food_order"
    VIEW_FOOD_ORDER = "view_food_order"
    VIEW_ALL_FOOD_ORDERS = "view_all_food_orders"
    UPDATE_FOOD_ORDER_STATUS = "update_food_order_status"

    # Admin
    VIEW_AUDIT_LOGS = "view_audit_logs"


_GUEST_PERMISSIONS = {
    Permission.CREATE_BOOKING,
    Permission.VIEW_BOOKING,
    Permission.CANCEL_BOOKING,
    Permission.PLACE_FOOD_ORDER,
    Permission.VIEW_FOOD_ORDER,
}

_STAFF_PERMISSIONS = _GUEST_PERMISSIONS | {
    Permission.BOOK_FOR_GUEST,
    Permission.VIEW_ALL_BOOKINGS,
    Permission.UPDATE_BOOKING_STATUS,
    Permission.VIEW_ALL_FOOD_ORDERS,
    Permission.UPDATE_FOOD_ORDER_STATUS,
}

# Role to permissions mapping
ROLE_PERMISSIONS: dict[UserRole, set[Permission]] = {
    UserRole.GUEST: _GUEST_PERMISSIONS,
    UserRole.RECEPTIONIST: _STAFF_PERMISSIONS,
    UserRole.MANAGER: _STAFF_PERMISSIONS | {Permission.VIEW_AUDIT_LOGS},
    UserRole.ADMIN: {
        # Admins have all permissions
        perm for perm in Permission
    },
}


def has_permission(role: UserRole | str, permission: Permission) -> bool:
    """Check if a role has a specific permission."""
    try:
        role = UserRole(role)
    except ValueError:
        return False
    return permission in ROLE_PERMISSIONS.get(role, set())


def require_permission(permission: Permission) -> Callable[..., Any]:
    """Dependency to require a specific permission."""

    async def permission_checker(
        current_user: Annotated[User, Depends(get_current_active_user)],
    ) -> User:
        if not has_permission(current_user.role, permission):
            raise AuthorizationError(f"Permission '{permission.value}' is required for this action")
        return current_user

    return permission_checker


def can_act_for(user: User, owner_id: Any, permission: Permission) -> bool:
    """True if ``user`` owns the resource or holds the staff-wide ``permission``."""
    return user.id == owner_id or has_permission(user.role, permission)
