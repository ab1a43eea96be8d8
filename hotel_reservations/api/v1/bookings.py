"""Booking endpoints."""

from collections.abc import Awaitable
from typing import Annotated, TypeVar
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from hotel_reservations.api.deps import get_booking_service
from hotel_reservations.core.exceptions import AppException, AuthorizationError
from hotel_reservations.core.metrics import get_metrics
from hotel_reservations.core.permissions import Permission, can_act_for, has_permission, require_permission
from hotel_reservations.models.booking import Booking
from hotel_reservations.models.user import User
from hotel_reservations.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingListResponse,
    BookingResponse,
    BookingStatusUpdate,
)
from hotel_reservations.services.booking_service import BookingService

router = APIRouter()

T = TypeVar("T")


async def _tracked(operation: str, call: Awaitable[T]) -> T:
    """Count the outcome of a booking operation by error code."""
    counter = get_metrics().booking_operations_total
    try:
        result = await call
    except AppException as exc:
        counter.labels(operation, exc.code).inc()
        raise
    counter.labels(operation, "success").inc()
    return result


async def _get_accessible_booking(
    service: BookingService, booking_id: UUID, current_user: User
) -> Booking:
    booking = await service.get_booking(booking_id)
    if not can_act_for(current_user, booking.guest_id, Permission.VIEW_ALL_BOOKINGS):
        raise AuthorizationError("You don't have permission to access this booking")
    return booking


@router.post("/", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_data: BookingCreate,
    current_user: Annotated[User, Depends(require_permission(Permission.CREATE_BOOKING))],
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> Booking:
    """Reserve one or more rooms for a stay."""
    guest_id = booking_data.guest_id or current_user.id
    if guest_id != current_user.id and not has_permission(current_user.role, Permission.BOOK_FOR_GUEST):
        raise AuthorizationError("Only staff can book on behalf of another guest")

    return await _tracked(
        "create",
        service.create_booking(
            guest_id=guest_id,
            room_ids=booking_data.room_ids,
            check_in=booking_data.check_in,
            check_out=booking_data.check_out,
            guest_count=booking_data.guest_count,
            special_requests=booking_data.special_requests,
            actor_id=current_user.id,
        ),
    )


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    current_user: Annotated[User, Depends(require_permission(Permission.VIEW_BOOKING))],
    service: Annotated[BookingService, Depends(get_booking_service)],
    guest_id: UUID | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
) -> BookingListResponse:
    """Own bookings for guests; any guest's bookings for staff."""
    if not has_permission(current_user.role, Permission.VIEW_ALL_BOOKINGS):
        guest_id = current_user.id

    bookings = await service.list_bookings(guest_id=guest_id, status=status_filter)
    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=len(bookings),
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    current_user: Annotated[User, Depends(require_permission(Permission.VIEW_BOOKING))],
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> Booking:
    """Get a booking by ID."""
    return await _get_accessible_booking(service, booking_id, current_user)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status(
    booking_id: UUID,
    request: BookingStatusUpdate,
    current_user: Annotated[User, Depends(require_permission(Permission.UPDATE_BOOKING_STATUS))],
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> Booking:
    """Move a booking to a new status (staff only)."""
    return await _tracked(
        "update_status",
        service.update_booking_status(booking_id, request.status, actor_id=current_user.id),
    )


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    request: BookingCancelRequest,
    current_user: Annotated[User, Depends(require_permission(Permission.CANCEL_BOOKING))],
    service: Annotated[BookingService, Depends(get_booking_service)],
) -> Booking:
    """Cancel a booking. Guests may only cancel their own."""
    booking = await service.get_booking(booking_id)
    if not can_act_for(current_user, booking.guest_id, Permission.UPDATE_BOOKING_STATUS):
        raise AuthorizationError("You don't have permission to cancel this booking")

    return await _tracked(
        "cancel",
        service.cancel_booking(booking_id, actor_id=current_user.id, reason=request.reason),
    )
