"""Room availability search.

Results are a point-in-time estimate: nothing is locked or reserved here, and
the booking service re-checks for overlaps under lock before it writes.
"""

from collections.abc import Callable, Iterable
from datetime import date
from uuid import UUID

from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import contains_eager, joinedload

from hotel_reservations.config import settings
from hotel_reservations.core.exceptions import NotFoundError, ValidationError
from hotel_reservations.domain.booking_state import ACTIVE_BOOKING_STATUSES
from hotel_reservations.domain.pricing import quote
from hotel_reservations.models.booking import Booking, BookingRoom
from hotel_reservations.models.room import Room, RoomCategory
from hotel_reservations.schemas.room import AvailableRoomResponse, RoomResponse
from hotel_reservations.utils.dates import today as utc_today

ROOM_STATUS_AVAILABLE = "available"


def validate_stay_dates(check_in: date, check_out: date, today: date) -> None:
    """Guard: check_in < check_out and check_in is not in the past."""
    if check_in >= check_out:
        raise ValidationError(
            "Check-out date must be after check-in date", code=ValidationError.INVALID_RANGE
        )
    if check_in < today:
        raise ValidationError(
            "Check-in date cannot be in the past", code=ValidationError.PAST_DATE
        )


def validate_guest_count(guest_count: int) -> None:
    """Guard: 1 <= guest_count <= max_guest_count."""
    if not 1 <= guest_count <= settings.max_guest_count:
        raise ValidationError(
            f"Guest count must be between 1 and {settings.max_guest_count}",
            code=ValidationError.INVALID_GUEST_COUNT,
        )


def overlapping_room_ids(
    check_in: date,
    check_out: date,
    room_ids: Iterable[UUID] | None = None,
) -> Select:
    """Ids of rooms held by an active booking overlapping ``[check_in, check_out)``."""
    query = (
        select(BookingRoom.room_id)
        .join(Booking, Booking.id == BookingRoom.booking_id)
        .where(
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            # Half-open overlap: existing.check_in < check_out AND existing.check_out > check_in
            Booking.check_in < check_out,
            Booking.check_out > check_in,
        )
    )
    if room_ids is not None:
        query = query.where(BookingRoom.room_id.in_(list(room_ids)))
    return query.distinct()


class AvailabilityService:
    """Service for room availability and room lookups."""

    def __init__(self, today: Callable[[], date] = utc_today) -> None:
        self._today = today

    async def search_available_rooms(
        self,
        db: AsyncSession,
        check_in: date,
        check_out: date,
        guest_count: int,
        category_id: UUID | None = None,
    ) -> list[AvailableRoomResponse]:
        """Free rooms for the stay, cheapest category first, then by room number.

        Args:
            db: Database session
            check_in: First night of the stay
            check_out: Departure date (exclusive)
            guest_count: Number of guests, 1 to max_guest_count
            category_id: Restrict to one room category

        Returns:
            list[AvailableRoomResponse]: Rooms with category, nights and total price

        Raises:
            ValidationError: invalid_range, past_date or invalid_guest_count
        """
        validate_stay_dates(check_in, check_out, self._today())
        validate_guest_count(guest_count)

        booked = overlapping_room_ids(check_in, check_out)

        query = (
            select(Room)
            .join(Room.category)
            .options(contains_eager(Room.category))
            .where(
                Room.status == ROOM_STATUS_AVAILABLE,
                Room.id.not_in(booked),
                RoomCategory.max_occupancy >= guest_count,
            )
        )
        if category_id:
            query = query.where(Room.category_id == category_id)
        query = query.order_by(RoomCategory.base_price.asc(), Room.room_number.asc())

        result = await db.execute(query)
        rooms = result.scalars().all()

        available = []
        for room in rooms:
            price = quote(room.category.base_price, check_in, check_out)
            details = RoomResponse.model_validate(room)
            available.append(
                AvailableRoomResponse(
                    **details.model_dump(),
                    total_price=price.total_price,
                    nights=price.nights,
                )
            )
        return available

    async def get_room_details(self, db: AsyncSession, room_id: UUID) -> Room:
        """Room with its category.

        Raises:
            NotFoundError: If the room does not exist
        """
        result = await db.execute(
            select(Room).options(joinedload(Room.category)).where(Room.id == room_id)
        )
        room = result.scalar_one_or_none()
        if not room:
            raise NotFoundError("Room", str(room_id))
        return room

    async def list_room_categories(self, db: AsyncSession) -> list[RoomCategory]:
        """All room categories, cheapest first."""
        result = await db.execute(
            select(RoomCategory).order_by(RoomCategory.base_price.asc(), RoomCategory.name.asc())
        )
        return list(result.scalars().all())


availability_service = AvailabilityService()
