"""Booking creation and status changes.

CRITICAL INVARIANT:
- For any room, no two active bookings (pending_payment, confirmed, checked_in)
  linked to it may have overlapping [check_in, check_out) ranges.

Every write that can change a room's set of active bookings runs as:
lock the rooms -> open a transaction -> re-check overlaps -> write -> commit
-> release the locks. Locks are per room, taken in a fixed order, and bounded
by ``booking_lock_timeout_seconds``. Contention surfaces as TransientConflict
and is retried a bounded number of times; any other storage failure surfaces
as PersistenceError immediately.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import date
from typing import TypeVar
from uuid import UUID

from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from hotel_reservations.config import settings
from hotel_reservations.core.exceptions import (
    NotFoundError,
    RoomUnavailable,
    TransientConflict,
    ValidationError,
)
from hotel_reservations.core.locks import RoomLockManager
from hotel_reservations.database import classify_db_error
from hotel_reservations.domain.booking_state import (
    CANCELLED,
    CHECKED_IN,
    CHECKED_OUT,
    CONFIRMED,
    INITIAL_BOOKING_STATUSES,
    PENDING_PAYMENT,
    assert_booking_transition,
    booking_transitions,
)
from hotel_reservations.domain.pricing import quote, sum_prices
from hotel_reservations.models.booking import Booking, BookingRoom
from hotel_reservations.models.room import Room
from hotel_reservations.models.user import User
from hotel_reservations.services.audit_service import AuditService, audit_service
from hotel_reservations.services.availability_service import (
    overlapping_room_ids,
    validate_guest_count,
    validate_stay_dates,
)
from hotel_reservations.utils.dates import today as utc_today
from hotel_reservations.utils.dates import utcnow

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Timestamp column stamped when a booking enters each status
STATUS_TIMESTAMPS = {
    CONFIRMED: "confirmed_at",
    CHECKED_IN: "checked_in_at",
    CHECKED_OUT: "checked_out_at",
    CANCELLED: "cancelled_at",
}


def normalize_room_ids(room_ids: Sequence[UUID]) -> list[UUID]:
    """Guard: at least one room and no duplicates."""
    if not room_ids:
        raise ValidationError("At least one room must be selected")
    if len(set(room_ids)) != len(room_ids):
        raise ValidationError("The same room was selected more than once")
    return list(room_ids)


class BookingService:
    """Service guarding room bookings against overlapping stays."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        lock_manager: RoomLockManager | None = None,
        audit: AuditService | None = None,
        today: Callable[[], date] = utc_today,
        lock_timeout: float | None = None,
        max_attempts: int | None = None,
        retry_backoff: float | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.locks = lock_manager or RoomLockManager()
        self.audit = audit or audit_service
        self._today = today
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.booking_lock_timeout_seconds
        self.max_attempts = max_attempts or settings.booking_max_attempts
        self.retry_backoff = (
            retry_backoff if retry_backoff is not None else settings.booking_retry_backoff_seconds
        )

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            from hotel_reservations.database import async_session_maker

            self._session_factory = async_session_maker
        return self._session_factory

    # ==================== WRITES ====================

    async def create_booking(
        self,
        guest_id: UUID,
        room_ids: Sequence[UUID],
        check_in: date,
        check_out: date,
        guest_count: int = 1,
        special_requests: str | None = None,
        status: str = PENDING_PAYMENT,
        actor_id: UUID | None = None,
    ) -> Booking:
        """Reserve rooms for a stay as one atomic unit.

        Args:
            guest_id: Guest the booking belongs to
            room_ids: Rooms to reserve
            check_in: First night of the stay
            check_out: Departure date (exclusive)
            guest_count: Number of guests
            special_requests: Free-text guest requests
            status: Initial status, pending_payment or confirmed
            actor_id: User performing the action, for the audit trail

        Returns:
            Booking: The committed booking with its room links

        Raises:
            ValidationError: Bad dates, rooms, guest count or status
            NotFoundError: Unknown guest or room
            RoomUnavailable: An active booking overlaps on one of the rooms
            TransientConflict: Rooms stayed locked after every retry
            PersistenceError: Storage failure (not retried)
        """
        room_ids = normalize_room_ids(room_ids)
        validate_stay_dates(check_in, check_out, self._today())
        validate_guest_count(guest_count)
        if status not in INITIAL_BOOKING_STATUSES:
            raise ValidationError(f"Bookings cannot be created with status '{status}'")

        async def attempt() -> Booking:
            return await self._create_once(
                guest_id, room_ids, check_in, check_out, guest_count, special_requests, status
            )

        booking = await self._with_retries("create_booking", attempt)

        logger.info(
            f"Booking {booking.id} created for guest {guest_id}: "
            f"{len(room_ids)} room(s), {check_in} to {check_out}, total {booking.total_price}"
        )
        self.audit.record(
            action="booking.create",
            resource_type="booking",
            resource_id=booking.id,
            user_id=actor_id or guest_id,
            new_values={
                "status": booking.status,
                "room_ids": [str(room_id) for room_id in room_ids],
                "check_in": check_in.isoformat(),
                "check_out": check_out.isoformat(),
                "total_price": str(booking.total_price),
            },
        )
        return booking

    async def update_booking_status(
        self,
        booking_id: UUID,
        new_status: str,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> Booking:
        """Move a booking through the state machine.

        Uses the same room locks as creation, so a cancellation can never free
        a room halfway through a concurrent creation's overlap check.

        Raises:
            ValidationError: Unknown status name
            NotFoundError: Unknown booking
            TransitionError: Move not allowed from the current status
            TransientConflict: Rooms stayed locked after every retry
            PersistenceError: Storage failure (not retried)
        """
        booking_transitions.assert_known(new_status)

        async def attempt() -> tuple[Booking, str]:
            room_ids = await self._get_room_ids(booking_id)
            return await self._update_status_once(booking_id, room_ids, new_status, reason)

        booking, old_status = await self._with_retries("update_booking_status", attempt)

        logger.info(f"Booking {booking_id} moved {old_status} → {new_status}")
        self.audit.record(
            action="booking.status_change",
            resource_type="booking",
            resource_id=booking_id,
            user_id=actor_id,
            old_values={"status": old_status},
            new_values={"status": new_status},
        )
        return booking

    async def cancel_booking(
        self,
        booking_id: UUID,
        actor_id: UUID | None = None,
        reason: str | None = None,
    ) -> Booking:
        """Cancel a pending or confirmed booking, releasing its rooms."""
        return await self.update_booking_status(booking_id, CANCELLED, actor_id=actor_id, reason=reason)

    # ==================== READS ====================

    async def get_booking(self, booking_id: UUID) -> Booking:
        """Get a booking with its room links.

        Raises:
            NotFoundError: Unknown booking
        """
        async with self.session_factory() as db:
            booking = await db.get(Booking, booking_id)
            if not booking:
                raise NotFoundError("Booking", str(booking_id))
            return booking

    async def list_bookings(
        self,
        guest_id: UUID | None = None,
        status: str | None = None,
    ) -> list[Booking]:
        """Bookings newest first, optionally for one guest and/or status."""
        query = select(Booking)
        if guest_id:
            query = query.where(Booking.guest_id == guest_id)
        if status:
            booking_transitions.assert_known(status)
            query = query.where(Booking.status == status)
        query = query.order_by(Booking.created_at.desc())

        async with self.session_factory() as db:
            result = await db.execute(query)
            return list(result.scalars().all())

    # ==================== INTERNALS ====================

    async def _with_retries(self, operation: str, attempt: Callable[[], Awaitable[T]]) -> T:
        """Run ``attempt``, retrying only TransientConflict."""
        for number in range(1, self.max_attempts + 1):
            try:
                return await attempt()
            except TransientConflict:
                if number >= self.max_attempts:
                    logger.warning(f"{operation} gave up after {number} attempts")
                    raise
                logger.warning(f"{operation} hit contention, retrying ({number}/{self.max_attempts})")
                await asyncio.sleep(self.retry_backoff * number)
        raise AssertionError("unreachable")

    async def _lock_rooms(self, db: AsyncSession, room_ids: Sequence[UUID]) -> list[Room]:
        """Lock room rows for the rest of the transaction and load their categories.

        Raises:
            NotFoundError: If any room does not exist
        """
        if db.bind.dialect.name == "postgresql":
            timeout_ms = max(1, int(self.lock_timeout * 1000))
            await db.execute(text(f"SET LOCAL lock_timeout = '{timeout_ms}ms'"))

        result = await db.execute(
            select(Room)
            .options(selectinload(Room.category))
            .where(Room.id.in_(room_ids))
            .order_by(Room.id)
            .with_for_update(of=Room)
        )
        rooms = list(result.scalars().all())

        missing = set(room_ids) - {room.id for room in rooms}
        if missing:
            raise NotFoundError("Room", ", ".join(sorted(str(room_id) for room_id in missing)))
        return rooms

    async def _create_once(
        self,
        guest_id: UUID,
        room_ids: list[UUID],
        check_in: date,
        check_out: date,
        guest_count: int,
        special_requests: str | None,
        status: str,
    ) -> Booking:
        async with self.locks.hold(room_ids, self.lock_timeout):
            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        if not await db.get(User, guest_id):
                            raise NotFoundError("Guest", str(guest_id))

                        rooms = await self._lock_rooms(db, room_ids)

                        result = await db.execute(overlapping_room_ids(check_in, check_out, room_ids))
                        conflicts = sorted(str(room_id) for room_id in result.scalars().all())
                        if conflicts:
                            logger.warning(
                                f"Rooms {', '.join(conflicts)} already booked between {check_in} and {check_out}"
                            )
                            raise RoomUnavailable(room_ids=conflicts)

                        links = []
                        room_totals = []
                        for room in rooms:
                            price = quote(room.category.base_price, check_in, check_out)
                            room_totals.append(price.total_price)
                            links.append(BookingRoom(room=room, nightly_rate=room.category.base_price))

                        booking = Booking(
                            guest_id=guest_id,
                            check_in=check_in,
                            check_out=check_out,
                            guest_count=guest_count,
                            special_requests=special_requests,
                            total_price=sum_prices(room_totals),
                            status=status,
                            room_links=links,
                        )
                        if status == CONFIRMED:
                            booking.confirmed_at = utcnow()
                        db.add(booking)
                    return booking
            except SQLAlchemyError as e:
                raise classify_db_error(e, "create_booking") from e

    async def _update_status_once(
        self,
        booking_id: UUID,
        room_ids: list[UUID],
        new_status: str,
        reason: str | None,
    ) -> tuple[Booking, str]:
        async with self.locks.hold(room_ids, self.lock_timeout):
            try:
                async with self.session_factory() as db:
                    async with db.begin():
                        await self._lock_rooms(db, room_ids)
                        result = await db.execute(
                            select(Booking).where(Booking.id == booking_id).with_for_update(of=Booking)
                        )
                        booking = result.scalar_one_or_none()
                        if not booking:
                            raise NotFoundError("Booking", str(booking_id))

                        old_status = booking.status
                        assert_booking_transition(old_status, new_status)

                        booking.status = new_status
                        setattr(booking, STATUS_TIMESTAMPS[new_status], utcnow())
                        if new_status == CANCELLED and reason:
                            booking.cancellation_reason = reason
                    return booking, old_status
            except SQLAlchemyError as e:
                raise classify_db_error(e, "update_booking_status") from e

    async def _get_room_ids(self, booking_id: UUID) -> list[UUID]:
        """Room ids linked to a booking. Links never change after creation."""
        try:
            async with self.session_factory() as db:
                result = await db.execute(
                    select(BookingRoom.room_id).where(BookingRoom.booking_id == booking_id)
                )
                room_ids = list(result.scalars().all())
                if not room_ids and not await db.get(Booking, booking_id):
                    raise NotFoundError("Booking", str(booking_id))
                return room_ids
        except SQLAlchemyError as e:
            raise classify_db_error(e, "update_booking_status") from e


booking_service = BookingService()
