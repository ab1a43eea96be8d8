"""
Tests for booking creation, status changes and the no-overlap guarantee.
"""

import asyncio
import random
from datetime import timedelta
from decimal import Decimal
from itertools import combinations
from uuid import uuid4

import pytest
from conftest import stay
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from hotel_reservations.core.exceptions import (
    NotFoundError,
    PersistenceError,
    RoomUnavailable,
    TransientConflict,
    TransitionError,
    ValidationError,
)
from hotel_reservations.core.locks import RoomLockManager
from hotel_reservations.database import classify_db_error
from hotel_reservations.domain.booking_state import ACTIVE_BOOKING_STATUSES
from hotel_reservations.models import Booking, BookingRoom
from hotel_reservations.services.audit_service import AuditService
from hotel_reservations.services.booking_service import BookingService
from hotel_reservations.utils.dates import today


async def count_bookings(session_factory) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(Booking))


class TestCreateBooking:
    """Creating bookings."""

    async def test_single_room(self, seed, booking_service):
        check_in, check_out = stay(5, nights=3)

        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out, guest_count=2
        )

        assert booking.status == "pending_payment"
        assert booking.guest_id == seed.guest.id
        assert booking.room_ids == [seed.room_101.id]
        assert booking.nights == 3
        assert booking.total_price == Decimal("300.00")
        assert booking.confirmed_at is None

    async def test_multi_room_total_is_sum_of_rooms(self, seed, booking_service):
        check_in, check_out = stay(5, nights=2)

        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id, seed.room_201.id], check_in, check_out
        )

        assert set(booking.room_ids) == {seed.room_101.id, seed.room_201.id}
        assert booking.total_price == Decimal("501.00")
        rates = {link.room_id: link.nightly_rate for link in booking.room_links}
        assert rates[seed.room_201.id] == Decimal("150.50")

    async def test_created_confirmed(self, seed, booking_service):
        check_in, check_out = stay(5)

        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out, status="confirmed"
        )

        assert booking.status == "confirmed"
        assert booking.confirmed_at is not None

    async def test_persisted(self, seed, booking_service):
        check_in, check_out = stay(5)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out
        )

        fetched = await booking_service.get_booking(booking.id)

        assert fetched.id == booking.id
        assert fetched.room_ids == [seed.room_101.id]

    async def test_overlap_rejected(self, seed, booking_service, session_factory):
        check_in, check_out = stay(5, nights=3)
        await booking_service.create_booking(seed.guest.id, [seed.room_101.id], check_in, check_out)

        with pytest.raises(RoomUnavailable) as exc_info:
            await booking_service.create_booking(
                seed.other_guest.id,
                [seed.room_101.id],
                check_in + timedelta(days=1),
                check_out + timedelta(days=1),
            )

        assert exc_info.value.status_code == 409
        assert exc_info.value.room_ids == [str(seed.room_101.id)]
        assert await count_bookings(session_factory) == 1

    async def test_multi_room_booking_is_all_or_nothing(self, seed, booking_service, session_factory):
        check_in, check_out = stay(5, nights=2)
        await booking_service.create_booking(seed.guest.id, [seed.room_201.id], check_in, check_out)

        with pytest.raises(RoomUnavailable):
            await booking_service.create_booking(
                seed.other_guest.id, [seed.room_101.id, seed.room_201.id], check_in, check_out
            )

        async with session_factory() as session:
            linked = await session.scalars(
                select(BookingRoom.room_id).where(BookingRoom.room_id == seed.room_101.id)
            )
            assert list(linked) == []

    async def test_back_to_back_allowed(self, seed, booking_service):
        check_in, check_out = stay(5, nights=2)
        await booking_service.create_booking(seed.guest.id, [seed.room_101.id], check_in, check_out)

        booking = await booking_service.create_booking(
            seed.other_guest.id, [seed.room_101.id], check_out, check_out + timedelta(days=2)
        )

        assert booking.status == "pending_payment"

    async def test_checked_out_booking_frees_the_room(self, seed, booking_service):
        check_in, check_out = stay(5, nights=2)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out, status="confirmed"
        )
        await booking_service.update_booking_status(booking.id, "checked_in")
        await booking_service.update_booking_status(booking.id, "checked_out")

        again = await booking_service.create_booking(
            seed.other_guest.id, [seed.room_101.id], check_in, check_out
        )

        assert again.id != booking.id

    async def test_cancellation_frees_the_room(self, seed, booking_service):
        check_in, check_out = stay(5, nights=2)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out
        )
        await booking_service.cancel_booking(booking.id, actor_id=seed.guest.id, reason="Plans changed")

        again = await booking_service.create_booking(
            seed.other_guest.id, [seed.room_101.id], check_in, check_out
        )

        assert again.guest_id == seed.other_guest.id

    async def test_room_links_carry_room_details(self, seed, booking_service):
        check_in, check_out = stay(5)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out
        )

        fetched = await booking_service.get_booking(booking.id)

        for loaded in (booking, fetched):
            link = loaded.room_links[0]
            assert link.room_number == "101"
            assert link.category_name == "Standard"

    async def test_guest_count_upper_bound_is_inclusive(self, seed, booking_service):
        check_in, check_out = stay(5)

        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_201.id], check_in, check_out, guest_count=10
        )

        assert booking.guest_count == 10

    @pytest.mark.parametrize(
        "kwargs,code",
        [
            ({"room_ids": []}, "validation_error"),
            ({"guest_count": 0}, "invalid_guest_count"),
            ({"guest_count": 11}, "invalid_guest_count"),
            ({"status": "checked_in"}, "validation_error"),
            ({"nights": 0}, "invalid_range"),
            ({"start": -1}, "past_date"),
        ],
    )
    async def test_invalid_requests(self, seed, booking_service, session_factory, kwargs, code):
        kwargs = dict(kwargs)
        check_in, check_out = stay(kwargs.pop("start", 5), nights=kwargs.pop("nights", 1))
        kwargs.setdefault("room_ids", [seed.room_101.id])

        with pytest.raises(ValidationError) as exc_info:
            await booking_service.create_booking(
                seed.guest.id, check_in=check_in, check_out=check_out, **kwargs
            )

        assert exc_info.value.code == code
        assert await count_bookings(session_factory) == 0

    async def test_duplicate_room_ids(self, seed, booking_service):
        check_in, check_out = stay(5)
        with pytest.raises(ValidationError):
            await booking_service.create_booking(
                seed.guest.id, [seed.room_101.id, seed.room_101.id], check_in, check_out
            )

    async def test_unknown_room(self, seed, booking_service, session_factory):
        check_in, check_out = stay(5)
        with pytest.raises(NotFoundError):
            await booking_service.create_booking(
                seed.guest.id, [seed.room_101.id, uuid4()], check_in, check_out
            )
        assert await count_bookings(session_factory) == 0

    async def test_unknown_guest(self, seed, booking_service):
        check_in, check_out = stay(5)
        with pytest.raises(NotFoundError) as exc_info:
            await booking_service.create_booking(uuid4(), [seed.room_101.id], check_in, check_out)
        assert exc_info.value.resource == "Guest"


class TestConcurrentBookings:
    """Racing requests never double-book a room."""

    async def test_exactly_one_winner(self, seed, booking_service, session_factory):
        check_in, check_out = stay(7, nights=2)
        guests = [seed.guest, seed.other_guest, seed.receptionist, seed.manager, seed.guest]

        results = await asyncio.gather(
            *(
                booking_service.create_booking(g.id, [seed.room_102.id], check_in, check_out)
                for g in guests
            ),
            return_exceptions=True,
        )

        winners = [r for r in results if isinstance(r, Booking)]
        losers = [r for r in results if isinstance(r, RoomUnavailable)]
        assert len(winners) == 1
        assert len(losers) == len(guests) - 1
        assert await count_bookings(session_factory) == 1

    async def test_overlapping_room_sets_in_opposite_order(self, seed, booking_service):
        check_in, check_out = stay(7, nights=2)

        results = await asyncio.gather(
            booking_service.create_booking(
                seed.guest.id, [seed.room_101.id, seed.room_102.id], check_in, check_out
            ),
            booking_service.create_booking(
                seed.other_guest.id, [seed.room_102.id, seed.room_101.id], check_in, check_out
            ),
            return_exceptions=True,
        )

        assert sum(isinstance(r, Booking) for r in results) == 1
        assert sum(isinstance(r, RoomUnavailable) for r in results) == 1

    async def test_random_workload_keeps_rooms_exclusive(self, seed, booking_service):
        rng = random.Random(20240611)
        rooms = [seed.room_101.id, seed.room_102.id, seed.room_201.id]
        requests = []
        for _ in range(30):
            chosen = rng.sample(rooms, rng.randint(1, 2))
            check_in, check_out = stay(rng.randint(1, 15), nights=rng.randint(1, 4))
            requests.append((chosen, check_in, check_out))

        results = await asyncio.gather(
            *(
                booking_service.create_booking(seed.guest.id, chosen, check_in, check_out)
                for chosen, check_in, check_out in requests
            ),
            return_exceptions=True,
        )
        created = [r for r in results if isinstance(r, Booking)]
        assert all(isinstance(r, (Booking, RoomUnavailable)) for r in results)
        assert created

        # Cancel a few and rebook into the gaps
        for booking in rng.sample(created, min(3, len(created))):
            await booking_service.cancel_booking(booking.id)
        await asyncio.gather(
            *(
                booking_service.create_booking(seed.other_guest.id, chosen, check_in, check_out)
                for chosen, check_in, check_out in requests[:10]
            ),
            return_exceptions=True,
        )

        bookings = await booking_service.list_bookings()
        active = [b for b in bookings if b.status in ACTIVE_BOOKING_STATUSES]
        for first, second in combinations(active, 2):
            shared = set(first.room_ids) & set(second.room_ids)
            if shared:
                assert first.check_out <= second.check_in or second.check_out <= first.check_in


class TestContention:
    """Lock timeouts, retries and storage failures."""

    async def test_lock_timeout_is_retried_then_surfaces(self, seed, session_factory, audit):
        service = BookingService(
            session_factory=session_factory,
            lock_manager=RoomLockManager(),
            audit=audit,
            lock_timeout=0.05,
            max_attempts=3,
            retry_backoff=0,
        )
        check_in, check_out = stay(5)
        attempts = 0
        create_once = service._create_once

        async def counting_create_once(*args):
            nonlocal attempts
            attempts += 1
            return await create_once(*args)

        service._create_once = counting_create_once

        async with service.locks.hold([seed.room_101.id], timeout=1):
            with pytest.raises(TransientConflict) as exc_info:
                await service.create_booking(seed.guest.id, [seed.room_101.id], check_in, check_out)

        assert attempts == 3
        assert exc_info.value.headers["Retry-After"] == "1"
        assert await count_bookings(session_factory) == 0

    async def test_succeeds_once_the_lock_frees_up(self, seed, session_factory, audit):
        service = BookingService(
            session_factory=session_factory,
            lock_manager=RoomLockManager(),
            audit=audit,
            lock_timeout=0.05,
            max_attempts=5,
            retry_backoff=0.02,
        )
        check_in, check_out = stay(5)

        async def hold_briefly():
            async with service.locks.hold([seed.room_101.id], timeout=1):
                await asyncio.sleep(0.08)

        holder = asyncio.create_task(hold_briefly())
        await asyncio.sleep(0)
        booking = await service.create_booking(seed.guest.id, [seed.room_101.id], check_in, check_out)
        await holder

        assert booking.room_ids == [seed.room_101.id]

    async def test_cancel_waits_for_the_room_lock(self, seed, session_factory, audit):
        service = BookingService(
            session_factory=session_factory,
            lock_manager=RoomLockManager(),
            audit=audit,
            lock_timeout=0.05,
            max_attempts=2,
            retry_backoff=0,
        )
        check_in, check_out = stay(5)
        booking = await service.create_booking(seed.guest.id, [seed.room_101.id], check_in, check_out)

        async with service.locks.hold([seed.room_101.id], timeout=1):
            with pytest.raises(TransientConflict):
                await service.cancel_booking(booking.id)

        still_pending = await service.get_booking(booking.id)
        assert still_pending.status == "pending_payment"

        cancelled = await service.cancel_booking(booking.id)
        assert cancelled.status == "cancelled"

    async def test_cancel_racing_a_rebook_never_double_books(self, seed, booking_service):
        check_in, check_out = stay(7, nights=2)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_102.id], check_in, check_out
        )

        cancelled, rebooked = await asyncio.gather(
            booking_service.cancel_booking(booking.id),
            booking_service.create_booking(seed.other_guest.id, [seed.room_102.id], check_in, check_out),
            return_exceptions=True,
        )

        assert isinstance(cancelled, Booking)
        assert cancelled.status == "cancelled"
        assert isinstance(rebooked, (Booking, RoomUnavailable))
        active = [
            b
            for b in await booking_service.list_bookings()
            if b.status in ACTIVE_BOOKING_STATUSES and seed.room_102.id in b.room_ids
        ]
        assert len(active) <= 1

    async def test_busy_room_lookup_on_status_change_is_retried(
        self, seed, booking_service, monkeypatch
    ):
        check_in, check_out = stay(5)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out
        )
        calls = 0
        get_room_ids = booking_service._get_room_ids

        async def busy_once(booking_id):
            nonlocal calls
            calls += 1
            if calls == 1:
                busy = OperationalError("SELECT booking_rooms", {}, Exception("database is locked"))
                raise classify_db_error(busy, "update_booking_status")
            return await get_room_ids(booking_id)

        monkeypatch.setattr(booking_service, "_get_room_ids", busy_once)

        confirmed = await booking_service.update_booking_status(booking.id, "confirmed")

        assert confirmed.status == "confirmed"
        assert calls == 2

    async def test_busy_database_is_retried(self, seed, booking_service, monkeypatch):
        calls = 0

        async def busy(db, room_ids):
            nonlocal calls
            calls += 1
            raise OperationalError("SELECT rooms", {}, Exception("database is locked"))

        monkeypatch.setattr(booking_service, "_lock_rooms", busy)
        check_in, check_out = stay(5)

        with pytest.raises(TransientConflict):
            await booking_service.create_booking(seed.guest.id, [seed.room_101.id], check_in, check_out)

        assert calls == booking_service.max_attempts

    async def test_storage_failure_is_not_retried(self, seed, booking_service, monkeypatch):
        calls = 0

        async def broken(db, room_ids):
            nonlocal calls
            calls += 1
            raise OperationalError("SELECT rooms", {}, Exception("disk I/O error"))

        monkeypatch.setattr(booking_service, "_lock_rooms", broken)
        check_in, check_out = stay(5)

        with pytest.raises(PersistenceError):
            await booking_service.create_booking(seed.guest.id, [seed.room_101.id], check_in, check_out)

        assert calls == 1


class TestUpdateBookingStatus:
    """Moving bookings through their lifecycle."""

    async def test_full_lifecycle_stamps_timestamps(self, seed, booking_service):
        check_in, check_out = stay(5)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out
        )

        confirmed = await booking_service.update_booking_status(booking.id, "confirmed")
        checked_in = await booking_service.update_booking_status(booking.id, "checked_in")
        checked_out = await booking_service.update_booking_status(booking.id, "checked_out")

        assert confirmed.confirmed_at is not None
        assert checked_in.checked_in_at is not None
        assert checked_out.status == "checked_out"
        assert checked_out.checked_out_at is not None

    async def test_cancel_records_reason(self, seed, booking_service):
        check_in, check_out = stay(5)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out
        )

        cancelled = await booking_service.cancel_booking(booking.id, reason="Flight cancelled")

        assert cancelled.status == "cancelled"
        assert cancelled.cancellation_reason == "Flight cancelled"
        assert cancelled.cancelled_at is not None

    async def test_illegal_move(self, seed, booking_service):
        check_in, check_out = stay(5)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out
        )

        with pytest.raises(TransitionError):
            await booking_service.update_booking_status(booking.id, "checked_out")

        fetched = await booking_service.get_booking(booking.id)
        assert fetched.status == "pending_payment"

    async def test_cancelled_is_terminal(self, seed, booking_service):
        check_in, check_out = stay(5)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out
        )
        await booking_service.cancel_booking(booking.id)

        with pytest.raises(TransitionError):
            await booking_service.cancel_booking(booking.id)

    async def test_unknown_status(self, seed, booking_service):
        check_in, check_out = stay(5)
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], check_in, check_out
        )

        with pytest.raises(ValidationError):
            await booking_service.update_booking_status(booking.id, "teleported")

    async def test_unknown_booking(self, seed, booking_service):
        with pytest.raises(NotFoundError):
            await booking_service.update_booking_status(uuid4(), "confirmed")


class TestReadsAndAudit:

    async def test_list_bookings_filters(self, seed, booking_service):
        first = await booking_service.create_booking(seed.guest.id, [seed.room_101.id], *stay(5))
        await booking_service.create_booking(seed.other_guest.id, [seed.room_102.id], *stay(5))
        await booking_service.update_booking_status(first.id, "confirmed")

        mine = await booking_service.list_bookings(guest_id=seed.guest.id)
        confirmed = await booking_service.list_bookings(status="confirmed")

        assert [b.id for b in mine] == [first.id]
        assert [b.id for b in confirmed] == [first.id]
        assert len(await booking_service.list_bookings()) == 2

    async def test_unknown_booking(self, seed, booking_service):
        with pytest.raises(NotFoundError):
            await booking_service.get_booking(uuid4())

    async def test_audit_events_are_written(self, seed, booking_service, audit, session_factory):
        await audit.start()
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], *stay(5), actor_id=seed.guest.id
        )
        await booking_service.update_booking_status(booking.id, "confirmed", actor_id=seed.receptionist.id)
        await audit.drain()
        await audit.stop()

        async with session_factory() as session:
            logs = await audit.list_logs(session, resource_type="booking", resource_id=booking.id)

        assert {log.action for log in logs} == {"booking.create", "booking.status_change"}
        change = next(log for log in logs if log.action == "booking.status_change")
        assert change.old_values == {"status": "pending_payment"}
        assert change.new_values == {"status": "confirmed"}
        assert change.user_id == seed.receptionist.id

    async def test_failing_audit_store_does_not_affect_bookings(self, seed, session_factory):
        async def broken_sink(event):
            raise RuntimeError("audit store down")

        audit = AuditService(sink=broken_sink)
        service = BookingService(
            session_factory=session_factory, lock_manager=RoomLockManager(), audit=audit
        )
        await audit.start()

        booking = await service.create_booking(seed.guest.id, [seed.room_101.id], *stay(5))
        await audit.drain()
        await audit.stop()

        assert (await service.get_booking(booking.id)).status == "pending_payment"

    async def test_today_check_in_allowed(self, seed, booking_service):
        booking = await booking_service.create_booking(
            seed.guest.id, [seed.room_101.id], today(), today() + timedelta(days=1)
        )
        assert booking.nights == 1
