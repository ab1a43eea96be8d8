"""Per-room exclusive locks for the booking write path.

Writers touching a room's set of active bookings hold the room's lock across
the overlap check and the write. Locks are taken in sorted key order so two
writers asking for overlapping room sets cannot deadlock, and acquisition is
bounded by a single deadline.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from uuid import UUID

from hotel_reservations.core.exceptions import TransientConflict

logger = logging.getLogger(__name__)


class RoomLockManager:
    """Keyed asyncio locks, one per room id.

    Locks are created on first use and kept for the life of the manager, so the
    table grows to at most one entry per room in the hotel.
    """

    def __init__(self) -> None:
        self._locks: dict[UUID, asyncio.Lock] = {}

    def _lock_for(self, room_id: UUID) -> asyncio.Lock:
        lock = self._locks.get(room_id)
        if lock is None:
            lock = self._locks[room_id] = asyncio.Lock()
        return lock

    def is_locked(self, room_id: UUID) -> bool:
        lock = self._locks.get(room_id)
        return lock is not None and lock.locked()

    @asynccontextmanager
    async def hold(self, room_ids: Iterable[UUID], timeout: float) -> AsyncIterator[None]:
        """Hold every room lock for the duration of the block.

        Raises:
            TransientConflict: If the locks are not all acquired within ``timeout`` seconds
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        acquired: list[asyncio.Lock] = []
        try:
            for room_id in sorted(set(room_ids), key=str):
                lock = self._lock_for(room_id)
                remaining = deadline - loop.time()
                try:
                    if remaining > 0:
                        await asyncio.wait_for(lock.acquire(), timeout=remaining)
                    elif lock.locked():
                        raise asyncio.TimeoutError
                    else:
                        await lock.acquire()
                except asyncio.TimeoutError:
                    logger.warning(f"Timed out after {timeout}s waiting for lock on room {room_id}")
                    raise TransientConflict(f"Room {room_id} is being booked by another request")
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
