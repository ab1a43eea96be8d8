"""Booking-related database models."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from hotel_reservations.database import Base
from hotel_reservations.utils.dates import utcnow

if TYPE_CHECKING:
    from hotel_reservations.models.room import Room
    from hotel_reservations.models.user import User


class Booking(Base):
    """A guest stay over ``[check_in, check_out)``. Never deleted."""

    __tablename__ = "bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    guest_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )

    # Dates
    check_in: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    check_out: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    guest_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    special_requests: Mapped[str | None] = mapped_column(Text)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending_payment", index=True
    )  # pending_payment, confirmed, checked_in, checked_out, cancelled

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    checked_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    checked_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, server_default=func.now()
    )

    # Relationships
    guest: Mapped["User"] = relationship("User")
    room_links: Mapped[list["BookingRoom"]] = relationship(
        "BookingRoom", back_populates="booking", lazy="selectin", order_by="BookingRoom.created_at"
    )

    @property
    def nights(self) -> int:
        """Calculate number of nights."""
        return (self.check_out - self.check_in).days

    @property
    def room_ids(self) -> list[uuid.UUID]:
        return [link.room_id for link in self.room_links]


class BookingRoom(Base):
    """Link between a booking and one of its rooms."""

    __tablename__ = "booking_rooms"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("bookings.id"), nullable=False, index=True
    )
    room_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True), ForeignKey("rooms.id"), nullable=False, index=True
    )
    nightly_rate: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False
    )  # category rate at booking time
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now()
    )

    booking: Mapped["Booking"] = relationship("Booking", back_populates="room_links")
    room: Mapped["Room"] = relationship("Room", lazy="selectin")

    @property
    def room_number(self) -> str:
        return self.room.room_number

    @property
    def category_name(self) -> str:
        return self.room.category.name
