"""Booking state machine."""

from hotel_reservations.domain.transitions import TransitionTable

PENDING_PAYMENT = "pending_payment"
CONFIRMED = "confirmed"
CHECKED_IN = "checked_in"
CHECKED_OUT = "checked_out"
CANCELLED = "cancelled"

BOOKING_TRANSITIONS = {
    PENDING_PAYMENT: {CONFIRMED, CANCELLED},
    CONFIRMED: {CHECKED_IN, CANCELLED},
    CHECKED_IN: {CHECKED_OUT},
    CHECKED_OUT: set(),
    CANCELLED: set(),
}

# Statuses that hold a room for the booking's date range
ACTIVE_BOOKING_STATUSES = frozenset({PENDING_PAYMENT, CONFIRMED, CHECKED_IN})

INITIAL_BOOKING_STATUSES = frozenset({PENDING_PAYMENT, CONFIRMED})

booking_transitions = TransitionTable("booking", BOOKING_TRANSITIONS)


def assert_booking_transition(current: str, target: str) -> None:
    booking_transitions.assert_transition(current, target)


def is_active(status: str) -> bool:
    return status in ACTIVE_BOOKING_STATUSES
