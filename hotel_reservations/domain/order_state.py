"""Food order state machine."""

from hotel_reservations.domain.transitions import TransitionTable

PLACED = "placed"
ACCEPTED = "accepted"
PREPARING = "preparing"
READY = "ready"
DELIVERED = "delivered"
CANCELLED = "cancelled"

ORDER_TRANSITIONS = {
    PLACED: {ACCEPTED, CANCELLED},
    ACCEPTED: {PREPARING, CANCELLED},
    PREPARING: {READY, CANCELLED},
    READY: {DELIVERED, CANCELLED},
    DELIVERED: set(),
    CANCELLED: set(),
}

order_transitions = TransitionTable("order", ORDER_TRANSITIONS)


def assert_order_transition(current: str, target: str) -> None:
    order_transitions.assert_transition(current, target)
