"""Status transition tables shared by the booking and order workflows."""

from collections.abc import Iterable, Mapping

from hotel_reservations.core.exceptions import TransitionError, ValidationError


class TransitionTable:
    """Whitelist of legal status moves for one entity type."""

    def __init__(self, entity: str, transitions: Mapping[str, Iterable[str]]) -> None:
        self.entity = entity
        self.transitions: dict[str, frozenset[str]] = {
            state: frozenset(targets) for state, targets in transitions.items()
        }
        unknown = set().union(*self.transitions.values()) - set(self.transitions)
        if unknown:
            raise ValueError(f"{entity} transitions reference undeclared states: {sorted(unknown)}")

    @property
    def states(self) -> frozenset[str]:
        return frozenset(self.transitions)

    @property
    def terminal_states(self) -> frozenset[str]:
        return frozenset(state for state, targets in self.transitions.items() if not targets)

    def allowed_targets(self, current: str) -> frozenset[str]:
        return self.transitions.get(current, frozenset())

    def can_transition(self, current: str, target: str) -> bool:
        return target in self.allowed_targets(current)

    def assert_known(self, status: str) -> None:
        if status not in self.transitions:
            raise ValidationError(f"Invalid {self.entity} status: {status}")

    def assert_transition(self, current: str, target: str) -> None:
        """Raise unless ``current -> target`` is in the table."""
        self.assert_known(target)
        if not self.can_transition(current, target):
            raise TransitionError(current, target, entity=self.entity)
