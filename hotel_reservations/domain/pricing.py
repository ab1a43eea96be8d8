"""Stay pricing.

Totals are computed in integer minor currency units (cents) and only turned
back into a two-place Decimal for output, so repeated multiplication and
summing never drifts.

- nights = ceil(check_out - check_in in days), minimum 1
- total = base_rate * nights
"""

import math
from dataclasses import dataclass
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

from hotel_reservations.core.exceptions import ValidationError

MINOR_UNIT_EXPONENT = 2
SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class PriceQuote:
    """Nights and total for one room over one stay."""

    nights: int
    total_price: Decimal


def _coerce_date(value: date | datetime | str, field: str) -> date | datetime:
    if isinstance(value, (date, datetime)):
        return value
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an ISO date, got {value!r}")


def to_minor_units(amount: Decimal | int | str | float) -> int:
    """Convert a decimal amount to integer cents, rounding half up."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}")
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount!r}")
    return int(value.scaleb(MINOR_UNIT_EXPONENT).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    """Convert integer cents back to a two-place Decimal."""
    return Decimal(amount).scaleb(-MINOR_UNIT_EXPONENT)


def calculate_nights(check_in: date | datetime | str, check_out: date | datetime | str) -> int:
    """Number of billable nights for a stay.

    Raises:
        ValidationError: If check_out is not after check_in
    """
    check_in = _coerce_date(check_in, "check_in")
    check_out = _coerce_date(check_out, "check_out")

    # Mixed date/datetime pairs are compared at midnight
    if isinstance(check_in, datetime) != isinstance(check_out, datetime):
        if not isinstance(check_in, datetime):
            check_in = datetime.combine(check_in, datetime.min.time(), tzinfo=check_out.tzinfo)
        if not isinstance(check_out, datetime):
            check_out = datetime.combine(check_out, datetime.min.time(), tzinfo=check_in.tzinfo)

    if isinstance(check_in, datetime) and (check_in.tzinfo is None) != (check_out.tzinfo is None):
        raise ValidationError("check_in and check_out must both be timezone-aware or both naive")

    if check_out <= check_in:
        raise ValidationError(
            "Check-out date must be after check-in date", code=ValidationError.INVALID_RANGE
        )

    span = check_out - check_in
    nights = math.ceil(span.total_seconds() / SECONDS_PER_DAY)
    return max(1, nights)


def quote(
    base_rate: Decimal | int | str,
    check_in: date | datetime | str,
    check_out: date | datetime | str,
) -> PriceQuote:
    """Price one room at ``base_rate`` per night for the stay."""
    rate_minor = to_minor_units(base_rate)
    if rate_minor < 0:
        raise ValidationError(f"Base rate cannot be negative, got {base_rate}")
    nights = calculate_nights(check_in, check_out)
    return PriceQuote(nights=nights, total_price=from_minor_units(rate_minor * nights))


def calculate_total_price(
    base_rate: Decimal | int | str,
    check_in: date | datetime | str,
    check_out: date | datetime | str,
) -> Decimal:
    """Total price for one room over the stay."""
    return quote(base_rate, check_in, check_out).total_price


def sum_prices(amounts: Iterable[Decimal]) -> Decimal:
    """Sum decimal amounts in minor units."""
    return from_minor_units(sum(to_minor_units(amount) for amount in amounts))
