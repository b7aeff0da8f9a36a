"""Reservation pricing."""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .exceptions import InvalidDuration, PriceMismatch
from .intervals import DateInterval

_CENT = Decimal("0.01")


def quantize_money(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def nights_between(start_date: date, end_date: date) -> int:
    """Whole calendar days between check-in and check-out."""
    return DateInterval(start_date, end_date).nights


def compute_price(
    nights: int,
    room_price: Decimal,
    breakfast_price: Decimal | None = None,
    breakfast_included: bool = False,
) -> Decimal:
    """
    Return the total for a stay.

    ``nights * room_price``, plus ``nights * breakfast_price`` when breakfast
    is included and the room prices it above zero.
    """
    if isinstance(nights, bool) or not isinstance(nights, int) or nights < 1:
        raise InvalidDuration()

    total = _as_decimal(room_price) * nights
    if breakfast_included and breakfast_price is not None:
        breakfast = _as_decimal(breakfast_price)
        if breakfast > 0:
            total += breakfast * nights
    return quantize_money(total)


def price_for_room(room, start_date: date, end_date: date, breakfast_included: bool) -> Decimal:
    return compute_price(
        nights_between(start_date, end_date),
        room.room_price,
        room.breakfast_price,
        breakfast_included,
    )


def verify_declared_price(declared, computed: Decimal) -> None:
    """Reject a client-declared total that differs from the computed price."""
    if declared is None or declared == "":
        return
    try:
        declared_value = quantize_money(_as_decimal(declared))
    except (InvalidOperation, ValueError) as exc:
        raise PriceMismatch(declared, computed) from exc
    if declared_value != quantize_money(computed):
        raise PriceMismatch(declared_value, quantize_money(computed))
