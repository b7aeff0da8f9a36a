"""Domain helpers for booking dates and room availability."""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Iterable, Optional

from django.db.models import QuerySet

from hotels.models import Room

from .exceptions import BookingConflict, InvalidDuration, InvalidRange
from .intervals import DateInterval, overlaps
from .models import Booking

logger = logging.getLogger(__name__)


class Availability(Enum):
    AVAILABLE = "available"
    CONFLICT = "conflict"


def validate_booking_dates(start_date: date | None, end_date: date | None) -> DateInterval:
    """Validate that the provided dates exist and cover at least one night."""
    if not start_date or not end_date:
        raise InvalidRange("Start and end dates are required.")
    interval = DateInterval(start_date, end_date)
    if interval.nights < 1:
        raise InvalidDuration()
    return interval


def get_bookings_for_room(room_id: int, *, paid_only: bool = False) -> QuerySet[Booking]:
    qs = Booking.objects.filter(room_id=room_id)
    if paid_only:
        qs = qs.filter(payment_status=True)
    return qs.order_by("start_date", "end_date")


def check_availability(
    room_id: int,
    candidate: DateInterval,
    bookings: Iterable[Booking],
) -> Availability:
    """
    Decide whether ``candidate`` can be reserved on the room.

    Only paid bookings of the room are considered; unpaid ones never block dates.
    """
    for booking in bookings:
        if booking.room_id != room_id or not booking.payment_status:
            continue
        if overlaps(candidate, DateInterval.from_booking(booking)):
            return Availability.CONFLICT
    return Availability.AVAILABLE


def ensure_room_available(
    room: Room,
    candidate: DateInterval,
    *,
    exclude_booking_id: Optional[int] = None,
) -> None:
    """Raise BookingConflict when a paid booking of the room collides with ``candidate``."""
    qs = get_bookings_for_room(room.pk, paid_only=True).filter(
        start_date__lte=candidate.end,
        end_date__gte=candidate.start,
    )
    if exclude_booking_id is not None:
        qs = qs.exclude(pk=exclude_booking_id)
    if check_availability(room.pk, candidate, qs) is Availability.CONFLICT:
        logger.info(
            "bookings: room %s unavailable for %s..%s",
            room.pk,
            candidate.start,
            candidate.end,
        )
        raise BookingConflict()


def paid_date_ranges(room_id: int) -> list[DateInterval]:
    return [
        DateInterval(item["start_date"], item["end_date"])
        for item in get_bookings_for_room(room_id, paid_only=True).values(
            "start_date", "end_date"
        )
    ]


def disabled_dates(room_id: int) -> list[date]:
    """Every calendar day a paid booking of the room occupies, sorted and unique."""
    days: set[date] = set()
    for interval in paid_date_ranges(room_id):
        days.update(interval.days())
    return sorted(days)
