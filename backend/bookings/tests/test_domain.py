import random
from datetime import date, timedelta

import pytest

from bookings.domain import (
    Availability,
    check_availability,
    disabled_dates,
    ensure_room_available,
    get_bookings_for_room,
    paid_date_ranges,
    validate_booking_dates,
)
from bookings.exceptions import BookingConflict, InvalidDuration, InvalidRange
from bookings.intervals import DateInterval, overlaps
from hotels.models import Room

pytestmark = pytest.mark.django_db


def test_validate_booking_dates_requires_both_dates():
    with pytest.raises(InvalidRange):
        validate_booking_dates(date(2024, 6, 1), None)


def test_validate_booking_dates_requires_a_night():
    with pytest.raises(InvalidDuration):
        validate_booking_dates(date(2024, 6, 1), date(2024, 6, 1))


def test_paid_booking_blocks_overlapping_candidate(room, booking_factory):
    booking_factory(start_date=date(2024, 6, 1), end_date=date(2024, 6, 5), payment_status=True)
    candidate = DateInterval(date(2024, 6, 4), date(2024, 6, 6))

    result = check_availability(room.pk, candidate, get_bookings_for_room(room.pk))

    assert result is Availability.CONFLICT


def test_unpaid_booking_never_blocks(room, booking_factory):
    booking_factory(start_date=date(2024, 6, 1), end_date=date(2024, 6, 5), payment_status=False)
    candidate = DateInterval(date(2024, 6, 4), date(2024, 6, 6))

    result = check_availability(room.pk, candidate, get_bookings_for_room(room.pk))

    assert result is Availability.AVAILABLE


def test_bookings_of_other_rooms_are_ignored(room, booking_factory):
    other_room = Room.objects.create(
        hotel=room.hotel,
        title="Single Room",
        room_price="70.00",
    )
    booking = booking_factory(
        room_override=other_room,
        start_date=date(2024, 6, 1),
        end_date=date(2024, 6, 5),
        payment_status=True,
    )
    candidate = DateInterval(date(2024, 6, 2), date(2024, 6, 3))

    assert check_availability(room.pk, candidate, [booking]) is Availability.AVAILABLE
    assert check_availability(other_room.pk, candidate, [booking]) is Availability.CONFLICT


def test_ensure_room_available_raises_conflict(room, booking_factory):
    booking_factory(start_date=date(2024, 6, 1), end_date=date(2024, 6, 5), payment_status=True)

    with pytest.raises(BookingConflict) as excinfo:
        ensure_room_available(room, DateInterval(date(2024, 6, 5), date(2024, 6, 7)))

    assert "non_field_errors" in excinfo.value.message_dict


def test_ensure_room_available_can_exclude_a_booking(room, booking_factory):
    booking = booking_factory(
        start_date=date(2024, 6, 1),
        end_date=date(2024, 6, 5),
        payment_status=True,
    )

    ensure_room_available(room, booking.interval, exclude_booking_id=booking.pk)


def test_ensure_room_available_accepts_free_dates(room, booking_factory):
    booking_factory(start_date=date(2024, 6, 1), end_date=date(2024, 6, 5), payment_status=True)

    ensure_room_available(room, DateInterval(date(2024, 6, 6), date(2024, 6, 9)))


def test_disabled_dates_lists_paid_days_once(room, booking_factory):
    booking_factory(start_date=date(2024, 6, 1), end_date=date(2024, 6, 3), payment_status=True)
    booking_factory(start_date=date(2024, 6, 3), end_date=date(2024, 6, 4), payment_status=True)
    booking_factory(start_date=date(2024, 6, 10), end_date=date(2024, 6, 12), payment_status=False)

    assert disabled_dates(room.pk) == [
        date(2024, 6, 1),
        date(2024, 6, 2),
        date(2024, 6, 3),
        date(2024, 6, 4),
    ]
    assert paid_date_ranges(room.pk) == [
        DateInterval(date(2024, 6, 1), date(2024, 6, 3)),
        DateInterval(date(2024, 6, 3), date(2024, 6, 4)),
    ]


def test_random_paid_sets_reject_every_overlapping_candidate(room, booking_factory):
    rng = random.Random(20240601)
    origin = date(2024, 1, 1)
    for _ in range(12):
        start = origin + timedelta(days=rng.randint(0, 200))
        booking_factory(
            start_date=start,
            end_date=start + timedelta(days=rng.randint(1, 6)),
            payment_status=True,
        )
    paid = [booking.interval for booking in get_bookings_for_room(room.pk, paid_only=True)]

    for _ in range(200):
        start = origin + timedelta(days=rng.randint(0, 210))
        candidate = DateInterval(start, start + timedelta(days=rng.randint(1, 8)))
        expected_conflict = any(overlaps(candidate, existing) for existing in paid)

        result = check_availability(room.pk, candidate, get_bookings_for_room(room.pk))

        assert (result is Availability.CONFLICT) == expected_conflict
        if expected_conflict:
            with pytest.raises(BookingConflict):
                ensure_room_available(room, candidate)
        else:
            ensure_room_available(room, candidate)
