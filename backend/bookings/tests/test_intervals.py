from datetime import date, datetime

import pytest

from bookings.exceptions import InvalidRange
from bookings.intervals import DateInterval, overlaps


def interval(start: str, end: str) -> DateInterval:
    return DateInterval(date.fromisoformat(start), date.fromisoformat(end))


def test_reversed_range_is_rejected():
    with pytest.raises(InvalidRange) as excinfo:
        interval("2024-06-05", "2024-06-01")
    assert "end_date" in excinfo.value.message_dict


def test_missing_date_is_rejected():
    with pytest.raises(InvalidRange):
        DateInterval(date(2024, 6, 1), None)


def test_day_span_covers_whole_calendar_days():
    span_start, span_end = interval("2024-06-01", "2024-06-04").day_span()
    assert span_start == datetime(2024, 6, 1, 0, 0)
    assert span_end.date() == date(2024, 6, 4)
    assert span_end.hour == 23 and span_end.minute == 59


def test_nights_and_days():
    stay = interval("2024-06-01", "2024-06-04")
    assert stay.nights == 3
    assert stay.days() == [
        date(2024, 6, 1),
        date(2024, 6, 2),
        date(2024, 6, 3),
        date(2024, 6, 4),
    ]


@pytest.mark.parametrize(
    "candidate, existing, expected",
    [
        (("2024-06-04", "2024-06-06"), ("2024-06-01", "2024-06-05"), True),
        (("2024-05-28", "2024-06-02"), ("2024-06-01", "2024-06-05"), True),
        (("2024-06-02", "2024-06-03"), ("2024-06-01", "2024-06-05"), True),
        (("2024-05-30", "2024-06-10"), ("2024-06-01", "2024-06-05"), True),
        (("2024-06-05", "2024-06-08"), ("2024-06-01", "2024-06-05"), True),
        (("2024-05-28", "2024-06-01"), ("2024-06-01", "2024-06-05"), True),
        (("2024-06-06", "2024-06-08"), ("2024-06-01", "2024-06-05"), False),
        (("2024-05-25", "2024-05-31"), ("2024-06-01", "2024-06-05"), False),
    ],
)
def test_overlaps(candidate, existing, expected):
    assert overlaps(interval(*candidate), interval(*existing)) is expected


def test_overlap_is_symmetric_for_touching_stays():
    first = interval("2024-06-01", "2024-06-05")
    second = interval("2024-06-05", "2024-06-07")
    assert overlaps(first, second)
    assert overlaps(second, first)
