"""Calendar-date intervals used for reservation overlap checks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from .exceptions import InvalidRange


@dataclass(frozen=True)
class DateInterval:
    """
    A reservation between two calendar dates.

    For overlap testing the interval is widened to a closed day span: the
    start date from its first moment and the end date up to its last moment,
    so a one-day interval occupies its whole calendar day.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start is None or self.end is None:
            raise InvalidRange("Start and end dates are required.")
        if self.start > self.end:
            raise InvalidRange()

    @classmethod
    def from_booking(cls, booking) -> "DateInterval":
        return cls(booking.start_date, booking.end_date)

    @property
    def nights(self) -> int:
        return (self.end - self.start).days

    def day_span(self) -> tuple[datetime, datetime]:
        return datetime.combine(self.start, time.min), datetime.combine(self.end, time.max)

    def contains(self, moment: datetime) -> bool:
        span_start, span_end = self.day_span()
        return span_start <= moment <= span_end

    def days(self) -> list[date]:
        """Every calendar day covered by the closed span, in order."""
        return [self.start + timedelta(days=offset) for offset in range(self.nights + 1)]


def overlaps(candidate: DateInterval, existing: DateInterval) -> bool:
    """
    Return True when the candidate collides with an existing interval.

    Touching intervals collide: a stay may not start on the day another one ends.
    """
    candidate_start, candidate_end = candidate.day_span()
    existing_start, existing_end = existing.day_span()
    return (
        existing.contains(candidate_start)
        or existing.contains(candidate_end)
        or (candidate_start <= existing_start and candidate_end >= existing_end)
    )
