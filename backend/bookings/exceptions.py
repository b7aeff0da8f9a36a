"""Error types raised by the reservation and settlement code."""

from __future__ import annotations

from decimal import Decimal

from django.core.exceptions import ValidationError

DATES_UNAVAILABLE_MESSAGE = (
    "Some of the days you are trying to book have already been reserved. "
    "Please select different dates or rooms."
)


class InvalidRange(ValidationError):
    """A date interval ends before it starts."""

    def __init__(self, message: str | None = None):
        super().__init__({"end_date": [message or "End date cannot be before start date."]})


class InvalidDuration(ValidationError):
    """A stay shorter than one night."""

    def __init__(self, message: str | None = None):
        super().__init__({"end_date": [message or "A booking must last at least one night."]})


class PriceMismatch(ValidationError):
    """A declared or authorized amount disagrees with the server-side price."""

    def __init__(self, declared: Decimal | str, computed: Decimal | str):
        self.declared = declared
        self.computed = computed
        super().__init__(
            {
                "total_price": [
                    f"Declared total {declared} does not match the computed price {computed}."
                ]
            }
        )


class BookingConflict(ValidationError):
    def __init__(self, message: str | None = None):
        super().__init__({"non_field_errors": [message or DATES_UNAVAILABLE_MESSAGE]})


class BookingAlreadyPaid(ValidationError):
    def __init__(self):
        super().__init__({"non_field_errors": ["This booking has already been paid."]})


class PaymentNotCompleted(ValidationError):
    """The payment processor has not reported the intent as succeeded."""

    def __init__(self, status: str = ""):
        self.status = status
        detail = f" (status: {status})" if status else ""
        super().__init__({"non_field_errors": [f"Payment has not been completed{detail}."]})


class AuthenticationRequired(Exception):
    """Booking actions need a signed-in user."""


class InvalidTransition(Exception):
    """A settlement state change that the lifecycle does not allow."""


class PersistenceError(Exception):
    """The booking store was unavailable or a transaction could not commit."""


class UnknownPaymentIntent(ValidationError):
    """The supplied payment intent is tied to someone else's booking."""

    def __init__(self):
        super().__init__({"payment_intent_id": ["Unknown payment intent."]})
