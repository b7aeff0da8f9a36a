"""Database models for room bookings."""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.db.models import Q

from hotels.models import Hotel, Room

from .intervals import DateInterval


class Booking(models.Model):
    """A reservation of one room for a date range, paid through a Stripe PaymentIntent."""

    class SettlementState(models.TextChoices):
        DRAFT = "draft", "draft"
        AUTHORIZING = "authorizing", "authorizing"
        AWAITING_CONFIRMATION = "awaiting_confirmation", "awaiting confirmation"
        CONFIRMED = "confirmed", "confirmed"
        REJECTED = "rejected", "rejected"
        FAILED = "failed", "failed"

    class FailureReason(models.TextChoices):
        NONE = "", "none"
        PAYMENT_FAILED = "payment_failed", "payment failed"
        LATE_CONFLICT = "late_conflict", "dates taken before payment settled"
        AMOUNT_MISMATCH = "amount_mismatch", "paid amount differs from the booking price"

    hotel_owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="bookings_as_hotel_owner",
        on_delete=models.CASCADE,
    )
    hotel = models.ForeignKey(
        Hotel,
        related_name="bookings",
        on_delete=models.CASCADE,
    )
    room = models.ForeignKey(
        Room,
        related_name="bookings",
        on_delete=models.CASCADE,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        related_name="bookings",
        on_delete=models.CASCADE,
    )
    start_date = models.DateField()
    end_date = models.DateField(help_text="Check-out date, must be after start_date.")
    breakfast_included = models.BooleanField(default=False)
    total_price = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=8, default="usd")
    payment_status = models.BooleanField(
        default=False,
        help_text="True once the processor confirmed payment; only paid bookings hold dates.",
    )
    payment_intent_id = models.CharField(
        max_length=120,
        blank=True,
        default="",
        help_text="Stripe PaymentIntent ID authorizing this booking.",
    )
    settlement_state = models.CharField(
        max_length=32,
        choices=SettlementState.choices,
        default=SettlementState.AWAITING_CONFIRMATION,
    )
    failure_reason = models.CharField(
        max_length=32,
        choices=FailureReason.choices,
        blank=True,
        default=FailureReason.NONE,
    )
    failure_message = models.TextField(blank=True, default="")
    booked_at = models.DateTimeField(auto_now_add=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-booked_at"]
        indexes = [
            models.Index(fields=["room", "start_date", "end_date"], name="bookings_room_dates_idx"),
            models.Index(fields=["user", "payment_status"], name="bookings_user_paid_idx"),
            models.Index(fields=["hotel_owner", "payment_status"], name="bookings_owner_paid_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["payment_intent_id"],
                condition=~Q(payment_intent_id=""),
                name="bookings_unique_payment_intent",
            ),
        ]

    def __str__(self) -> str:
        """Return a human-readable representation."""
        paid = "paid" if self.payment_status else "unpaid"
        return f"Booking #{self.pk} for room {self.room_id} ({paid})"

    @property
    def interval(self) -> DateInterval:
        return DateInterval.from_booking(self)

    @property
    def nights(self) -> int:
        """Return the count of booked nights."""
        if not self.start_date or not self.end_date:
            return 0
        return (self.end_date - self.start_date).days

    def needs_refund(self) -> bool:
        """True when money was collected but the booking could not be confirmed."""
        return self.settlement_state == self.SettlementState.FAILED and self.failure_reason in (
            self.FailureReason.LATE_CONFLICT,
            self.FailureReason.AMOUNT_MISMATCH,
        )
