from django.conf import settings
from django.db import models


class Transaction(models.Model):
    class Kind(models.TextChoices):
        BOOKING_CHARGE = "BOOKING_CHARGE", "Booking charge"
        REFUND_REQUIRED = "REFUND_REQUIRED", "Refund required"

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.CASCADE,
        related_name="transactions",
    )
    kind = models.CharField(max_length=64, choices=Kind.choices)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=8, default="usd")
    stripe_id = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Related Stripe PaymentIntent id.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["booking", "kind", "stripe_id"],
                name="payments_transaction_unique_per_intent",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.user} {self.kind} {self.amount} {self.currency}"
