"""Hotel and room records read by the reservation core."""

from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator
from django.db import models


class Hotel(models.Model):
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="hotels",
    )
    title = models.CharField(max_length=140)
    description = models.TextField(blank=True)
    city = models.CharField(max_length=80, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.title


class Room(models.Model):
    hotel = models.ForeignKey(
        Hotel,
        on_delete=models.CASCADE,
        related_name="rooms",
    )
    title = models.CharField(max_length=140)
    description = models.TextField(blank=True)
    room_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        validators=[MinValueValidator(0)],
        help_text="Nightly price.",
    )
    breakfast_price = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0)],
        help_text="Optional nightly breakfast price.",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["id"]

    def clean(self):
        if not self.title or len(self.title.strip()) < 2:
            raise ValidationError("Title too short")
        if self.room_price is not None and self.room_price <= 0:
            raise ValidationError("Room price must be greater than zero")

    def __str__(self) -> str:
        return f"{self.title} @ {self.hotel_id}"
