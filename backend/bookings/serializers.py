"""Serializers for booking-related API endpoints."""

from __future__ import annotations

from typing import Any

from django.utils import timezone
from rest_framework import serializers

from hotels.models import Room

from .models import Booking
from .settlement import BookingDraft


class BookingSerializer(serializers.ModelSerializer):
    """Serialize Booking instances for API usage."""

    hotel_title = serializers.ReadOnlyField(source="hotel.title")
    room_title = serializers.ReadOnlyField(source="room.title")
    guest_username = serializers.ReadOnlyField(source="user.username")
    nights = serializers.IntegerField(read_only=True)
    needs_refund = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = (
            "id",
            "hotel_owner",
            "hotel",
            "hotel_title",
            "room",
            "room_title",
            "user",
            "guest_username",
            "start_date",
            "end_date",
            "nights",
            "breakfast_included",
            "total_price",
            "currency",
            "payment_status",
            "payment_intent_id",
            "settlement_state",
            "failure_reason",
            "failure_message",
            "needs_refund",
            "booked_at",
            "paid_at",
            "updated_at",
        )
        read_only_fields = fields

    def get_needs_refund(self, obj: Booking) -> bool:
        return obj.needs_refund()


class BookingDraftSerializer(serializers.Serializer):
    """Validate a reservation request and turn it into a priced BookingDraft."""

    room = serializers.PrimaryKeyRelatedField(queryset=Room.objects.select_related("hotel"))
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    breakfast_included = serializers.BooleanField(default=False)
    total_price = serializers.DecimalField(
        max_digits=12,
        decimal_places=2,
        required=False,
        allow_null=True,
        help_text="Total the client expects to pay; rejected when it differs from the server price.",
    )
    payment_intent_id = serializers.CharField(
        required=False,
        allow_blank=True,
        max_length=120,
        help_text="Intent issued earlier for this draft; reused instead of creating a new one.",
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        start_date = attrs.get("start_date")
        if start_date and start_date < timezone.localdate():
            raise serializers.ValidationError({"start_date": ["Start date cannot be in the past."]})

        # Date and duration errors surface as Django ValidationErrors keyed by field.
        attrs["draft"] = BookingDraft(
            room=attrs["room"],
            start_date=start_date,
            end_date=attrs.get("end_date"),
            breakfast_included=attrs.get("breakfast_included", False),
            declared_price=attrs.get("total_price"),
        )
        return attrs
