"""API viewsets and permissions for bookings."""

from __future__ import annotations

import logging

from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.http import Http404
from django.shortcuts import get_object_or_404
from rest_framework import permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from hotels.models import Room
from hotels.services import get_room
from payments.stripe_api import (
    ProcessorError,
    StripeConfigurationError,
    StripePaymentError,
    StripeTransientError,
)

from .cache import GUEST_SCOPE, HOTEL_OWNER_SCOPE, bookings_cache_key, bookings_cache_timeout
from .domain import disabled_dates, paid_date_ranges
from .exceptions import DATES_UNAVAILABLE_MESSAGE, BookingConflict, PersistenceError
from .filters import BookingFilter
from .models import Booking
from .serializers import BookingDraftSerializer, BookingSerializer
from .settlement import authorize, begin_attempt, finalize_booking, pay_existing_booking

logger = logging.getLogger(__name__)
RETRY_MESSAGE = "Temporary payment issue, please retry."


def _settlement_error_response(exc: Exception) -> Response:
    """Translate reservation and payment errors into API responses."""
    if isinstance(exc, BookingConflict):
        return Response(exc.message_dict, status=status.HTTP_409_CONFLICT)
    if isinstance(exc, ValidationError):
        return Response(exc.message_dict, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, StripePaymentError):
        message = str(exc) or "Payment could not be completed."
        return Response({"detail": message}, status=status.HTTP_400_BAD_REQUEST)
    if isinstance(exc, StripeConfigurationError):
        logger.error("bookings: Stripe is misconfigured: %s", exc)
        return Response({"detail": RETRY_MESSAGE}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    if isinstance(exc, (StripeTransientError, PersistenceError)):
        return Response({"detail": RETRY_MESSAGE}, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    raise exc


class IsBookingParticipant(permissions.BasePermission):
    """Allow access only to users tied to the booking."""

    def has_permission(self, request, view) -> bool:
        return True

    def has_object_permission(self, request, view, obj: Booking) -> bool:
        """Check that the user is the guest or the hotel owner."""
        user_id = getattr(request.user, "id", None)
        return user_id in (obj.user_id, obj.hotel_owner_id)


class BookingViewSet(viewsets.ReadOnlyModelViewSet):
    """Reservation lists, detail and the payment lifecycle for room bookings."""

    serializer_class = BookingSerializer
    permission_classes = (permissions.IsAuthenticated, IsBookingParticipant)
    filterset_class = BookingFilter
    ordering_fields = ("booked_at", "start_date", "total_price")

    def _base_queryset(self):
        return Booking.objects.select_related("hotel", "room", "user", "hotel_owner").order_by(
            "-booked_at"
        )

    def get_queryset(self):
        """Restrict list results to bookings the authenticated user made."""
        user = self.request.user
        if not user.is_authenticated:
            return Booking.objects.none()
        return self._base_queryset().filter(user=user)

    def get_object(self):
        """Fetch a single booking and enforce participant permissions."""
        obj = get_object_or_404(self._base_queryset(), pk=self.kwargs["pk"])
        self.check_object_permissions(self.request, obj)
        return obj

    def _cached_list(self, scope: str, queryset) -> Response:
        key = bookings_cache_key(scope, self.request.user.pk, self.request.query_params)
        data = cache.get(key)
        if data is None:
            data = list(self.get_serializer(self.filter_queryset(queryset), many=True).data)
            cache.set(key, data, bookings_cache_timeout())
        return Response(data, status=status.HTTP_200_OK)

    def list(self, request, *args, **kwargs):
        """Return the bookings the authenticated user made, newest first."""
        return self._cached_list(GUEST_SCOPE, self.get_queryset())

    @action(detail=False, methods=["get"], url_path="hotel-owner")
    def hotel_owner(self, request, *args, **kwargs):
        """Return bookings visitors made on the authenticated user's hotels."""
        return self._cached_list(
            HOTEL_OWNER_SCOPE,
            self._base_queryset().filter(hotel_owner=request.user),
        )

    @action(
        detail=False,
        methods=["get"],
        url_path="availability",
        permission_classes=[permissions.AllowAny],
    )
    def availability(self, request, *args, **kwargs):
        """Return paid date ranges and disabled days for a room."""
        room_param = request.query_params.get("room")
        if not room_param:
            return Response(
                {"detail": "room query parameter is required."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            room_id = int(room_param)
        except (TypeError, ValueError):
            return Response(
                {"detail": "room must be a valid integer."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            room = get_room(room_id)
        except Room.DoesNotExist:
            raise Http404("Room not found.")

        payload = {
            "room": room.pk,
            "booked_ranges": [
                {"start_date": item.start.isoformat(), "end_date": item.end.isoformat()}
                for item in paid_date_ranges(room.pk)
            ],
            "disabled_dates": [day.isoformat() for day in disabled_dates(room.pk)],
        }
        return Response(payload, status=status.HTTP_200_OK)

    @action(detail=False, methods=["post"], url_path="payment-intent")
    def payment_intent(self, request, *args, **kwargs):
        """Create or refresh the PaymentIntent and unpaid booking for a reservation request."""
        serializer = BookingDraftSerializer(data=request.data, context={"request": request})
        serializer.is_valid(raise_exception=True)
        try:
            attempt = begin_attempt(
                request.user,
                serializer.validated_data["draft"],
                payment_intent_id=serializer.validated_data.get("payment_intent_id") or None,
            )
            authorize(attempt)
        except (ValidationError, ProcessorError, PersistenceError) as exc:
            return _settlement_error_response(exc)

        return Response(
            {
                "payment_intent_id": attempt.payment_intent_id,
                "client_secret": attempt.client_secret,
                "booking": self.get_serializer(attempt.booking).data,
            },
            status=status.HTTP_200_OK,
        )

    @action(
        detail=False,
        methods=["patch"],
        url_path=r"finalize/(?P<payment_intent_id>[^/]+)",
    )
    def finalize(self, request, payment_intent_id=None, **kwargs):
        """Settle the caller's booking once Stripe.js reports the payment confirmed."""
        get_object_or_404(Booking, payment_intent_id=payment_intent_id, user=request.user)
        try:
            booking = finalize_booking(payment_intent_id)
        except (ValidationError, ProcessorError, PersistenceError) as exc:
            return _settlement_error_response(exc)

        booking = self._base_queryset().get(pk=booking.pk)
        data = self.get_serializer(booking).data
        if booking.needs_refund():
            detail = DATES_UNAVAILABLE_MESSAGE
            if booking.failure_reason == Booking.FailureReason.AMOUNT_MISMATCH:
                detail = "The amount paid does not match the booking price; it will be refunded."
            return Response(
                {"detail": detail, "booking": data},
                status=status.HTTP_409_CONFLICT,
            )
        return Response(data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="pay")
    def pay(self, request, *args, **kwargs):
        """Start a new payment for an unpaid booking (guest-only)."""
        booking: Booking = self.get_object()
        if booking.user_id != request.user.id:
            return Response(
                {"detail": "Only the guest can pay for this booking."},
                status=status.HTTP_403_FORBIDDEN,
            )
        if booking.payment_status or booking.needs_refund():
            return Response(
                {"detail": "Booking is not in a payable state."},
                status=status.HTTP_400_BAD_REQUEST,
            )
        try:
            attempt = pay_existing_booking(request.user, booking)
        except (ValidationError, ProcessorError, PersistenceError) as exc:
            return _settlement_error_response(exc)

        return Response(
            {
                "payment_intent_id": attempt.payment_intent_id,
                "client_secret": attempt.client_secret,
                "booking": self.get_serializer(attempt.booking).data,
            },
            status=status.HTTP_200_OK,
        )
