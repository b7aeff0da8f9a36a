"""Stripe webhook endpoint for room booking payments."""

from __future__ import annotations

import logging

import stripe
from django.conf import settings
from django.core.exceptions import ValidationError
from rest_framework import status
from rest_framework.decorators import api_view, authentication_classes, permission_classes
from rest_framework.response import Response

from bookings.exceptions import PersistenceError
from bookings.models import Booking
from bookings.settlement import finalize_booking, record_payment_failure

from .stripe_api import BOOKING_INTENT_KIND, PaymentIntentRef

logger = logging.getLogger(__name__)


def _failure_message(data_object: dict) -> str:
    last_error = data_object.get("last_payment_error") or {}
    return str(last_error.get("message") or "")


@api_view(["POST"])
@authentication_classes([])
@permission_classes([])
def stripe_webhook(request):
    """Handle Stripe webhook callbacks for booking PaymentIntents."""
    payload = request.body
    sig_header = request.META.get("HTTP_STRIPE_SIGNATURE", "")
    endpoint_secret = getattr(settings, "STRIPE_WEBHOOK_SECRET", "")

    try:
        event = stripe.Webhook.construct_event(
            payload=payload,
            sig_header=sig_header,
            secret=endpoint_secret,
        )
    except ValueError:
        return Response(status=status.HTTP_400_BAD_REQUEST)
    except stripe.error.SignatureVerificationError:
        return Response(status=status.HTTP_400_BAD_REQUEST)

    event_type = event.get("type")
    data_object = event.get("data", {}).get("object", {}) or {}
    metadata = data_object.get("metadata") or {}
    intent_id = data_object.get("id") or ""

    if metadata.get("kind") != BOOKING_INTENT_KIND or not intent_id:
        return Response(status=status.HTTP_200_OK)

    try:
        if event_type == "payment_intent.succeeded":
            booking = finalize_booking(intent_id, intent=PaymentIntentRef.from_stripe(data_object))
            logger.info(
                "stripe_webhook: intent %s settled booking %s (%s)",
                intent_id,
                booking.pk,
                booking.settlement_state,
                extra={"payment_intent_id": intent_id, "booking_id": booking.pk},
            )
        elif event_type == "payment_intent.payment_failed":
            record_payment_failure(intent_id, _failure_message(data_object))
    except Booking.DoesNotExist:
        logger.warning(
            "stripe_webhook: no booking for intent %s",
            intent_id,
            extra={"payment_intent_id": intent_id},
        )
    except ValidationError as exc:
        logger.error(
            "stripe_webhook: could not settle intent %s: %s",
            intent_id,
            exc.messages,
            extra={"payment_intent_id": intent_id},
        )
    except PersistenceError:
        logger.exception(
            "stripe_webhook: storage unavailable for intent %s",
            intent_id,
            extra={"payment_intent_id": intent_id},
        )
        return Response(status=status.HTTP_503_SERVICE_UNAVAILABLE)

    return Response(status=status.HTTP_200_OK)
