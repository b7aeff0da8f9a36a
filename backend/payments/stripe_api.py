"""Stripe PaymentIntent helpers for room bookings."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

import stripe
from django.conf import settings

logger = logging.getLogger(__name__)
IDEMPOTENCY_VERSION = "v1"
AUTOMATIC_PAYMENT_METHODS_CONFIG = {"enabled": True}
BOOKING_INTENT_KIND = "room_booking"
# Stripe rejects updates once an intent is in one of these states.
LOCKED_INTENT_STATUSES = frozenset({"succeeded", "canceled", "processing", "requires_capture"})


class ProcessorError(Exception):
    """The payment processor rejected or failed a request."""


class StripeConfigurationError(ProcessorError):
    """Stripe is not configured correctly in the environment."""


class StripeTransientError(ProcessorError):
    """Temporary Stripe/API issue that should be retried."""


class StripePaymentError(ProcessorError):
    """Permanent failure creating, updating or reading a booking intent."""


@dataclass(frozen=True)
class PaymentIntentRef:
    """The parts of a Stripe PaymentIntent the booking flow relies on."""

    id: str
    client_secret: str
    amount_cents: int
    status: str = ""
    currency: str = ""

    @classmethod
    def from_stripe(cls, intent: Any) -> "PaymentIntentRef":
        return cls(
            id=str(_object_value(intent, "id", "") or ""),
            client_secret=str(_object_value(intent, "client_secret", "") or ""),
            amount_cents=int(_object_value(intent, "amount", 0) or 0),
            status=str(_object_value(intent, "status", "") or ""),
            currency=str(_object_value(intent, "currency", "") or ""),
        )


def _get_stripe_api_key() -> str:
    """Return the configured Stripe API key or raise if missing."""
    api_key = getattr(settings, "STRIPE_SECRET_KEY", "")
    if not api_key:
        raise StripeConfigurationError("Stripe secret key not configured.")
    return api_key


def _to_cents(amount: Decimal) -> int:
    """Convert Decimal dollars to integer cents, rounding to the nearest cent."""
    cents = (amount * Decimal("100")).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def _object_value(obj: Any, field: str, default: Any = None) -> Any:
    """Safely fetch a field from a Stripe object or dict payload."""
    if isinstance(obj, dict):
        return obj.get(field, default)
    return getattr(obj, field, default)


def _handle_stripe_error(exc: stripe.error.StripeError) -> None:
    """Map Stripe SDK errors onto internal exception types."""
    if isinstance(exc, stripe.error.CardError):
        message = exc.user_message or "Your card was declined."
        raise StripePaymentError(message) from exc
    if isinstance(
        exc,
        (
            stripe.error.RateLimitError,
            stripe.error.APIConnectionError,
            stripe.error.APIError,
        ),
    ):
        raise StripeTransientError("Temporary Stripe error, please retry.") from exc
    if isinstance(exc, (stripe.error.AuthenticationError, stripe.error.PermissionError)):
        raise StripeConfigurationError("Stripe credentials are invalid or unauthorized.") from exc
    if isinstance(exc, stripe.error.InvalidRequestError):
        raise StripePaymentError(exc.user_message or "Invalid payment request.") from exc
    raise StripePaymentError(exc.user_message or "Stripe payment failure.") from exc


def _retrieve_payment_intent(intent_id: str, *, label: str) -> stripe.PaymentIntent | None:
    """Retrieve an existing PaymentIntent, returning None if it no longer exists."""
    if not intent_id:
        return None
    try:
        return stripe.PaymentIntent.retrieve(intent_id)
    except stripe.error.InvalidRequestError as exc:
        if getattr(exc, "code", "") == "resource_missing":
            logger.info("Stripe PaymentIntent %s (%s) missing; will recreate.", label, intent_id)
            return None
        _handle_stripe_error(exc)
    except stripe.error.StripeError as exc:
        _handle_stripe_error(exc)
    return None


def _modify_booking_intent(
    intent: Any,
    *,
    amount_cents: int,
    currency: str,
    metadata: dict[str, str],
    intent_metadata: dict[str, str],
) -> PaymentIntentRef:
    """Point an open booking intent at the latest amount and metadata."""
    intent_status = str(_object_value(intent, "status", "") or "")
    if intent_status in LOCKED_INTENT_STATUSES:
        raise StripePaymentError(
            f"Payment for this booking can no longer be changed (status: {intent_status})."
        )
    existing_metadata = _object_value(intent, "metadata", {}) or {}
    intent_user = str(_object_value(existing_metadata, "user_id", "") or "")
    if intent_user and intent_user != str(metadata.get("user_id", "")):
        raise StripePaymentError("Payment intent does not belong to this booking.")
    try:
        intent = stripe.PaymentIntent.modify(
            intent.id,
            amount=amount_cents,
            metadata=intent_metadata,
        )
    except stripe.error.StripeError as exc:
        _handle_stripe_error(exc)
    logger.info(
        "payments: updated booking intent %s to %s %s",
        intent.id,
        amount_cents,
        currency,
        extra={"payment_intent_id": intent.id},
    )
    return PaymentIntentRef.from_stripe(intent)


def _intent_matches(intent: Any, amount_cents: int, intent_metadata: dict[str, str]) -> bool:
    current_metadata = _object_value(intent, "metadata", {}) or {}
    return int(_object_value(intent, "amount", 0) or 0) == amount_cents and all(
        str(_object_value(current_metadata, key, "") or "") == value
        for key, value in intent_metadata.items()
    )


def create_or_update_booking_intent(
    *,
    amount: Decimal,
    metadata: dict[str, str],
    currency: str | None = None,
    existing_intent_id: str | None = None,
    idempotency_key: str | None = None,
) -> PaymentIntentRef:
    """
    Create the booking PaymentIntent, or update the one already issued for this draft.

    An existing intent keeps its id and client secret; only its amount and
    metadata follow the latest draft, so edits before payment never leave a
    second open authorization behind.

    Stripe answers a repeated idempotency key with the original creation
    response, even if the intent was modified since. The intent is read back
    after every create and brought in line with this request when it drifted.
    """
    if amount is None or amount <= Decimal("0"):
        raise StripePaymentError("Booking amount must be greater than zero.")
    amount_cents = _to_cents(amount)
    currency = (currency or getattr(settings, "BOOKING_CURRENCY", "usd") or "usd").lower()
    env_label = getattr(settings, "STRIPE_ENV", "dev") or "dev"
    intent_metadata = {**metadata, "kind": BOOKING_INTENT_KIND, "env": env_label}

    stripe.api_key = _get_stripe_api_key()

    intent = _retrieve_payment_intent(existing_intent_id or "", label="room_booking")
    if intent is not None:
        return _modify_booking_intent(
            intent,
            amount_cents=amount_cents,
            currency=currency,
            metadata=metadata,
            intent_metadata=intent_metadata,
        )

    create_kwargs: dict[str, Any] = {
        "amount": amount_cents,
        "currency": currency,
        "automatic_payment_methods": {**AUTOMATIC_PAYMENT_METHODS_CONFIG},
        "metadata": intent_metadata,
    }
    if idempotency_key:
        create_kwargs["idempotency_key"] = (
            f"{idempotency_key}:{IDEMPOTENCY_VERSION}:{amount_cents}"
        )
    try:
        intent = stripe.PaymentIntent.create(**create_kwargs)
    except stripe.error.StripeError as exc:
        _handle_stripe_error(exc)
    logger.info(
        "payments: created booking intent %s for %s %s",
        intent.id,
        amount_cents,
        currency,
        extra={"payment_intent_id": intent.id},
    )

    current = _retrieve_payment_intent(intent.id, label="room_booking") or intent
    if not _intent_matches(current, amount_cents, intent_metadata):
        logger.info(
            "payments: replayed booking intent %s had drifted; updating it",
            current.id,
            extra={"payment_intent_id": current.id},
        )
        return _modify_booking_intent(
            current,
            amount_cents=amount_cents,
            currency=currency,
            metadata=metadata,
            intent_metadata=intent_metadata,
        )
    return PaymentIntentRef.from_stripe(current)


def retrieve_booking_intent(intent_id: str) -> PaymentIntentRef:
    """Return the current state of a booking intent; raises if Stripe has no such intent."""
    stripe.api_key = _get_stripe_api_key()
    intent = _retrieve_payment_intent(intent_id, label="room_booking")
    if intent is None:
        raise StripePaymentError("Payment intent not found.")
    return PaymentIntentRef.from_stripe(intent)
