"""
Booking settlement lifecycle.

A booking attempt moves Draft -> Authorizing -> AwaitingConfirmation and ends
in Confirmed, Rejected or Failed. The availability check runs right before
the payment intent is issued and once more, inside a row-locking transaction,
before a booking is marked paid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional

from django.conf import settings
from django.db import DatabaseError, transaction
from django.utils import timezone

from hotels.models import Room
from notifications import tasks as notification_tasks
from payments.ledger import log_transaction
from payments.models import Transaction
from payments.stripe_api import (
    PaymentIntentRef,
    create_or_update_booking_intent,
    retrieve_booking_intent,
)

from .domain import ensure_room_available, validate_booking_dates
from .exceptions import (
    AuthenticationRequired,
    BookingAlreadyPaid,
    BookingConflict,
    InvalidTransition,
    PaymentNotCompleted,
    PersistenceError,
    PriceMismatch,
    UnknownPaymentIntent,
)
from .intervals import DateInterval
from .models import Booking
from .pricing import price_for_room, quantize_money, verify_declared_price

logger = logging.getLogger(__name__)

SettlementState = Booking.SettlementState
TERMINAL_STATES = frozenset(
    {SettlementState.CONFIRMED, SettlementState.REJECTED, SettlementState.FAILED}
)
_TRANSITIONS = {
    SettlementState.DRAFT: frozenset({SettlementState.AUTHORIZING}),
    SettlementState.AUTHORIZING: frozenset(
        {SettlementState.AWAITING_CONFIRMATION, SettlementState.REJECTED}
    ),
    SettlementState.AWAITING_CONFIRMATION: frozenset(
        {SettlementState.CONFIRMED, SettlementState.FAILED}
    ),
}


@dataclass
class BookingDraft:
    """An unpersisted reservation request; the price is always computed here."""

    room: Room
    start_date: date
    end_date: date
    breakfast_included: bool = False
    declared_price: Optional[Decimal] = None
    total_price: Decimal = field(init=False)

    def __post_init__(self) -> None:
        validate_booking_dates(self.start_date, self.end_date)
        self.total_price = price_for_room(
            self.room,
            self.start_date,
            self.end_date,
            self.breakfast_included,
        )

    @classmethod
    def from_booking(cls, booking: Booking) -> "BookingDraft":
        return cls(
            room=booking.room,
            start_date=booking.start_date,
            end_date=booking.end_date,
            breakfast_included=booking.breakfast_included,
        )

    @property
    def interval(self) -> DateInterval:
        return DateInterval(self.start_date, self.end_date)

    @property
    def nights(self) -> int:
        return self.interval.nights

    def intent_metadata(self, user) -> dict[str, str]:
        hotel = self.room.hotel
        return {
            "hotel_owner_id": str(hotel.owner_id),
            "hotel_id": str(hotel.pk),
            "room_id": str(self.room.pk),
            "user_id": str(user.pk),
            "start_date": self.start_date.isoformat(),
            "end_date": self.end_date.isoformat(),
            "breakfast_included": "true" if self.breakfast_included else "false",
        }

    def idempotency_key(self, user) -> str:
        breakfast = "bf" if self.breakfast_included else "nobf"
        return (
            f"room-booking:u{user.pk}:r{self.room.pk}:"
            f"{self.start_date.isoformat()}:{self.end_date.isoformat()}:{breakfast}"
        )


@dataclass
class BookingAttempt:
    """
    Session-scoped state for one user's attempt to book a draft.

    Each request builds its own attempt; nothing is shared between sessions.
    """

    user: Any
    draft: BookingDraft
    payment_intent_id: str = ""
    state: str = SettlementState.DRAFT
    intent: Optional[PaymentIntentRef] = None
    booking: Optional[Booking] = None
    history: list[str] = field(default_factory=list)

    @property
    def client_secret(self) -> str:
        return self.intent.client_secret if self.intent else ""

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES

    def transition(self, target: str) -> None:
        if target not in _TRANSITIONS.get(self.state, frozenset()):
            raise InvalidTransition(f"Cannot move a booking attempt from {self.state} to {target}.")
        self.history.append(self.state)
        self.state = target


def begin_attempt(
    user,
    draft: BookingDraft,
    *,
    payment_intent_id: str | None = None,
) -> BookingAttempt:
    """Open an attempt in Draft after checking the caller and the declared price."""
    if user is None or not getattr(user, "is_authenticated", False):
        raise AuthenticationRequired("Sign in to book a room.")
    verify_declared_price(draft.declared_price, draft.total_price)
    if payment_intent_id and (
        Booking.objects.filter(payment_intent_id=payment_intent_id)
        .exclude(user_id=user.pk)
        .exists()
    ):
        raise UnknownPaymentIntent()
    return BookingAttempt(user=user, draft=draft, payment_intent_id=payment_intent_id or "")


def upsert_booking(draft: BookingDraft, payment_intent_id: str, user) -> Booking:
    """Persist the unpaid booking tied to ``payment_intent_id``, updating it on retries."""
    hotel = draft.room.hotel
    values = {
        "hotel_owner_id": hotel.owner_id,
        "hotel_id": hotel.pk,
        "room_id": draft.room.pk,
        "user_id": user.pk,
        "start_date": draft.start_date,
        "end_date": draft.end_date,
        "breakfast_included": draft.breakfast_included,
        "total_price": draft.total_price,
        "currency": getattr(settings, "BOOKING_CURRENCY", "usd"),
        "settlement_state": SettlementState.AWAITING_CONFIRMATION,
        "failure_reason": Booking.FailureReason.NONE,
        "failure_message": "",
    }
    try:
        with transaction.atomic():
            booking = (
                Booking.objects.select_for_update()
                .filter(payment_intent_id=payment_intent_id)
                .first()
            )
            if booking is None:
                return Booking.objects.create(payment_intent_id=payment_intent_id, **values)
            if booking.payment_status:
                raise BookingAlreadyPaid()
            for name, value in values.items():
                setattr(booking, name, value)
            booking.save()
            return booking
    except DatabaseError as exc:
        raise PersistenceError("Could not save the booking, please retry.") from exc


def authorize(attempt: BookingAttempt) -> BookingAttempt:
    """
    Check availability, then issue or refresh the payment intent and save the unpaid booking.

    A conflict ends the attempt in Rejected before Stripe is contacted.
    """
    attempt.transition(SettlementState.AUTHORIZING)
    draft = attempt.draft
    try:
        ensure_room_available(draft.room, draft.interval)
    except BookingConflict:
        attempt.transition(SettlementState.REJECTED)
        raise
    except DatabaseError as exc:
        raise PersistenceError("Could not check room availability, please retry.") from exc

    attempt.intent = create_or_update_booking_intent(
        amount=draft.total_price,
        metadata=draft.intent_metadata(attempt.user),
        existing_intent_id=attempt.payment_intent_id or None,
        idempotency_key=draft.idempotency_key(attempt.user),
    )
    attempt.payment_intent_id = attempt.intent.id
    attempt.booking = upsert_booking(draft, attempt.intent.id, attempt.user)
    attempt.transition(SettlementState.AWAITING_CONFIRMATION)
    logger.info(
        "bookings: booking %s awaiting payment on intent %s",
        attempt.booking.pk,
        attempt.payment_intent_id,
        extra={"booking_id": attempt.booking.pk, "room_id": draft.room.pk},
    )
    return attempt


def pay_existing_booking(user, booking: Booking) -> BookingAttempt:
    """Retry payment for an unpaid booking, reusing its payment intent."""
    if booking.payment_status:
        raise BookingAlreadyPaid()
    attempt = begin_attempt(
        user,
        BookingDraft.from_booking(booking),
        payment_intent_id=booking.payment_intent_id,
    )
    return authorize(attempt)


def finalize_booking(
    payment_intent_id: str,
    *,
    intent: PaymentIntentRef | None = None,
) -> Booking:
    """
    Settle a booking once Stripe reports its intent as succeeded.

    ``intent`` comes from a verified webhook; client-initiated calls omit it and
    the intent is fetched from Stripe instead of trusting the caller.
    """
    if intent is None:
        intent = retrieve_booking_intent(payment_intent_id)
    if intent.status != "succeeded":
        raise PaymentNotCompleted(intent.status)
    return mark_paid(payment_intent_id, amount_cents=intent.amount_cents)


def mark_paid(payment_intent_id: str, *, amount_cents: int | None = None) -> Booking:
    """
    Flip the booking tied to ``payment_intent_id`` to paid, exactly once.

    The room row is locked for the final availability check so concurrent
    settlements on the same room run one after the other. A booking whose dates
    were taken in the meantime, or whose collected amount no longer matches its
    price, ends Failed and is flagged for a refund instead.
    """
    try:
        with transaction.atomic():
            booking = (
                Booking.objects.select_for_update()
                .get(payment_intent_id=payment_intent_id)
            )
            if booking.payment_status:
                logger.info(
                    "bookings: intent %s already settled booking %s",
                    payment_intent_id,
                    booking.pk,
                )
                return booking
            if booking.needs_refund():
                return booking

            room = Room.objects.select_for_update().get(pk=booking.room_id)
            expected = price_for_room(
                room,
                booking.start_date,
                booking.end_date,
                booking.breakfast_included,
            )
            paid = (
                quantize_money(Decimal(amount_cents) / 100)
                if amount_cents is not None
                else booking.total_price
            )
            try:
                verify_declared_price(booking.total_price, expected)
                verify_declared_price(paid, expected)
            except PriceMismatch as exc:
                _record_amount_mismatch(booking, paid, exc)
                return booking

            try:
                ensure_room_available(room, booking.interval, exclude_booking_id=booking.pk)
            except BookingConflict:
                _record_late_conflict(booking)
            else:
                _record_paid(booking)
    except DatabaseError as exc:
        raise PersistenceError("Could not settle the booking, please retry.") from exc
    return booking


def _record_paid(booking: Booking) -> None:
    booking.payment_status = True
    booking.settlement_state = SettlementState.CONFIRMED
    booking.failure_reason = Booking.FailureReason.NONE
    booking.failure_message = ""
    booking.paid_at = timezone.now()
    booking.save(
        update_fields=[
            "payment_status",
            "settlement_state",
            "failure_reason",
            "failure_message",
            "paid_at",
            "updated_at",
        ]
    )
    log_transaction(
        user=booking.user,
        booking=booking,
        kind=Transaction.Kind.BOOKING_CHARGE,
        amount=booking.total_price,
        currency=booking.currency,
        stripe_id=booking.payment_intent_id,
    )
    logger.info(
        "bookings: booking %s paid via %s",
        booking.pk,
        booking.payment_intent_id,
        extra={"booking_id": booking.pk, "room_id": booking.room_id},
    )
    transaction.on_commit(lambda: _queue_confirmation_emails(booking.pk))


def _record_late_conflict(booking: Booking) -> None:
    booking.settlement_state = SettlementState.FAILED
    booking.failure_reason = Booking.FailureReason.LATE_CONFLICT
    booking.failure_message = "Dates were reserved by another guest before payment settled."
    booking.save(
        update_fields=["settlement_state", "failure_reason", "failure_message", "updated_at"]
    )
    log_transaction(
        user=booking.user,
        booking=booking,
        kind=Transaction.Kind.REFUND_REQUIRED,
        amount=booking.total_price,
        currency=booking.currency,
        stripe_id=booking.payment_intent_id,
    )
    logger.warning(
        "bookings: booking %s lost its dates after payment on %s; refund required",
        booking.pk,
        booking.payment_intent_id,
        extra={"booking_id": booking.pk, "room_id": booking.room_id},
    )
    transaction.on_commit(lambda: _queue_refund_alert(booking.pk))


def _record_amount_mismatch(booking: Booking, paid: Decimal, exc: PriceMismatch) -> None:
    booking.settlement_state = SettlementState.FAILED
    booking.failure_reason = Booking.FailureReason.AMOUNT_MISMATCH
    booking.failure_message = (
        f"Collected {paid} but the booking is now priced at {exc.computed}."
    )
    booking.save(
        update_fields=["settlement_state", "failure_reason", "failure_message", "updated_at"]
    )
    log_transaction(
        user=booking.user,
        booking=booking,
        kind=Transaction.Kind.REFUND_REQUIRED,
        amount=paid,
        currency=booking.currency,
        stripe_id=booking.payment_intent_id,
    )
    logger.warning(
        "bookings: booking %s collected %s on %s, expected %s; refund required",
        booking.pk,
        paid,
        booking.payment_intent_id,
        exc.computed,
        extra={"booking_id": booking.pk, "room_id": booking.room_id},
    )
    transaction.on_commit(lambda: _queue_refund_alert(booking.pk))


def record_payment_failure(payment_intent_id: str, message: str = "") -> Booking | None:
    """Mark the unpaid booking of a declined intent Failed; the guest may retry later."""
    try:
        with transaction.atomic():
            booking = (
                Booking.objects.select_for_update()
                .filter(payment_intent_id=payment_intent_id)
                .first()
            )
            if booking is None:
                logger.info("bookings: no booking for failed intent %s", payment_intent_id)
                return None
            if booking.payment_status or booking.needs_refund():
                return booking
            booking.settlement_state = SettlementState.FAILED
            booking.failure_reason = Booking.FailureReason.PAYMENT_FAILED
            booking.failure_message = message or "Payment failed."
            booking.save(
                update_fields=[
                    "settlement_state",
                    "failure_reason",
                    "failure_message",
                    "updated_at",
                ]
            )
    except DatabaseError as exc:
        raise PersistenceError("Could not record the payment failure, please retry.") from exc
    return booking


def _queue_confirmation_emails(booking_id: int) -> None:
    try:
        notification_tasks.send_booking_confirmed_email.delay(booking_id)
        notification_tasks.send_hotel_owner_booking_email.delay(booking_id)
    except Exception:
        logger.info(
            "notifications: could not queue booking confirmation for %s",
            booking_id,
            exc_info=True,
        )


def _queue_refund_alert(booking_id: int) -> None:
    try:
        notification_tasks.send_refund_required_alert.delay(booking_id)
    except Exception:
        logger.info(
            "notifications: could not queue refund alert for %s",
            booking_id,
            exc_info=True,
        )
