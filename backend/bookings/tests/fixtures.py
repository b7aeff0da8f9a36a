"""Shared fixtures for booking, payment and notification tests."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal
from typing import Callable

import pytest
import stripe
from django.contrib.auth import get_user_model
from django.utils import timezone

from bookings.models import Booking
from bookings.pricing import price_for_room
from hotels.models import Hotel, Room
from payments import stripe_api

User = get_user_model()


class FakeIntent:
    def __init__(self, intent_id: str, *, amount: int, currency: str, metadata: dict):
        self.id = intent_id
        self.client_secret = f"{intent_id}_secret"
        self.amount = amount
        self.currency = currency
        self.metadata = dict(metadata)
        self.status = "requires_payment_method"


class FakePaymentIntentAPI:
    """In-memory stand-in for ``stripe.PaymentIntent`` that honours idempotency keys."""

    def __init__(self):
        self.intents: dict[str, FakeIntent] = {}
        self.by_idempotency_key: dict[str, FakeIntent] = {}
        self.create_calls: list[dict] = []
        self.modify_calls: list[tuple[str, dict]] = []

    def create(self, **kwargs):
        self.create_calls.append(kwargs)
        key = kwargs.get("idempotency_key")
        if key and key in self.by_idempotency_key:
            return self.by_idempotency_key[key]
        intent = FakeIntent(
            f"pi_test_{len(self.intents) + 1}",
            amount=kwargs["amount"],
            currency=kwargs["currency"],
            metadata=kwargs.get("metadata") or {},
        )
        self.intents[intent.id] = intent
        if key:
            self.by_idempotency_key[key] = intent
        return intent

    def retrieve(self, intent_id: str):
        intent = self.intents.get(intent_id)
        if intent is None:
            raise stripe.error.InvalidRequestError(
                f"No such payment_intent: '{intent_id}'",
                "intent",
                code="resource_missing",
            )
        return intent

    def modify(self, intent_id: str, **kwargs):
        self.modify_calls.append((intent_id, kwargs))
        intent = self.retrieve(intent_id)
        if "amount" in kwargs:
            intent.amount = kwargs["amount"]
        if "metadata" in kwargs:
            intent.metadata = dict(kwargs["metadata"])
        return intent

    def succeed(self, intent_id: str) -> FakeIntent:
        intent = self.intents[intent_id]
        intent.status = "succeeded"
        return intent


@pytest.fixture
def fake_stripe(monkeypatch) -> FakePaymentIntentAPI:
    fake = FakePaymentIntentAPI()
    monkeypatch.setattr(stripe_api.stripe, "PaymentIntent", fake)
    return fake


@pytest.fixture
def day() -> Callable[[int], date]:
    """Return a date ``offset`` days from today, keeping API requests in the future."""
    today = timezone.localdate()

    def _day(offset: int) -> date:
        return today + timedelta(days=offset)

    return _day


@pytest.fixture
def owner_user():
    return User.objects.create_user(
        username="owner", email="owner@example.com", password="testpass"
    )


@pytest.fixture
def guest_user():
    return User.objects.create_user(
        username="guest",
        email="guest@example.com",
        password="testpass",
        first_name="Grace",
        last_name="Guest",
    )


@pytest.fixture
def other_guest():
    return User.objects.create_user(
        username="other-guest", email="other@example.com", password="testpass"
    )


@pytest.fixture
def hotel(owner_user):
    return Hotel.objects.create(
        owner=owner_user,
        title="Harbour View",
        description="Rooms over the old port.",
        city="Lisbon",
    )


@pytest.fixture
def room(hotel):
    return Room.objects.create(
        hotel=hotel,
        title="Double Room",
        description="Queen bed, sea view.",
        room_price=Decimal("100.00"),
        breakfast_price=Decimal("15.00"),
    )


@pytest.fixture
def booking_factory(room, guest_user) -> Callable[..., Booking]:
    def _create_booking(
        *,
        start_date: date,
        end_date: date,
        room_override: Room | None = None,
        user=None,
        payment_status: bool = False,
        breakfast_included: bool = False,
        **extra_fields,
    ) -> Booking:
        selected_room = room_override or room
        if payment_status:
            extra_fields.setdefault("settlement_state", Booking.SettlementState.CONFIRMED)
            extra_fields.setdefault("paid_at", timezone.now())
        return Booking.objects.create(
            hotel_owner=selected_room.hotel.owner,
            hotel=selected_room.hotel,
            room=selected_room,
            user=user or guest_user,
            start_date=start_date,
            end_date=end_date,
            breakfast_included=breakfast_included,
            total_price=price_for_room(selected_room, start_date, end_date, breakfast_included),
            payment_status=payment_status,
            **extra_fields,
        )

    return _create_booking
