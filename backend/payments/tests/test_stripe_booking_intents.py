from decimal import Decimal

import pytest
import stripe

from payments import stripe_api


def booking_metadata(user_id: str = "7") -> dict[str, str]:
    return {
        "room_id": "3",
        "user_id": user_id,
        "start_date": "2024-06-01",
        "end_date": "2024-06-04",
    }


def test_create_uses_cents_currency_and_idempotency_key(fake_stripe):
    ref = stripe_api.create_or_update_booking_intent(
        amount=Decimal("300.00"),
        metadata=booking_metadata(),
        idempotency_key="room-booking:u7:r3",
    )

    kwargs = fake_stripe.create_calls[0]
    assert kwargs["amount"] == 30000
    assert kwargs["currency"] == "usd"
    assert kwargs["automatic_payment_methods"] == {"enabled": True}
    assert kwargs["idempotency_key"] == "room-booking:u7:r3:v1:30000"
    assert kwargs["metadata"]["kind"] == "room_booking"
    assert kwargs["metadata"]["env"] == "test"
    assert ref.id == "pi_test_1"
    assert ref.client_secret == "pi_test_1_secret"
    assert ref.amount_cents == 30000


def test_existing_intent_is_updated_in_place(fake_stripe):
    first = stripe_api.create_or_update_booking_intent(
        amount=Decimal("300.00"),
        metadata=booking_metadata(),
    )

    second = stripe_api.create_or_update_booking_intent(
        amount=Decimal("450.00"),
        metadata=booking_metadata(),
        existing_intent_id=first.id,
    )

    assert second.id == first.id
    assert second.client_secret == first.client_secret
    assert second.amount_cents == 45000
    assert len(fake_stripe.create_calls) == 1
    assert fake_stripe.modify_calls[0][0] == first.id


def test_replayed_create_is_brought_back_to_the_requested_amount(fake_stripe):
    first = stripe_api.create_or_update_booking_intent(
        amount=Decimal("300.00"),
        metadata=booking_metadata(),
        idempotency_key="room-booking:u7:r3",
    )
    stripe_api.create_or_update_booking_intent(
        amount=Decimal("500.00"),
        metadata={**booking_metadata(), "end_date": "2024-06-06"},
        existing_intent_id=first.id,
    )

    replayed = stripe_api.create_or_update_booking_intent(
        amount=Decimal("300.00"),
        metadata=booking_metadata(),
        idempotency_key="room-booking:u7:r3",
    )

    assert replayed.id == first.id
    assert replayed.amount_cents == 30000
    assert fake_stripe.intents[first.id].amount == 30000
    assert fake_stripe.intents[first.id].metadata["end_date"] == "2024-06-04"
    assert len(fake_stripe.modify_calls) == 2


def test_fresh_create_is_not_modified(fake_stripe):
    stripe_api.create_or_update_booking_intent(
        amount=Decimal("300.00"),
        metadata=booking_metadata(),
        idempotency_key="room-booking:u7:r3",
    )

    assert fake_stripe.modify_calls == []


@pytest.mark.parametrize("intent_status", ["succeeded", "canceled", "processing"])
def test_locked_intent_cannot_be_changed(fake_stripe, intent_status):
    ref = stripe_api.create_or_update_booking_intent(
        amount=Decimal("300.00"),
        metadata=booking_metadata(),
    )
    fake_stripe.intents[ref.id].status = intent_status

    with pytest.raises(stripe_api.StripePaymentError):
        stripe_api.create_or_update_booking_intent(
            amount=Decimal("300.00"),
            metadata=booking_metadata(),
            existing_intent_id=ref.id,
        )
    assert fake_stripe.modify_calls == []


def test_intent_of_another_user_is_refused(fake_stripe):
    ref = stripe_api.create_or_update_booking_intent(
        amount=Decimal("300.00"),
        metadata=booking_metadata(user_id="7"),
    )

    with pytest.raises(stripe_api.StripePaymentError):
        stripe_api.create_or_update_booking_intent(
            amount=Decimal("300.00"),
            metadata=booking_metadata(user_id="8"),
            existing_intent_id=ref.id,
        )


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-1.00")])
def test_non_positive_amount_is_refused(fake_stripe, amount):
    with pytest.raises(stripe_api.StripePaymentError):
        stripe_api.create_or_update_booking_intent(amount=amount, metadata=booking_metadata())
    assert fake_stripe.create_calls == []


def test_missing_secret_key_is_a_configuration_error(fake_stripe, settings):
    settings.STRIPE_SECRET_KEY = ""
    with pytest.raises(stripe_api.StripeConfigurationError):
        stripe_api.create_or_update_booking_intent(
            amount=Decimal("300.00"),
            metadata=booking_metadata(),
        )


@pytest.mark.parametrize(
    "error, expected",
    [
        (stripe.error.RateLimitError("slow down"), stripe_api.StripeTransientError),
        (stripe.error.APIConnectionError("network"), stripe_api.StripeTransientError),
        (stripe.error.AuthenticationError("bad key"), stripe_api.StripeConfigurationError),
        (
            stripe.error.CardError("declined", "card", "card_declined"),
            stripe_api.StripePaymentError,
        ),
        (
            stripe.error.InvalidRequestError("bad amount", "amount"),
            stripe_api.StripePaymentError,
        ),
    ],
)
def test_stripe_errors_are_mapped(monkeypatch, error, expected):
    def failing_create(**kwargs):
        raise error

    monkeypatch.setattr(
        stripe_api.stripe,
        "PaymentIntent",
        type("MockPI", (), {"create": staticmethod(failing_create)}),
    )

    with pytest.raises(expected):
        stripe_api.create_or_update_booking_intent(
            amount=Decimal("300.00"),
            metadata=booking_metadata(),
        )


def test_retrieve_booking_intent_reports_status(fake_stripe):
    ref = stripe_api.create_or_update_booking_intent(
        amount=Decimal("120.00"),
        metadata=booking_metadata(),
    )
    fake_stripe.succeed(ref.id)

    current = stripe_api.retrieve_booking_intent(ref.id)

    assert current.status == "succeeded"
    assert current.amount_cents == 12000


def test_retrieve_unknown_intent_raises(fake_stripe):
    with pytest.raises(stripe_api.StripePaymentError):
        stripe_api.retrieve_booking_intent("pi_missing")


def test_payment_intent_ref_reads_webhook_payloads():
    ref = stripe_api.PaymentIntentRef.from_stripe(
        {"id": "pi_1", "client_secret": "s", "amount": 1999, "status": "succeeded"}
    )
    assert ref == stripe_api.PaymentIntentRef(
        id="pi_1", client_secret="s", amount_cents=1999, status="succeeded"
    )
