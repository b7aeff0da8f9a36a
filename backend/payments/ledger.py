from decimal import Decimal

from django.contrib.auth import get_user_model

from .models import Transaction

User = get_user_model()


def log_transaction(
    *,
    user: User,
    booking,
    kind: str,
    amount: Decimal,
    currency: str = "usd",
    stripe_id: str = "",
) -> Transaction:
    """
    Record a ledger row, at most once per (booking, kind, stripe id).

    Returns the existing row when the same event is logged again, so webhook
    redeliveries and client retries never double-count a charge.
    """
    transaction, _ = Transaction.objects.get_or_create(
        booking=booking,
        kind=kind,
        stripe_id=stripe_id or "",
        defaults={
            "user": user,
            "amount": amount,
            "currency": currency,
        },
    )
    return transaction
