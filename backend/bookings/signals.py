from __future__ import annotations

from functools import partial

from django.db import transaction
from django.db.models.signals import post_delete, post_save
from django.dispatch import receiver

from .cache import invalidate_bookings_cache
from .models import Booking


@receiver(post_save, sender=Booking, dispatch_uid="bookings_cache_invalidate_on_save")
@receiver(post_delete, sender=Booking, dispatch_uid="bookings_cache_invalidate_on_delete")
def _invalidate_booking_cache(sender, instance: Booking, **kwargs):
    invalidate = partial(
        invalidate_bookings_cache,
        guest_ids=[instance.user_id],
        hotel_owner_ids=[instance.hotel_owner_id],
    )
    invalidate()
    # Lists read between the first bump and the commit still hold old rows.
    transaction.on_commit(invalidate)
