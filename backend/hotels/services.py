from __future__ import annotations

from .models import Room


def get_room(room_id: int) -> Room:
    """Return the room with its hotel loaded; raises Room.DoesNotExist."""
    return Room.objects.select_related("hotel").get(pk=room_id)
