from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError

from hotels.models import Room
from hotels.services import get_room

pytestmark = pytest.mark.django_db


def test_get_room_loads_hotel(room, django_assert_num_queries):
    with django_assert_num_queries(1):
        loaded = get_room(room.pk)
        assert loaded.hotel.title == "Harbour View"


def test_get_room_raises_for_unknown_room():
    with pytest.raises(Room.DoesNotExist):
        get_room(999999)


@pytest.mark.parametrize(
    "title, room_price",
    [("A", Decimal("50.00")), ("Suite", Decimal("0.00"))],
)
def test_room_clean_rejects_bad_values(hotel, title, room_price):
    room = Room(hotel=hotel, title=title, room_price=room_price)
    with pytest.raises(ValidationError):
        room.clean()


def test_room_without_breakfast_is_valid(hotel):
    room = Room(hotel=hotel, title="Twin Room", room_price=Decimal("90.00"))
    room.full_clean()
    assert room.breakfast_price is None
