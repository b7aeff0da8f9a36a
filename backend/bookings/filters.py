import django_filters as filters

from .models import Booking


class BookingFilter(filters.FilterSet):
    payment_status = filters.BooleanFilter(field_name="payment_status")
    settlement_state = filters.CharFilter(field_name="settlement_state", lookup_expr="iexact")
    hotel = filters.NumberFilter(field_name="hotel_id")
    room = filters.NumberFilter(field_name="room_id")
    start_date_after = filters.DateFilter(field_name="start_date", lookup_expr="gte")
    end_date_before = filters.DateFilter(field_name="end_date", lookup_expr="lte")

    class Meta:
        model = Booking
        fields = ["payment_status", "settlement_state", "hotel", "room"]
