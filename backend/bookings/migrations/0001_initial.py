import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("hotels", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Booking",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("start_date", models.DateField()),
                (
                    "end_date",
                    models.DateField(help_text="Check-out date, must be after start_date."),
                ),
                ("breakfast_included", models.BooleanField(default=False)),
                ("total_price", models.DecimalField(decimal_places=2, max_digits=12)),
                ("currency", models.CharField(default="usd", max_length=8)),
                (
                    "payment_status",
                    models.BooleanField(
                        default=False,
                        help_text=(
                            "True once the processor confirmed payment; "
                            "only paid bookings hold dates."
                        ),
                    ),
                ),
                (
                    "payment_intent_id",
                    models.CharField(
                        blank=True,
                        default="",
                        help_text="Stripe PaymentIntent ID authorizing this booking.",
                        max_length=120,
                    ),
                ),
                (
                    "settlement_state",
                    models.CharField(
                        choices=[
                            ("draft", "draft"),
                            ("authorizing", "authorizing"),
                            ("awaiting_confirmation", "awaiting confirmation"),
                            ("confirmed", "confirmed"),
                            ("rejected", "rejected"),
                            ("failed", "failed"),
                        ],
                        default="awaiting_confirmation",
                        max_length=32,
                    ),
                ),
                (
                    "failure_reason",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("", "none"),
                            ("payment_failed", "payment failed"),
                            ("late_conflict", "dates taken before payment settled"),
                        ],
                        default="",
                        max_length=32,
                    ),
                ),
                ("failure_message", models.TextField(blank=True, default="")),
                ("booked_at", models.DateTimeField(auto_now_add=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "hotel",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings",
                        to="hotels.hotel",
                    ),
                ),
                (
                    "hotel_owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings_as_hotel_owner",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "room",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings",
                        to="hotels.room",
                    ),
                ),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="bookings",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-booked_at"],
                "indexes": [
                    models.Index(
                        fields=["room", "start_date", "end_date"],
                        name="bookings_room_dates_idx",
                    ),
                    models.Index(
                        fields=["user", "payment_status"],
                        name="bookings_user_paid_idx",
                    ),
                    models.Index(
                        fields=["hotel_owner", "payment_status"],
                        name="bookings_owner_paid_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("payment_intent_id", ""), _negated=True),
                        fields=("payment_intent_id",),
                        name="bookings_unique_payment_intent",
                    ),
                ],
            },
        ),
    ]
