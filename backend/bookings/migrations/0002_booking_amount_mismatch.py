from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ("bookings", "0001_initial"),
    ]

    operations = [
        migrations.AlterField(
            model_name="booking",
            name="failure_reason",
            field=models.CharField(
                blank=True,
                choices=[
                    ("", "none"),
                    ("payment_failed", "payment failed"),
                    ("late_conflict", "dates taken before payment settled"),
                    ("amount_mismatch", "paid amount differs from the booking price"),
                ],
                default="",
                max_length=32,
            ),
        ),
    ]
