import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Notification",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("updated_at", models.DateTimeField(auto_now=True, db_index=True)),
                (
                    "notification_type",
                    models.CharField(
                        choices=[
                            ("ticket_issued", "Ticket Issued"),
                            ("ticket_cancelled", "Ticket Cancelled"),
                            ("ticket_transferred", "Ticket Transferred"),
                            ("payment_failed", "Payment Failed"),
                            ("waitlist_spot_opened", "Waitlist Spot Opened"),
                            ("waitlist_hold_expired", "Waitlist Hold Expired"),
                        ],
                        db_index=True,
                        max_length=50,
                    ),
                ),
                ("title", models.CharField(blank=True, default="", help_text="Rendered notification title", max_length=255)),
                ("body", models.TextField(blank=True, default="", help_text="Rendered notification body")),
                ("context", models.JSONField(blank=True, default=dict)),
                (
                    "delivery_status",
                    models.CharField(
                        choices=[("pending", "Pending"), ("sent", "Sent"), ("failed", "Failed")],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("delivered_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, default="")),
                ("read_at", models.DateTimeField(blank=True, db_index=True, null=True)),
                (
                    "user",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="notifications",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["user", "notification_type", "created_at"], name="notif_user_type_created_idx"),
                    models.Index(fields=["user", "read_at"], name="notif_user_read_idx"),
                ],
            },
        ),
    ]
