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
            name="CreatorProfile",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
                ),
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        help_text="Unique identifier for this record",
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("display_name", models.CharField(max_length=100)),
                (
                    "subscription_price",
                    models.PositiveIntegerField(
                        default=0,
                        help_text="Monthly subscription price in centavos (0 = subscriptions disabled)",
                    ),
                ),
                ("is_pro", models.BooleanField(default=False)),
                ("pro_expires_at", models.DateTimeField(blank=True, null=True)),
                (
                    "total_earnings",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Lifetime payee share in centavos (never negative)"
                    ),
                ),
                ("subscriber_count", models.PositiveIntegerField(default=0)),
                ("pix_key", models.CharField(blank=True, default="", max_length=140)),
                (
                    "pix_key_type",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("CPF", "CPF"),
                            ("CNPJ", "CNPJ"),
                            ("EMAIL", "Email"),
                            ("PHONE", "Phone"),
                            ("EVP", "Random key"),
                        ],
                        default="",
                        max_length=10,
                    ),
                ),
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="creator_profile",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Creator Profile",
                "verbose_name_plural": "Creator Profiles",
                "ordering": ["-created_at"],
            },
        ),
    ]
