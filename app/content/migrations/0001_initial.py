import uuid

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("creators", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Content",
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
                ("text", models.TextField(blank=True, default="")),
                (
                    "visibility",
                    models.CharField(
                        choices=[("public", "Public"), ("subscribers", "Subscribers only"), ("ppv", "Pay per view")],
                        db_index=True,
                        default="subscribers",
                        max_length=20,
                    ),
                ),
                (
                    "ppv_price",
                    models.PositiveIntegerField(
                        blank=True, help_text="Whole-content unlock price in centavos", null=True
                    ),
                ),
                ("media", models.JSONField(blank=True, default=list)),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contents",
                        to="creators.creatorprofile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Content",
                "verbose_name_plural": "Contents",
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="MediaPack",
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
                ("name", models.CharField(max_length=120)),
                ("price", models.PositiveIntegerField(help_text="Price in centavos")),
                ("is_active", models.BooleanField(default=True)),
                ("sales_count", models.PositiveIntegerField(default=0)),
                ("media", models.JSONField(blank=True, default=list)),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="packs",
                        to="creators.creatorprofile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Media Pack",
                "verbose_name_plural": "Media Packs",
                "ordering": ["-created_at"],
            },
        ),
    ]
