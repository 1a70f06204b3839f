import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.conf import settings
from django.db import migrations, models


def _timestamps():
    return [
        (
            "created_at",
            models.DateTimeField(auto_now_add=True, db_index=True, help_text="Timestamp when this record was created"),
        ),
        (
            "updated_at",
            models.DateTimeField(auto_now=True, help_text="Timestamp when this record was last modified"),
        ),
    ]


def _uuid_pk():
    return (
        "id",
        models.UUIDField(
            default=uuid.uuid4,
            editable=False,
            help_text="Unique identifier for this record",
            primary_key=True,
            serialize=False,
        ),
    )


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("content", "0001_initial"),
        ("creators", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Subscription",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "price_paid",
                    models.PositiveBigIntegerField(
                        help_text="Price of the last payment for this subscription, in centavos"
                    ),
                ),
                ("duration_months", models.PositiveSmallIntegerField(default=1)),
                ("starts_at", models.DateTimeField(default=django.utils.timezone.now)),
                ("expires_at", models.DateTimeField(db_index=True)),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("active", "Active"),
                            ("cancelled", "Cancelled"),
                            ("expired", "Expired"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("cancelled_at", models.DateTimeField(blank=True, null=True)),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="subscriptions",
                        to="creators.creatorprofile",
                    ),
                ),
                (
                    "subscriber",
                    models.ForeignKey(
                        help_text="User holding the subscription",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="subscriptions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "verbose_name": "Subscription",
                "verbose_name_plural": "Subscriptions",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["subscriber", "status"], name="sub_subscriber_status_idx"),
                    models.Index(fields=["creator", "status"], name="sub_creator_status_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "active")),
                        fields=("subscriber", "creator"),
                        name="subscription_one_active_per_pair",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Payment",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("subscription", "Subscription"),
                            ("ppv", "Pay per view"),
                            ("tip", "Tip"),
                            ("pro_plan", "Pro plan"),
                            ("pack", "Media pack"),
                        ],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                ("amount", models.PositiveBigIntegerField(help_text="Product price before fees, in centavos")),
                (
                    "gateway_fee",
                    models.PositiveBigIntegerField(
                        default=0, help_text="PIX fee passed through to the payer, in centavos"
                    ),
                ),
                (
                    "platform_fee",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Platform share of the product price, in centavos"
                    ),
                ),
                (
                    "payee_share",
                    models.PositiveBigIntegerField(
                        default=0, help_text="Creator share of the product price, in centavos"
                    ),
                ),
                (
                    "metadata",
                    models.JSONField(
                        blank=True, default=dict, help_text="Kind-specific payload, read through payments.types"
                    ),
                ),
                ("description", models.CharField(blank=True, default="", max_length=255)),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("confirmed", "Confirmed"),
                            ("failed", "Failed"),
                            ("expired", "Expired"),
                            ("refunded", "Refunded"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payment (managed by FSM)",
                        max_length=50,
                    ),
                ),
                (
                    "gateway_charge_id",
                    models.CharField(
                        blank=True,
                        help_text="Charge id at the PIX gateway (pay_xxx)",
                        max_length=100,
                        null=True,
                        unique=True,
                    ),
                ),
                ("pix_qr_payload", models.TextField(blank=True, default="", help_text="PIX copy-and-paste code")),
                ("pix_qr_image", models.TextField(blank=True, default="", help_text="Base64 encoded QR code image")),
                ("pix_expires_at", models.DateTimeField(blank=True, null=True)),
                ("paid_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                ("expired_at", models.DateTimeField(blank=True, null=True)),
                ("refunded_at", models.DateTimeField(blank=True, null=True)),
                (
                    "failure_reason",
                    models.TextField(blank=True, help_text="Detailed reason if the payment failed", null=True),
                ),
                (
                    "content",
                    models.ForeignKey(
                        blank=True,
                        help_text="Content unlocked or tipped from",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to="content.content",
                    ),
                ),
                (
                    "creator",
                    models.ForeignKey(
                        blank=True,
                        help_text="Creator receiving the payee share",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="received_payments",
                        to="creators.creatorprofile",
                    ),
                ),
                (
                    "payer",
                    models.ForeignKey(
                        help_text="User making the payment",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payments",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "subscription",
                    models.ForeignKey(
                        blank=True,
                        help_text="Subscription granted or extended by this payment",
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="payments",
                        to="payments.subscription",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payment",
                "verbose_name_plural": "Payments",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["payer", "status"], name="payment_payer_status_idx"),
                    models.Index(fields=["payer", "created_at"], name="payment_payer_created_idx"),
                    models.Index(fields=["creator", "status"], name="payment_creator_status_idx"),
                    models.Index(fields=["status", "created_at"], name="payment_status_created_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payment_amount_positive"),
                    models.CheckConstraint(
                        condition=models.Q(
                            ("amount", models.F("platform_fee") + models.F("payee_share"))
                        ),
                        name="payment_split_adds_up",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("creator__isnull", False), ("payee_share", 0), _connector="OR"),
                        name="payment_no_payee_no_share",
                    ),
                ],
            },
        ),
        migrations.AddField(
            model_name="subscription",
            name="payment",
            field=models.ForeignKey(
                blank=True,
                help_text="Payment that created this subscription",
                null=True,
                on_delete=django.db.models.deletion.SET_NULL,
                related_name="created_subscriptions",
                to="payments.payment",
            ),
        ),
        migrations.CreateModel(
            name="Payout",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                ("amount", models.PositiveBigIntegerField(help_text="Payout amount in centavos")),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Current state of the payout (managed by FSM)",
                        max_length=50,
                    ),
                ),
                ("pix_key", models.CharField(blank=True, default="", max_length=140)),
                ("pix_key_type", models.CharField(blank=True, default="", max_length=10)),
                (
                    "gateway_transfer_id",
                    models.CharField(
                        blank=True,
                        help_text="Transfer id at the PIX gateway",
                        max_length=100,
                        null=True,
                        unique=True,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("failed_at", models.DateTimeField(blank=True, null=True)),
                (
                    "failure_reason",
                    models.TextField(blank=True, help_text="Detailed reason if the payout failed", null=True),
                ),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="payouts",
                        to="creators.creatorprofile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Payout",
                "verbose_name_plural": "Payouts",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["creator", "status"], name="payout_creator_status_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="payout_amount_positive"),
                ],
            },
        ),
        migrations.CreateModel(
            name="WebhookEvent",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                (
                    "event_key",
                    models.CharField(
                        help_text="Gateway event id or payload hash - unique for idempotency",
                        max_length=255,
                        unique=True,
                    ),
                ),
                (
                    "event_type",
                    models.CharField(
                        db_index=True,
                        help_text="Gateway event type (e.g., 'PAYMENT_CONFIRMED')",
                        max_length=100,
                    ),
                ),
                ("payload", models.JSONField(help_text="Full notification body (JSON)")),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("processing", "Processing"),
                            ("processed", "Processed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                    ),
                ),
                ("processed_at", models.DateTimeField(blank=True, null=True)),
                ("error_message", models.TextField(blank=True, null=True)),
                (
                    "retry_count",
                    models.PositiveSmallIntegerField(default=0, help_text="Number of processing attempts"),
                ),
            ],
            options={
                "verbose_name": "Webhook Event",
                "verbose_name_plural": "Webhook Events",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
                    models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Balance",
            fields=[
                *_timestamps(),
                _uuid_pk(),
                ("available", models.BigIntegerField(default=0, help_text="Centavos available for payout")),
                ("pending", models.BigIntegerField(default=0, help_text="Centavos held back from payout")),
                (
                    "creator",
                    models.OneToOneField(
                        help_text="Creator owning this balance",
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balance",
                        to="creators.creatorprofile",
                    ),
                ),
            ],
            options={
                "verbose_name": "Balance",
                "verbose_name_plural": "Balances",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("available__gte", 0)), name="balance_available_non_negative"
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("pending__gte", 0)), name="balance_pending_non_negative"
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="BalanceEntry",
            fields=[
                _uuid_pk(),
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True, db_index=True, help_text="Timestamp when this entry was recorded"
                    ),
                ),
                (
                    "entry_type",
                    models.CharField(
                        choices=[
                            ("credit", "Credit"),
                            ("debit", "Debit"),
                            ("payout", "Payout"),
                            ("payout_reversal", "Payout Reversal"),
                        ],
                        max_length=30,
                    ),
                ),
                ("amount", models.PositiveBigIntegerField(help_text="Amount in centavos (always positive)")),
                (
                    "idempotency_key",
                    models.CharField(
                        help_text="Unique key to prevent duplicate entries", max_length=255, unique=True
                    ),
                ),
                (
                    "creator",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balance_entries",
                        to="creators.creatorprofile",
                    ),
                ),
                (
                    "payment",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balance_entries",
                        to="payments.payment",
                    ),
                ),
                (
                    "payout",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balance_entries",
                        to="payments.payout",
                    ),
                ),
            ],
            options={
                "verbose_name": "Balance Entry",
                "verbose_name_plural": "Balance Entries",
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(fields=["creator", "created_at"], name="balance_entry_creator_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(condition=models.Q(("amount__gt", 0)), name="balance_entry_amount_positive"),
                ],
            },
        ),
    ]
