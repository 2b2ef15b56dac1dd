import uuid

import django.db.models.deletion
import django_fsm
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("accounts", "0001_initial"),
        ("shops", "0001_initial"),
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Transaction",
            fields=[
                (
                    "created_at",
                    models.DateTimeField(
                        auto_now_add=True,
                        db_index=True,
                        help_text="Timestamp when this record was created",
                    ),
                ),
                (
                    "updated_at",
                    models.DateTimeField(
                        auto_now=True,
                        help_text="Timestamp when this record was last modified",
                    ),
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
                (
                    "amount",
                    models.BigIntegerField(help_text="Signed amount in cents (negative = debit)"),
                ),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("topup", "Top-up"),
                            ("purchase", "Purchase"),
                            ("transfer", "Transfer"),
                            ("adjustment", "Adjustment"),
                            ("refund", "Refund"),
                        ],
                        db_index=True,
                        max_length=20,
                    ),
                ),
                (
                    "status",
                    django_fsm.FSMField(
                        choices=[
                            ("pending", "Pending"),
                            ("completed", "Completed"),
                            ("failed", "Failed"),
                        ],
                        db_index=True,
                        default="pending",
                        help_text="Settlement state (managed by FSM)",
                        max_length=50,
                        protected=True,
                    ),
                ),
                (
                    "wallet_source",
                    models.CharField(
                        choices=[("personal", "Personal"), ("family", "Fams")],
                        default="personal",
                        max_length=20,
                    ),
                ),
                (
                    "product_id",
                    models.UUIDField(
                        blank=True,
                        help_text="External catalog product reference",
                        null=True,
                    ),
                ),
                (
                    "quantity",
                    models.DecimalField(blank=True, decimal_places=3, max_digits=10, null=True),
                ),
                ("group_id", models.UUIDField(blank=True, db_index=True, null=True)),
                ("description", models.CharField(blank=True, max_length=255)),
                (
                    "payment_provider",
                    models.CharField(
                        blank=True,
                        help_text="Slug of the provider used for this top-up",
                        max_length=50,
                    ),
                ),
                (
                    "payment_provider_id",
                    models.CharField(
                        blank=True,
                        help_text="Provider reference; settlement idempotency key",
                        max_length=255,
                        null=True,
                        unique=True,
                    ),
                ),
                ("completed_at", models.DateTimeField(blank=True, null=True)),
                ("failure_reason", models.CharField(blank=True, max_length=255)),
                (
                    "event",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="shops.event",
                    ),
                ),
                (
                    "fams",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="accounts.fams",
                    ),
                ),
                (
                    "issuer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="issued_transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "receiver_user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="received_transfers",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "reverses",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="reversal",
                        to="ledger.transaction",
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="shops.shop",
                    ),
                ),
                (
                    "target_user",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
                "indexes": [
                    models.Index(
                        fields=["target_user", "status"],
                        name="ledger_tx_user_status_idx",
                    ),
                    models.Index(
                        fields=["fams", "status"],
                        name="ledger_tx_fams_status_idx",
                    ),
                    models.Index(
                        fields=["shop", "type", "created_at"],
                        name="ledger_tx_shop_window_idx",
                    ),
                    models.Index(
                        fields=["event", "type"],
                        name="ledger_tx_event_type_idx",
                    ),
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount", 0), _negated=True),
                        name="ledger_transaction_amount_non_zero",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(
                            models.Q(("fams__isnull", False), ("wallet_source", "family")),
                            models.Q(
                                ("fams__isnull", True),
                                ("target_user__isnull", False),
                                ("wallet_source", "personal"),
                            ),
                            _connector="OR",
                        ),
                        name="ledger_transaction_wallet_target",
                    ),
                ],
            },
        ),
    ]
