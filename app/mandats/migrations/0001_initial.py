import uuid

import django.db.models.deletion
import django.utils.timezone
import django_fsm
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("shops", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Mandat",
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
                    "status",
                    django_fsm.FSMField(
                        choices=[("active", "Active"), ("completed", "Completed")],
                        default="active",
                        max_length=50,
                        protected=True,
                    ),
                ),
                ("start_time", models.DateTimeField(default=django.utils.timezone.now)),
                ("end_time", models.DateTimeField(blank=True, null=True)),
                ("initial_stock_value", models.BigIntegerField(default=0)),
                ("final_stock_value", models.BigIntegerField(blank=True, null=True)),
                ("final_benefice", models.BigIntegerField(blank=True, null=True)),
            ],
            options={
                "ordering": ["-start_time"],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("status", "active")),
                        fields=("status",),
                        name="single_active_mandat",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="MandatShop",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
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
                ("initial_stock_value", models.BigIntegerField(default=0)),
                ("final_stock_value", models.BigIntegerField(blank=True, null=True)),
                ("sales", models.BigIntegerField(blank=True, null=True)),
                ("expenses", models.BigIntegerField(blank=True, null=True)),
                ("benefice", models.BigIntegerField(blank=True, null=True)),
                (
                    "mandat",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="shops",
                        to="mandats.mandat",
                    ),
                ),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="mandat_figures",
                        to="shops.shop",
                    ),
                ),
            ],
            options={
                "ordering": ["shop__name"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("mandat", "shop"), name="unique_mandat_shop"
                    )
                ],
            },
        ),
    ]
