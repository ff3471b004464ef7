import uuid

from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("catalog", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Promotion",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ("title", models.CharField(max_length=200)),
                ("description", models.TextField(blank=True, default="")),
                (
                    "type",
                    models.CharField(
                        choices=[
                            ("NXN", "Buy N get M"),
                            ("PERCENT_SECOND", "Percent off every second unit"),
                            ("PERCENTAGE", "Percentage"),
                            ("FIXED", "Fixed amount per unit"),
                            ("BUNDLE", "Bundle"),
                        ],
                        max_length=20,
                    ),
                ),
                ("buy_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("get_quantity", models.PositiveIntegerField(blank=True, null=True)),
                ("discount_percentage", models.DecimalField(blank=True, decimal_places=2, max_digits=5, null=True)),
                ("discount_amount", models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ("start_at", models.DateTimeField()),
                ("end_at", models.DateTimeField()),
                ("image_url", models.URLField(blank=True, default="", max_length=500)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "products",
                    models.ManyToManyField(
                        help_text="Products eligible for this promotion.",
                        related_name="promotions",
                        to="catalog.product",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at", "id"],
                "indexes": [
                    models.Index(fields=["type", "is_active"], name="promo_type_active_idx"),
                    models.Index(fields=["is_active", "start_at", "end_at"], name="promo_active_window_idx"),
                ],
                "constraints": [
                    models.CheckConstraint(
                        check=models.Q(("start_at__lt", models.F("end_at"))),
                        name="chk_promotion_start_before_end",
                    ),
                    models.CheckConstraint(
                        check=models.Q(
                            ("discount_percentage__isnull", True),
                            models.Q(("discount_percentage__gte", 0), ("discount_percentage__lte", 100)),
                            _connector="OR",
                        ),
                        name="chk_promotion_percentage_0_100",
                    ),
                    models.CheckConstraint(
                        check=models.Q(
                            ("discount_amount__isnull", True),
                            ("discount_amount__gte", 0),
                            _connector="OR",
                        ),
                        name="chk_promotion_amount_gte_0",
                    ),
                ],
            },
        ),
    ]
