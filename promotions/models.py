from __future__ import annotations

import uuid

from django.db import models


class Promotion(models.Model):
    class Type(models.TextChoices):
        NXN = "NXN", "Buy N get M"
        PERCENT_SECOND = "PERCENT_SECOND", "Percent off every second unit"
        PERCENTAGE = "PERCENTAGE", "Percentage"
        FIXED = "FIXED", "Fixed amount per unit"
        BUNDLE = "BUNDLE", "Bundle"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default="")
    type = models.CharField(max_length=20, choices=Type.choices)

    # NXN
    buy_quantity = models.PositiveIntegerField(null=True, blank=True)
    get_quantity = models.PositiveIntegerField(null=True, blank=True)

    # PERCENTAGE / PERCENT_SECOND
    discount_percentage = models.DecimalField(
        max_digits=5, decimal_places=2, null=True, blank=True
    )

    # FIXED (per unit)
    discount_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )

    start_at = models.DateTimeField()
    end_at = models.DateTimeField()

    image_url = models.URLField(max_length=500, blank=True, default="")

    products = models.ManyToManyField(
        "catalog.Product",
        related_name="promotions",
        help_text="Products eligible for this promotion.",
    )

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]
        indexes = [
            models.Index(fields=["type", "is_active"], name="promo_type_active_idx"),
            models.Index(fields=["is_active", "start_at", "end_at"], name="promo_active_window_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                check=models.Q(start_at__lt=models.F("end_at")),
                name="chk_promotion_start_before_end",
            ),
            models.CheckConstraint(
                check=models.Q(discount_percentage__isnull=True)
                | models.Q(discount_percentage__gte=0, discount_percentage__lte=100),
                name="chk_promotion_percentage_0_100",
            ),
            models.CheckConstraint(
                check=models.Q(discount_amount__isnull=True) | models.Q(discount_amount__gte=0),
                name="chk_promotion_amount_gte_0",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.type}: {self.title}"
