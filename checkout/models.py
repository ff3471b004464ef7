from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings
from django.db import models


def _default_currency() -> str:
    return getattr(settings, "CART_DEFAULT_CURRENCY", "ARS")


class Cart(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="cart",
    )
    currency = models.CharField(max_length=3, default=_default_currency)

    # Undiscounted total at the last write. Reads always recompute from the catalog.
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"cart:user:{self.user_id}"


class CartItem(models.Model):
    cart = models.ForeignKey(Cart, on_delete=models.CASCADE, related_name="items")

    # Plain reference: the product may be deleted from the catalog while still in a cart.
    product_id = models.UUIDField()
    quantity = models.PositiveIntegerField(default=1)

    # Catalog price at last sync. Not authoritative.
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["cart", "product_id"], name="uniq_cart_product"),
            models.CheckConstraint(check=models.Q(quantity__gte=1), name="chk_cart_quantity_gte_1"),
        ]
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"cart:{self.cart_id} product:{self.product_id} x{self.quantity}"


class Order(models.Model):
    class Status(models.TextChoices):
        PENDING = "pending", "Pending"
        PROCESSING = "processing", "Processing"
        SHIPPED = "shipped", "Shipped"
        DELIVERED = "delivered", "Delivered"
        CANCELLED = "cancelled", "Cancelled"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    # Gateway payment id. Unique so a replayed confirmation cannot create a second order.
    payment_id = models.CharField(max_length=80, blank=True, default="")

    currency = models.CharField(max_length=3, default=_default_currency)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    discount_total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))

    # Shipping address snapshot (copied from accounts.ShippingInfo)
    shipping_recipient_name = models.CharField(max_length=200, blank=True, default="")
    shipping_phone_number = models.CharField(max_length=32, blank=True, default="")
    shipping_document_number = models.CharField(max_length=32, blank=True, default="")
    shipping_street = models.CharField(max_length=255, blank=True, default="")
    shipping_street_number = models.CharField(max_length=32, blank=True, default="")
    shipping_apartment = models.CharField(max_length=32, blank=True, default="")
    shipping_city = models.CharField(max_length=120, blank=True, default="")
    shipping_state = models.CharField(max_length=120, blank=True, default="")
    shipping_postal_code = models.CharField(max_length=32, blank=True, default="")
    shipping_country = models.CharField(max_length=120, blank=True, default="")
    shipping_additional_notes = models.TextField(blank=True, default="")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["user", "-created_at"], name="order_user_created_idx"),
            models.Index(fields=["status", "-created_at"], name="order_status_created_idx"),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["payment_id"],
                condition=~models.Q(payment_id=""),
                name="uniq_order_payment_id",
            )
        ]
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"order:{self.id} user:{self.user_id} {self.status}"

    def recalculate_totals(self) -> None:
        subtotal = Decimal("0.00")
        discount = Decimal("0.00")
        for ln in self.lines.all():
            subtotal += Decimal(ln.subtotal)
            discount += Decimal(ln.discount)
        self.subtotal = subtotal
        self.discount_total = discount
        self.total = subtotal - discount


class OrderLine(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="lines")

    product_id = models.UUIDField()
    name = models.CharField(max_length=255)

    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    quantity = models.PositiveIntegerField(default=1)

    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2)

    applied_promotion_id = models.UUIDField(null=True, blank=True)

    class Meta:
        ordering = ["id"]

    def save(self, *args, **kwargs):
        self.subtotal = Decimal(self.unit_price) * int(self.quantity)
        self.total = Decimal(self.subtotal) - Decimal(self.discount or 0)
        return super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"order:{self.order_id} {self.name} x{self.quantity}"


class PaymentIntent(models.Model):
    class Provider(models.TextChoices):
        MERCADOPAGO = "mercadopago", "Mercado Pago"

    class Status(models.TextChoices):
        PREFERENCE_CREATED = "preference_created", "Preference created"
        CONFIRMED = "confirmed", "Confirmed"
        REJECTED = "rejected", "Rejected"
        PENDING = "pending", "Pending"
        FAILED = "failed", "Failed"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payment_intents",
    )
    order = models.OneToOneField(
        Order,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="payment_intent",
    )
    provider = models.CharField(max_length=20, choices=Provider.choices, default=Provider.MERCADOPAGO)
    status = models.CharField(
        max_length=20, choices=Status.choices, default=Status.PREFERENCE_CREATED
    )

    currency = models.CharField(max_length=3, default=_default_currency)
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    reference = models.CharField(max_length=512, db_index=True)
    preference_id = models.CharField(max_length=120, blank=True, default="")
    payment_id = models.CharField(max_length=80, blank=True, default="")
    redirect_url = models.URLField(max_length=1000, blank=True, default="")

    raw_request = models.JSONField(default=dict, blank=True)
    raw_response = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["provider", "status", "-created_at"], name="pi_provider_status_idx"),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"payment:{self.provider}:{self.status} user:{self.user_id}"
