from __future__ import annotations

from django.contrib import admin

from .models import Cart, CartItem, Order, OrderLine, PaymentIntent


class CartItemInline(admin.TabularInline):
    model = CartItem
    extra = 0
    fields = ("product_id", "quantity", "unit_price", "updated_at")
    readonly_fields = ("updated_at",)


@admin.register(Cart)
class CartAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "currency", "total", "updated_at")
    search_fields = ("user__email",)
    readonly_fields = ("total", "created_at", "updated_at")
    inlines = (CartItemInline,)


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("id", "cart", "product_id", "quantity", "unit_price", "updated_at")
    search_fields = ("cart__user__email", "product_id")


class OrderLineInline(admin.TabularInline):
    model = OrderLine
    extra = 0
    fields = (
        "product_id",
        "name",
        "unit_price",
        "quantity",
        "subtotal",
        "discount",
        "total",
        "applied_promotion_id",
    )
    readonly_fields = ("subtotal", "total")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("id", "user", "status", "total", "currency", "payment_id", "created_at")
    list_filter = ("status",)
    search_fields = ("id", "user__email", "payment_id")
    readonly_fields = ("created_at", "updated_at", "subtotal", "discount_total", "total")
    fieldsets = (
        (None, {"fields": ("user", "status", "payment_id", "currency")}),
        ("Totals", {"fields": ("subtotal", "discount_total", "total")}),
        (
            "Shipping address",
            {
                "fields": (
                    "shipping_recipient_name",
                    "shipping_phone_number",
                    "shipping_document_number",
                    "shipping_street",
                    "shipping_street_number",
                    "shipping_apartment",
                    "shipping_city",
                    "shipping_state",
                    "shipping_postal_code",
                    "shipping_country",
                    "shipping_additional_notes",
                )
            },
        ),
        ("Dates", {"fields": ("created_at", "updated_at")}),
    )
    inlines = (OrderLineInline,)

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        order = form.instance
        order.recalculate_totals()
        order.save(update_fields=["subtotal", "discount_total", "total", "updated_at"])


@admin.register(PaymentIntent)
class PaymentIntentAdmin(admin.ModelAdmin):
    list_display = ("id", "provider", "status", "user", "order", "amount", "created_at")
    list_filter = ("provider", "status")
    search_fields = ("order__id", "user__email", "preference_id", "payment_id", "reference")
    readonly_fields = ("created_at", "updated_at", "raw_request", "raw_response")
