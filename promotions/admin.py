from __future__ import annotations

from django.contrib import admin

from .models import Promotion


@admin.register(Promotion)
class PromotionAdmin(admin.ModelAdmin):
    list_display = (
        "title",
        "type",
        "is_active",
        "discount_percentage",
        "discount_amount",
        "buy_quantity",
        "get_quantity",
        "start_at",
        "end_at",
    )
    list_filter = ("type", "is_active")
    search_fields = ("title", "description")
    filter_horizontal = ("products",)
    readonly_fields = ("id", "created_at", "updated_at")
    fieldsets = (
        (None, {"fields": ("id", "title", "description", "type", "is_active", "start_at", "end_at")}),
        ("Applies to", {"fields": ("products",)}),
        (
            "Discount",
            {
                "fields": (
                    "buy_quantity",
                    "get_quantity",
                    "discount_percentage",
                    "discount_amount",
                )
            },
        ),
        ("Media", {"fields": ("image_url",)}),
        ("Meta", {"fields": ("created_at", "updated_at")}),
    )
