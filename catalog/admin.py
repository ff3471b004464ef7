from __future__ import annotations

from django.contrib import admin

from .models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ("name", "price", "stock", "is_active", "updated_at")
    list_filter = ("is_active",)
    search_fields = ("name", "id")
    readonly_fields = ("id", "created_at", "updated_at")
    ordering = ("name",)

    fieldsets = (
        (None, {"fields": ("id", "name", "description", "is_active")}),
        ("Pricing & stock", {"fields": ("price", "stock")}),
        ("Dates", {"fields": ("created_at", "updated_at")}),
    )
