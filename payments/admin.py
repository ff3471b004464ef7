from __future__ import annotations

from django.contrib import admin

from .models import MercadoPagoConfig


@admin.register(MercadoPagoConfig)
class MercadoPagoConfigAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "is_active",
        "api_base_url",
        "timeout_seconds",
        "updated_at",
    )
    list_filter = ("is_active",)
    ordering = ("-id",)
    readonly_fields = ("created_at", "updated_at")
