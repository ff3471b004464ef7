from __future__ import annotations

from django.db import models


class MercadoPagoConfig(models.Model):
    """Gateway credentials stored in the database.

    The newest active row wins over the MERCADOPAGO_* environment settings.
    """

    is_active = models.BooleanField(default=True)

    access_token = models.CharField(max_length=255)
    api_base_url = models.URLField(blank=True, default="")
    timeout_seconds = models.PositiveSmallIntegerField(default=5)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-id"]
        verbose_name = "Mercado Pago config"
        verbose_name_plural = "Mercado Pago config"

    def __str__(self) -> str:
        return f"mercadopago:{self.id} active={self.is_active}"
