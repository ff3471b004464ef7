from __future__ import annotations

import logging
import uuid
from typing import Iterable

from django.db.models import F
from django.utils import timezone

from .models import Product

logger = logging.getLogger(__name__)


def get_product(*, product_id: uuid.UUID) -> Product | None:
    return Product.objects.filter(id=product_id, is_active=True).first()


def get_products(*, product_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, Product]:
    ids = list(product_ids)
    if not ids:
        return {}
    return {p.id: p for p in Product.objects.filter(id__in=ids, is_active=True)}


def decrement_stock(*, product_id: uuid.UUID, amount: int) -> bool:
    """Atomically take ``amount`` units off a product's stock.

    Returns False (and changes nothing) when the product is missing or the
    remaining stock would go negative.
    """
    amount = int(amount)
    if amount <= 0:
        return True
    updated = Product.objects.filter(
        id=product_id, is_active=True, stock__gte=amount
    ).update(stock=F("stock") - amount, updated_at=timezone.now())
    if not updated:
        logger.info(
            "Stock decrement refused",
            extra={"product_id": str(product_id), "amount": amount},
        )
    return bool(updated)


def restore_stock(*, product_id: uuid.UUID, amount: int) -> None:
    amount = int(amount)
    if amount <= 0:
        return
    Product.objects.filter(id=product_id).update(
        stock=F("stock") + amount, updated_at=timezone.now()
    )
