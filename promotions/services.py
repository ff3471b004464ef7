from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from api.errors import BadRequest, Conflict, NotFound, ValidationFailed
from api.validation import (
    parse_date,
    quantize_money,
    validate_id,
    validate_ids,
    validate_number,
    validate_percentage,
    validate_quantity,
    validate_window,
)
from catalog.models import Product

from .models import Promotion

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")

NXN_MODE_PAIRWISE = "pairwise"
NXN_MODE_PARAMETERIZED = "parameterized"

TYPE_ALL = "ALL"


@dataclass(frozen=True)
class LineInput:
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    name: str = ""


@dataclass(frozen=True)
class PricedLineItem:
    product_id: uuid.UUID
    name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    discount: Decimal = ZERO
    discounted_subtotal: Decimal = ZERO
    applied_promotion_id: uuid.UUID | None = None

    def as_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "subtotal": self.subtotal,
            "discount": self.discount,
            "discounted_subtotal": self.discounted_subtotal,
            "applied_promotion_id": str(self.applied_promotion_id)
            if self.applied_promotion_id
            else None,
        }


@dataclass
class DiscountResult:
    items: list[PricedLineItem] = field(default_factory=list)
    total_discount: Decimal = ZERO


def promotion_types() -> list[str]:
    return [t.value for t in Promotion.Type]


def _validate_type(value) -> str:
    t = (str(value) if value is not None else "").strip().upper()
    if t not in promotion_types():
        raise ValidationFailed(f"type must be one of: {', '.join(promotion_types())}")
    return t


def _active_q(*, now: datetime):
    return {"is_active": True, "start_at__lte": now, "end_at__gte": now}


# --- Promotion store -------------------------------------------------------


def get_active_promotions(*, product_id, now: datetime | None = None) -> list[Promotion]:
    """Promotions the product is eligible for that are active right now.

    Ordered by creation time, oldest first.
    """
    pid = validate_id(product_id, "product_id")
    now = now or timezone.now()
    return list(
        Promotion.objects.filter(products__id=pid, **_active_q(now=now))
        .distinct()
        .order_by("created_at", "id")
    )


# --- Discount engine -------------------------------------------------------


def _nxn_free_units(*, promotion: Promotion, quantity: int) -> int:
    buy = int(promotion.buy_quantity or 0)
    get = int(promotion.get_quantity or 0)
    if buy <= 0 or get < 0:
        return 0

    mode = (getattr(settings, "PROMOTIONS_NXN_MODE", NXN_MODE_PAIRWISE) or "").strip().lower()
    if mode == NXN_MODE_PARAMETERIZED:
        group = buy + get
        return (quantity // group) * get

    # Pairwise: one free unit for every two units bought.
    if quantity < 2:
        return 0
    units_to_pay = math.ceil(quantity / 2)
    return quantity - units_to_pay


def _require_scheme_fields(promotion: Promotion) -> None:
    t = promotion.type
    if t == Promotion.Type.NXN:
        if promotion.buy_quantity is None or promotion.get_quantity is None:
            raise ValidationFailed("buy_quantity and get_quantity are required for NXN promotions")
    elif t in (Promotion.Type.PERCENTAGE, Promotion.Type.PERCENT_SECOND):
        if promotion.discount_percentage is None:
            raise ValidationFailed(
                "discount_percentage is required for PERCENTAGE and PERCENT_SECOND promotions"
            )
    elif t == Promotion.Type.FIXED:
        if promotion.discount_amount is None:
            raise ValidationFailed("discount_amount is required for FIXED promotions")


def calculate_discount(*, promotion: Promotion, quantity, unit_price) -> Decimal:
    """Discount a single promotion yields for ``quantity`` units at ``unit_price``."""
    quantity = validate_quantity(quantity)
    unit_price = validate_number(unit_price, "unit_price", allow_zero=True)
    _require_scheme_fields(promotion)

    t = promotion.type
    if t == Promotion.Type.PERCENTAGE:
        pct = Decimal(promotion.discount_percentage)
        discount = unit_price * quantity * pct / Decimal(100)
    elif t == Promotion.Type.NXN:
        discount = _nxn_free_units(promotion=promotion, quantity=quantity) * unit_price
    elif t == Promotion.Type.PERCENT_SECOND:
        discount = ZERO
        if quantity >= 2:
            pct = Decimal(promotion.discount_percentage)
            discount = (quantity // 2) * (unit_price * pct / Decimal(100))
    elif t == Promotion.Type.FIXED:
        discount = Decimal(promotion.discount_amount) * quantity
    else:
        # BUNDLE is reserved.
        discount = ZERO

    return quantize_money(discount)


def _coerce_line(item) -> LineInput:
    if isinstance(item, dict):
        pid = item.get("product_id")
        qty = item.get("quantity")
        price = item.get("unit_price")
        name = item.get("name") or ""
    else:
        pid = getattr(item, "product_id", None)
        qty = getattr(item, "quantity", None)
        price = getattr(item, "unit_price", None)
        name = getattr(item, "name", "") or ""
    return LineInput(
        product_id=validate_id(pid, "product_id"),
        quantity=validate_quantity(qty),
        unit_price=validate_number(price, "unit_price", allow_zero=True),
        name=str(name),
    )


def calculate_discount_for_cart_items(items: Iterable, *, now: datetime | None = None) -> DiscountResult:
    """Price each line with the best active promotion for its product.

    The highest discount wins. Candidates are evaluated oldest first and a
    later candidate replaces the current best on an exact tie, so ties go to
    the most recently created promotion. No writes are performed.
    """
    lines = [_coerce_line(i) for i in (items or [])]
    if not lines:
        raise BadRequest("items must be a non-empty list")

    now = now or timezone.now()
    result = DiscountResult()

    for line in lines:
        subtotal = quantize_money(line.unit_price * line.quantity)
        best = ZERO
        applied: Promotion | None = None

        for promotion in get_active_promotions(product_id=line.product_id, now=now):
            discount = calculate_discount(
                promotion=promotion, quantity=line.quantity, unit_price=line.unit_price
            )
            if discount >= best:
                best = discount
                applied = promotion

        if best <= 0:
            best = ZERO
            applied = None
        best = min(best, subtotal)

        result.items.append(
            PricedLineItem(
                product_id=line.product_id,
                name=line.name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=subtotal,
                discount=best,
                discounted_subtotal=subtotal - best,
                applied_promotion_id=applied.id if applied else None,
            )
        )
        result.total_discount += best

    result.total_discount = quantize_money(result.total_discount)
    return result


# --- Administration --------------------------------------------------------


def _validate_scheme(*, type_: str, buy_quantity, get_quantity, discount_percentage, discount_amount) -> dict:
    out: dict = {}
    if type_ == Promotion.Type.NXN:
        if buy_quantity is None or get_quantity is None:
            raise ValidationFailed("buy_quantity and get_quantity are required for NXN promotions")
        out["buy_quantity"] = validate_quantity(buy_quantity, "buy_quantity")
        if not isinstance(get_quantity, bool) and get_quantity == 0:
            out["get_quantity"] = 0
        else:
            out["get_quantity"] = validate_quantity(get_quantity, "get_quantity")
    elif type_ in (Promotion.Type.PERCENTAGE, Promotion.Type.PERCENT_SECOND):
        if discount_percentage is None:
            raise ValidationFailed(
                "discount_percentage is required for PERCENTAGE and PERCENT_SECOND promotions"
            )
        out["discount_percentage"] = validate_percentage(discount_percentage)
    elif type_ == Promotion.Type.FIXED:
        if discount_amount is None:
            raise ValidationFailed("discount_amount is required for FIXED promotions")
        out["discount_amount"] = quantize_money(
            validate_number(discount_amount, "discount_amount", allow_zero=True)
        )
    return out


def _resolve_products(product_ids) -> list[Product]:
    if product_ids is None or (not isinstance(product_ids, (str, bytes)) and len(product_ids) == 0):
        raise ValidationFailed("product_ids must be a non-empty list")
    ids = validate_ids(product_ids, "product_id")
    found = {p.id: p for p in Product.objects.filter(id__in=ids, is_active=True)}
    missing = [str(pid) for pid in ids if pid not in found]
    if missing:
        raise NotFound(f"Products not found: {', '.join(missing)}")
    return [found[pid] for pid in ids]


def _check_overlap(*, type_: str, product_ids: list[uuid.UUID], exclude_id=None) -> None:
    now = timezone.now()
    qs = Promotion.objects.filter(type=type_, products__id__in=product_ids, **_active_q(now=now))
    if exclude_id is not None:
        qs = qs.exclude(id=exclude_id)

    conflicting = (
        Promotion.products.through.objects.filter(
            promotion_id__in=qs.values("id"), product_id__in=product_ids
        )
        .values_list("product_id", flat=True)
        .distinct()
    )
    conflicting = sorted({str(pid) for pid in conflicting})
    if conflicting:
        raise Conflict(
            f"An active {type_} promotion already exists for products: {', '.join(conflicting)}"
        )


def create_promotion(*, data: dict) -> Promotion:
    if not data:
        raise ValidationFailed("Request body must not be empty")

    type_ = _validate_type(data.get("type"))
    title = (data.get("title") or "").strip()
    if not title:
        raise ValidationFailed("title is required")

    if not data.get("start_date") or not data.get("end_date"):
        raise ValidationFailed("start_date and end_date are required")
    start_at = parse_date(data.get("start_date"), "start_date")
    end_at = parse_date(data.get("end_date"), "end_date")
    validate_window(start_at, end_at)

    products = _resolve_products(data.get("product_ids"))
    scheme = _validate_scheme(
        type_=type_,
        buy_quantity=data.get("buy_quantity"),
        get_quantity=data.get("get_quantity"),
        discount_percentage=data.get("discount_percentage"),
        discount_amount=data.get("discount_amount"),
    )

    with transaction.atomic():
        _check_overlap(type_=type_, product_ids=[p.id for p in products])
        promotion = Promotion.objects.create(
            title=title,
            description=(data.get("description") or "").strip(),
            type=type_,
            start_at=start_at,
            end_at=end_at,
            image_url=(data.get("image_url") or "").strip(),
            is_active=bool(data.get("is_active", True)),
            **scheme,
        )
        promotion.products.set(products)

    logger.info("Promotion created", extra={"promotion_id": str(promotion.id), "type": type_})
    return promotion


def update_promotion(*, promotion_id, data: dict) -> Promotion:
    pid = validate_id(promotion_id)
    if not data:
        raise ValidationFailed("Request body must not be empty")

    with transaction.atomic():
        promotion = Promotion.objects.select_for_update().filter(id=pid).first()
        if promotion is None:
            raise NotFound("Promotion not found")

        type_ = _validate_type(data["type"]) if data.get("type") else promotion.type

        if "product_ids" in data and data["product_ids"] is not None:
            products = _resolve_products(data["product_ids"])
        else:
            products = list(promotion.products.all())

        def _pick(key: str):
            v = data.get(key)
            return v if v is not None else getattr(promotion, key)

        scheme = _validate_scheme(
            type_=type_,
            buy_quantity=_pick("buy_quantity"),
            get_quantity=_pick("get_quantity"),
            discount_percentage=_pick("discount_percentage"),
            discount_amount=_pick("discount_amount"),
        )

        start_at, end_at = promotion.start_at, promotion.end_at
        if data.get("start_date"):
            start_at = parse_date(data["start_date"], "start_date")
        if data.get("end_date"):
            end_at = parse_date(data["end_date"], "end_date")
        validate_window(start_at, end_at)

        _check_overlap(type_=type_, product_ids=[p.id for p in products], exclude_id=promotion.id)

        if data.get("title") is not None:
            title = (data["title"] or "").strip()
            if not title:
                raise ValidationFailed("title must not be empty")
            promotion.title = title
        if data.get("description") is not None:
            promotion.description = (data["description"] or "").strip()
        if data.get("image_url") is not None:
            promotion.image_url = (data["image_url"] or "").strip()
        if data.get("is_active") is not None:
            promotion.is_active = bool(data["is_active"])

        promotion.type = type_
        promotion.start_at = start_at
        promotion.end_at = end_at
        for k, v in scheme.items():
            setattr(promotion, k, v)
        promotion.save()
        promotion.products.set(products)

    return promotion


def delete_promotion(*, promotion_id) -> None:
    pid = validate_id(promotion_id)
    deleted, _ = Promotion.objects.filter(id=pid).delete()
    if not deleted:
        raise NotFound("Promotion not found")


def get_promotion(*, promotion_id) -> Promotion:
    pid = validate_id(promotion_id)
    promotion = Promotion.objects.prefetch_related("products").filter(id=pid).first()
    if promotion is None:
        raise NotFound("Promotion not found")
    return promotion


def list_promotions(
    *,
    start_date=None,
    end_date=None,
    product_id=None,
    type=None,
    min_discount_percentage=None,
    max_discount_percentage=None,
) -> list[Promotion]:
    qs = Promotion.objects.all()
    if start_date:
        qs = qs.filter(start_at__gte=parse_date(start_date, "start_date"))
    if end_date:
        qs = qs.filter(end_at__lte=parse_date(end_date, "end_date"))
    if product_id:
        qs = qs.filter(products__id=validate_id(product_id, "product_id"))
    if type:
        qs = qs.filter(type=_validate_type(type))
    if min_discount_percentage is not None:
        qs = qs.filter(
            discount_percentage__gte=validate_percentage(
                min_discount_percentage, "min_discount_percentage"
            )
        )
    if max_discount_percentage is not None:
        qs = qs.filter(
            discount_percentage__lte=validate_percentage(
                max_discount_percentage, "max_discount_percentage"
            )
        )
    return list(qs.distinct().prefetch_related("products").order_by("created_at", "id"))


def list_promotions_by_type(*, type: str, is_active: bool = True) -> list[Promotion]:
    t = (type or "").strip().upper()
    qs = Promotion.objects.filter(is_active=bool(is_active))
    if t != TYPE_ALL:
        if t not in promotion_types():
            raise ValidationFailed(
                f"type must be one of: {', '.join(promotion_types())} or '{TYPE_ALL}'"
            )
        qs = qs.filter(type=t)
    return list(qs.prefetch_related("products").order_by("created_at", "id"))


def delete_expired_promotions(*, now: datetime | None = None, dry_run: bool = False) -> int:
    """Remove active promotions that ended before the start of today."""
    now = now or timezone.now()
    start_of_today = timezone.localtime(now).replace(hour=0, minute=0, second=0, microsecond=0)

    qs = Promotion.objects.filter(is_active=True, end_at__lt=start_of_today)
    count = qs.count()
    if dry_run or not count:
        return count

    _, per_model = qs.delete()
    removed = int(per_model.get(Promotion._meta.label, 0))
    logger.info("Expired promotions deleted", extra={"count": removed})
    return removed
