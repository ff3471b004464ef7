from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from api.errors import BadRequest, InsufficientStock, NotFound
from api.validation import quantize_money, validate_id, validate_ids, validate_quantity
from catalog.models import Product
from catalog.services import get_product, get_products
from promotions.services import LineInput, PricedLineItem, calculate_discount_for_cart_items

from .models import Cart, CartItem

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class StockIssue:
    product_id: uuid.UUID
    name: str
    available: int
    requested: int

    def as_dict(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "name": self.name,
            "available": self.available,
            "requested": self.requested,
        }


@dataclass
class PricedCart:
    """A cart (or a selection of its lines) priced against the live catalog.

    ``discounted_total_price`` and ``total_discount`` are None when discount
    computation failed and the view fell back to undiscounted prices.
    """

    cart_id: uuid.UUID
    user_id: uuid.UUID
    currency: str
    items: list[PricedLineItem] = field(default_factory=list)
    total_items: int = 0
    total_price: Decimal = ZERO
    total_discount: Decimal | None = ZERO
    discounted_total_price: Decimal | None = ZERO
    stock_issues: list[StockIssue] = field(default_factory=list)
    virtual: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def payable_total(self) -> Decimal:
        if self.discounted_total_price is not None:
            return self.discounted_total_price
        return self.total_price

    @property
    def product_ids(self) -> list[uuid.UUID]:
        return [i.product_id for i in self.items]

    def as_dict(self) -> dict:
        return {
            "cart_id": str(self.cart_id),
            "user_id": str(self.user_id),
            "currency": self.currency,
            "items": [i.as_dict() for i in self.items],
            "total_items": self.total_items,
            "total_price": self.total_price,
            "total_discount": self.total_discount,
            "discounted_total_price": self.discounted_total_price,
            "stock_issues": [s.as_dict() for s in self.stock_issues],
            "virtual": self.virtual,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def _undiscounted(lines: list[LineInput]) -> list[PricedLineItem]:
    out: list[PricedLineItem] = []
    for ln in lines:
        subtotal = quantize_money(ln.unit_price * ln.quantity)
        out.append(
            PricedLineItem(
                product_id=ln.product_id,
                name=ln.name,
                quantity=ln.quantity,
                unit_price=ln.unit_price,
                subtotal=subtotal,
                discount=ZERO,
                discounted_subtotal=subtotal,
            )
        )
    return out


def _price_lines(lines: list[LineInput], *, user_id) -> tuple[list[PricedLineItem], Decimal | None]:
    """Run the lines through the discount engine, falling back to plain prices."""
    if not lines:
        return [], ZERO
    try:
        result = calculate_discount_for_cart_items(lines)
    except Exception:
        logger.warning(
            "Discount computation failed, using undiscounted prices",
            exc_info=True,
            extra={"user_id": str(user_id)},
        )
        return _undiscounted(lines), None
    return result.items, result.total_discount


def _lines_total(lines: list[LineInput]) -> Decimal:
    return quantize_money(sum((ln.unit_price * ln.quantity for ln in lines), ZERO))


def _build(
    *,
    cart: Cart,
    lines: list[LineInput],
    stock_issues: list[StockIssue],
    virtual: bool = False,
) -> PricedCart:
    total_price = _lines_total(lines)
    items, total_discount = _price_lines(lines, user_id=cart.user_id)
    return PricedCart(
        cart_id=cart.id,
        user_id=cart.user_id,
        currency=cart.currency,
        items=items,
        total_items=sum(ln.quantity for ln in lines),
        total_price=total_price,
        total_discount=total_discount,
        discounted_total_price=(total_price - total_discount) if total_discount is not None else None,
        stock_issues=stock_issues,
        virtual=virtual,
        created_at=cart.created_at,
        updated_at=cart.updated_at,
    )


def _lock_cart(*, user_id: uuid.UUID) -> Cart:
    cart = Cart.objects.select_for_update().filter(user_id=user_id).first()
    if cart is None:
        raise NotFound("Cart not found")
    return cart


def _get_or_create_cart(*, user_id: uuid.UUID) -> Cart:
    try:
        with transaction.atomic():
            cart, _ = Cart.objects.get_or_create(user_id=user_id)
    except IntegrityError:
        # Concurrent first add for the same user.
        cart = Cart.objects.get(user_id=user_id)
    return cart


def _sync_prices(
    items: list[CartItem], products: dict[uuid.UUID, Product]
) -> tuple[list[LineInput], list[StockIssue]]:
    """Refresh cached unit prices for surviving items and collect stock issues.

    Items whose product no longer exists are skipped, not deleted.
    """
    now = timezone.now()
    stale: list[CartItem] = []
    lines: list[LineInput] = []
    issues: list[StockIssue] = []

    for item in items:
        product = products.get(item.product_id)
        if product is None:
            continue
        if item.unit_price != product.price:
            item.unit_price = product.price
            item.updated_at = now
            stale.append(item)
        lines.append(
            LineInput(
                product_id=item.product_id,
                quantity=int(item.quantity),
                unit_price=Decimal(product.price),
                name=product.name,
            )
        )
        if int(item.quantity) > int(product.stock):
            issues.append(
                StockIssue(
                    product_id=item.product_id,
                    name=product.name,
                    available=int(product.stock),
                    requested=int(item.quantity),
                )
            )

    if stale:
        CartItem.objects.bulk_update(stale, ["unit_price", "updated_at"])
    return lines, issues


def _store_total(cart: Cart, *, total_price: Decimal) -> None:
    cart.total = total_price
    cart.save(update_fields=["total", "updated_at"])


def get_cart(*, user_id) -> PricedCart:
    uid = validate_id(user_id, "user_id")
    with transaction.atomic():
        cart = _lock_cart(user_id=uid)
        items = list(cart.items.all())
        products = get_products(product_ids=[i.product_id for i in items])
        lines, issues = _sync_prices(items, products)
        _store_total(cart, total_price=_lines_total(lines))
    return _build(cart=cart, lines=lines, stock_issues=issues)


def add_item(*, user_id, product_id, quantity) -> PricedCart:
    uid = validate_id(user_id, "user_id")
    pid = validate_id(product_id, "product_id")
    qty = validate_quantity(quantity)

    product = get_product(product_id=pid)
    if product is None:
        raise NotFound("Product not found")
    if qty > int(product.stock):
        raise InsufficientStock(
            product_id=pid, name=product.name, available=product.stock, requested=qty
        )

    _get_or_create_cart(user_id=uid)
    with transaction.atomic():
        cart = _lock_cart(user_id=uid)
        updated = CartItem.objects.filter(cart=cart, product_id=pid).update(
            quantity=F("quantity") + qty,
            unit_price=product.price,
            updated_at=timezone.now(),
        )
        if not updated:
            CartItem.objects.create(
                cart=cart, product_id=pid, quantity=qty, unit_price=product.price
            )

    logger.info(
        "Cart item added",
        extra={"user_id": str(uid), "product_id": str(pid), "quantity": qty},
    )
    return get_cart(user_id=uid)


def update_item(*, user_id, product_id, quantity) -> PricedCart:
    uid = validate_id(user_id, "user_id")
    pid = validate_id(product_id, "product_id")
    qty = validate_quantity(quantity)

    with transaction.atomic():
        cart = _lock_cart(user_id=uid)
        item = CartItem.objects.filter(cart=cart, product_id=pid).first()
        if item is None:
            raise NotFound("Product not found in cart")

        product = get_product(product_id=pid)
        if product is None:
            raise NotFound("Product not found")
        if qty > int(product.stock):
            raise InsufficientStock(
                product_id=pid, name=product.name, available=product.stock, requested=qty
            )

        item.quantity = qty
        item.unit_price = product.price
        item.save(update_fields=["quantity", "unit_price", "updated_at"])

    return get_cart(user_id=uid)


def remove_item(*, user_id, product_id) -> PricedCart:
    uid = validate_id(user_id, "user_id")
    pid = validate_id(product_id, "product_id")

    with transaction.atomic():
        cart = _lock_cart(user_id=uid)
        deleted, _ = CartItem.objects.filter(cart=cart, product_id=pid).delete()
        if not deleted:
            raise NotFound("Product not found in cart")

    return get_cart(user_id=uid)


def clear_cart(*, user_id, product_ids=None) -> PricedCart:
    """Empty the cart, or drop only ``product_ids`` when a non-empty list is given."""
    uid = validate_id(user_id, "user_id")
    pids = validate_ids(product_ids, "product_id") if product_ids is not None else []

    with transaction.atomic():
        cart = _lock_cart(user_id=uid)
        qs = CartItem.objects.filter(cart=cart)
        if pids:
            qs = qs.filter(product_id__in=pids)
        qs.delete()

    return get_cart(user_id=uid)


def create_virtual_cart(*, user_id, selected_product_ids=None) -> PricedCart:
    """Price a subset of the user's cart lines without changing which lines it holds.

    With no selection every line is included. Unit prices are refreshed and
    persisted like on a regular read.
    """
    uid = validate_id(user_id, "user_id")
    selected = validate_ids(selected_product_ids, "product_id") if selected_product_ids is not None else None

    with transaction.atomic():
        cart = _lock_cart(user_id=uid)
        items = list(cart.items.all())
        if selected is not None:
            wanted = set(selected)
            items = [i for i in items if i.product_id in wanted]
        if not items:
            raise BadRequest("None of the selected products are in the cart")

        products = get_products(product_ids=[i.product_id for i in items])
        for i in items:
            if i.product_id not in products:
                raise NotFound(f"Product not found: {i.product_id}")

        lines, issues = _sync_prices(items, products)

    return _build(cart=cart, lines=lines, stock_issues=issues, virtual=True)
