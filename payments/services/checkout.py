"""Checkout orchestration: from a priced cart selection to a paid order.

``start_checkout`` validates stock and asks the gateway for a hosted payment
page. ``confirm_checkout`` runs when the gateway sends the buyer back and turns
an approved payment into an order. It returns a browser redirect target and
never raises, since nobody but the buyer's browser is waiting for the answer.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import ROUND_DOWN
from urllib.parse import urlencode

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import IntegrityError, transaction

from accounts.models import ShippingInfo
from api.errors import BadRequest, DomainError, InsufficientStock, NotFound
from api.validation import MONEY_PLACES, quantize_money, validate_id, validate_ids
from catalog.services import decrement_stock, get_product, get_products, restore_stock
from checkout.models import CartItem, Order, OrderLine, PaymentIntent
from checkout.reference import decode_checkout_reference, encode_checkout_reference
from checkout.services import PricedCart, clear_cart, create_virtual_cart
from promotions.services import PricedLineItem

from . import mercadopago
from .mercadopago import PreferenceItem

logger = logging.getLogger(__name__)


@dataclass
class CheckoutSession:
    cart: PricedCart
    init_point: str
    reference: str
    payment_intent_id: uuid.UUID


def _frontend_url(path: str = "/", **params) -> str:
    base = str(settings.FRONTEND_URL).rstrip("/")
    url = f"{base}{path}"
    if params:
        url = f"{url}?{urlencode(params)}"
    return url


def orders_url() -> str:
    return _frontend_url("/orders")


def failure_url(error: str | None = None) -> str:
    if error:
        return _frontend_url("/payment-failure", error=error)
    return _frontend_url("/payment-failure")


def _shipping_profile(user) -> ShippingInfo:
    info = ShippingInfo.objects.filter(user=user).first()
    if info is None:
        raise BadRequest(
            "Shipping information is required: " + ", ".join(ShippingInfo.REQUIRED_FIELDS),
            code="shipping_info_missing",
        )
    missing = info.missing_fields()
    if missing:
        raise BadRequest(
            "Shipping information is incomplete: " + ", ".join(missing),
            code="shipping_info_missing",
        )
    return info


def _check_stock(items: list[PricedLineItem]) -> None:
    products = get_products(product_ids=[i.product_id for i in items])
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            raise NotFound(f"Product not found: {item.product_id}")
        if item.quantity > int(product.stock):
            raise InsufficientStock(
                product_id=item.product_id,
                name=product.name,
                available=product.stock,
                requested=item.quantity,
            )


def _preference_items(item: PricedLineItem) -> list[PreferenceItem]:
    """Gateway items for one line, summing exactly to its discounted subtotal.

    When the discounted subtotal does not split evenly into cents, the last
    unit is sent as its own item carrying the remainder.
    """
    if item.discount <= 0:
        return [
            PreferenceItem(
                product_id=item.product_id,
                title=item.name,
                unit_price=item.unit_price,
                quantity=item.quantity,
            )
        ]

    subtotal = quantize_money(item.discounted_subtotal)
    unit_price = (subtotal / item.quantity).quantize(MONEY_PLACES, rounding=ROUND_DOWN)
    remainder = subtotal - unit_price * item.quantity
    if not remainder:
        return [
            PreferenceItem(
                product_id=item.product_id,
                title=item.name,
                unit_price=unit_price,
                quantity=item.quantity,
            )
        ]
    return [
        PreferenceItem(
            product_id=item.product_id,
            title=item.name,
            unit_price=unit_price,
            quantity=item.quantity - 1,
        ),
        PreferenceItem(
            product_id=item.product_id,
            title=item.name,
            unit_price=unit_price + remainder,
            quantity=1,
        ),
    ]


def start_checkout(*, user, selected_product_ids=None) -> CheckoutSession:
    """Validate the selection against live stock and create a gateway preference.

    An empty or missing selection checks out every line in the cart.
    """
    uid = validate_id(user.id, "user_id")
    selected = validate_ids(selected_product_ids, "product_id") or None

    _shipping_profile(user)

    if not CartItem.objects.filter(cart__user_id=uid).exists():
        raise BadRequest("Cart is empty", code="empty_cart")
    cart = create_virtual_cart(user_id=uid, selected_product_ids=selected)
    _check_stock(cart.items)

    total = cart.payable_total
    reference = encode_checkout_reference(user_id=uid, product_ids=cart.product_ids)
    preference = mercadopago.create_preference(
        items=[p for i in cart.items for p in _preference_items(i)],
        total=total,
        reference=reference,
    )

    intent = PaymentIntent.objects.create(
        user=user,
        provider=PaymentIntent.Provider.MERCADOPAGO,
        status=PaymentIntent.Status.PREFERENCE_CREATED,
        currency=cart.currency,
        amount=total,
        reference=reference,
        preference_id=preference.preference_id,
        redirect_url=preference.init_point,
        raw_request=preference.raw_request,
        raw_response=preference.raw_response,
    )
    logger.info(
        "Checkout started",
        extra={"user_id": str(uid), "payment_intent_id": str(intent.id), "total": str(total)},
    )
    return CheckoutSession(
        cart=cart,
        init_point=preference.init_point,
        reference=reference,
        payment_intent_id=intent.id,
    )


def _update_intent(reference: str, *, status: str, payment_id: str = "", order: Order | None = None) -> None:
    if not reference:
        return
    fields: dict = {"status": status}
    if payment_id:
        fields["payment_id"] = payment_id
    if order is not None:
        fields["order"] = order
    intent = (
        PaymentIntent.objects.filter(reference=reference)
        .exclude(status=PaymentIntent.Status.CONFIRMED)
        .order_by("-created_at")
        .first()
    )
    if intent is None:
        return
    for k, v in fields.items():
        setattr(intent, k, v)
    intent.save(update_fields=[*fields.keys(), "updated_at"])


def _finalize_order(*, payment_id: str, reference: str) -> Order:
    ref = decode_checkout_reference(reference)
    user = get_user_model().objects.filter(id=ref.user_id, is_active=True).first()
    if user is None:
        raise NotFound("User not found", code="user_not_found")

    shipping = ShippingInfo.objects.filter(user=user).first()
    snapshot = shipping.as_snapshot() if shipping is not None else {}

    paid = CartItem.objects.filter(cart__user_id=ref.user_id, product_id__in=ref.product_ids)
    if not paid.exists():
        raise NotFound("None of the paid products are in the cart", code="cart_not_found")

    with transaction.atomic():
        cart = create_virtual_cart(user_id=ref.user_id, selected_product_ids=list(ref.product_ids))

        for item in cart.items:
            if not decrement_stock(product_id=item.product_id, amount=item.quantity):
                product = get_product(product_id=item.product_id)
                raise InsufficientStock(
                    product_id=item.product_id,
                    name=item.name,
                    available=product.stock if product is not None else 0,
                    requested=item.quantity,
                )

        order = Order.objects.create(
            user=user,
            status=Order.Status.PENDING,
            payment_id=payment_id,
            currency=cart.currency,
            **{f"shipping_{k}": v for k, v in snapshot.items()},
        )
        for item in cart.items:
            OrderLine.objects.create(
                order=order,
                product_id=item.product_id,
                name=item.name,
                unit_price=item.unit_price,
                quantity=item.quantity,
                discount=item.discount,
                applied_promotion_id=item.applied_promotion_id,
            )
        order.recalculate_totals()
        order.save(update_fields=["subtotal", "discount_total", "total", "updated_at"])

        clear_cart(user_id=ref.user_id, product_ids=cart.product_ids)
        _update_intent(
            reference,
            status=PaymentIntent.Status.CONFIRMED,
            payment_id=payment_id,
            order=order,
        )

    logger.info(
        "Order created from checkout",
        extra={"order_id": str(order.id), "user_id": str(user.id), "payment_id": payment_id},
    )
    return order


def confirm_checkout(*, payment_id, external_reference=None) -> str:
    """Finalize an approved payment and return where to send the buyer."""
    payment_id = str(payment_id or "").strip()
    if not payment_id:
        return failure_url("missing_payment_id")

    try:
        payment = mercadopago.get_payment_status(payment_id=payment_id)
    except DomainError as e:
        logger.warning(
            "Payment status lookup failed",
            extra={"payment_id": payment_id, "code": e.code},
        )
        return failure_url(e.code)
    except Exception:
        logger.exception("Payment status lookup crashed", extra={"payment_id": payment_id})
        return failure_url("server_error")

    # The gateway's record of the payment decides which selection was paid for.
    reference = payment.external_reference.strip()
    if not reference:
        logger.warning("Payment carries no checkout reference", extra={"payment_id": payment_id})
        return failure_url("reference_missing")
    claimed = str(external_reference or "").strip()
    if claimed and claimed != reference:
        logger.warning(
            "Checkout reference does not match the payment",
            extra={"payment_id": payment_id},
        )
        return failure_url("reference_mismatch")

    if payment.status != mercadopago.APPROVED:
        logger.info(
            "Payment not approved",
            extra={"payment_id": payment_id, "status": payment.raw_status},
        )
        intent_status = (
            PaymentIntent.Status.PENDING
            if payment.status == mercadopago.PENDING
            else PaymentIntent.Status.REJECTED
        )
        _update_intent(reference, status=intent_status, payment_id=payment_id)
        return failure_url(f"payment_{payment.status}")

    if Order.objects.filter(payment_id=payment_id).exists():
        logger.info("Payment already confirmed", extra={"payment_id": payment_id})
        return orders_url()

    intent = PaymentIntent.objects.filter(reference=reference).order_by("-created_at").first()
    if (
        intent is not None
        and payment.transaction_amount is not None
        and payment.transaction_amount != intent.amount
    ):
        logger.warning(
            "Charged amount does not match the checkout",
            extra={
                "payment_id": payment_id,
                "charged": str(payment.transaction_amount),
                "expected": str(intent.amount),
            },
        )
        _update_intent(reference, status=PaymentIntent.Status.FAILED, payment_id=payment_id)
        return failure_url("amount_mismatch")

    try:
        _finalize_order(payment_id=payment_id, reference=reference)
    except DomainError as e:
        logger.warning(
            "Checkout confirmation refused",
            extra={"payment_id": payment_id, "code": e.code, "detail": e.message},
        )
        _update_intent(reference, status=PaymentIntent.Status.FAILED, payment_id=payment_id)
        return failure_url(e.code)
    except IntegrityError:
        if Order.objects.filter(payment_id=payment_id).exists():
            logger.info("Payment confirmed concurrently", extra={"payment_id": payment_id})
            return orders_url()
        logger.exception("Order creation failed", extra={"payment_id": payment_id})
        return failure_url("server_error")
    except Exception:
        logger.exception("Order creation failed", extra={"payment_id": payment_id})
        return failure_url("server_error")

    return orders_url()


def apply_payment_status(*, order_id, status: str, payment_id: str = "") -> Order:
    """Move an order along after a payment-status notification.

    approved: pending -> processing. rejected: pending/processing -> cancelled,
    with the order's units returned to stock. pending: no change.
    """
    oid = validate_id(order_id, "order_id")
    normalized = mercadopago.normalize_status(status)

    with transaction.atomic():
        order = Order.objects.select_for_update().filter(id=oid).first()
        if order is None:
            raise NotFound("Order not found")

        previous = order.status
        if normalized == mercadopago.APPROVED:
            if order.status == Order.Status.PENDING:
                order.status = Order.Status.PROCESSING
        elif normalized == mercadopago.REJECTED:
            if order.status in (Order.Status.PENDING, Order.Status.PROCESSING):
                order.status = Order.Status.CANCELLED
                for line in order.lines.all():
                    restore_stock(product_id=line.product_id, amount=line.quantity)

        if order.status != previous:
            order.save(update_fields=["status", "updated_at"])

    logger.info(
        "Payment status applied",
        extra={
            "order_id": str(oid),
            "payment_id": str(payment_id or ""),
            "payment_status": normalized,
            "from_status": previous,
            "to_status": order.status,
        },
    )
    return order

