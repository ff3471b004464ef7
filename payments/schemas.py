from __future__ import annotations

from ninja import Schema

from checkout.schemas import CartOut


class CheckoutIn(Schema):
    selected_product_ids: list[str] | None = None


class CheckoutOut(Schema):
    cart: CartOut
    init_point: str
    reference: str
    payment_intent_id: str


class PaymentStatusOut(Schema):
    payment_id: str
    status: str
    raw_status: str = ""
    external_reference: str = ""


class WebhookIn(Schema):
    order_id: str
    payment_id: str = ""
    status: str


class WebhookOut(Schema):
    status: str
    order_id: str
    order_status: str
