from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ninja import Schema


class PricedLineItemOut(Schema):
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    discount: Decimal
    discounted_subtotal: Decimal
    applied_promotion_id: str | None = None


class StockIssueOut(Schema):
    product_id: str
    name: str
    available: int
    requested: int


class CartOut(Schema):
    cart_id: str
    user_id: str
    currency: str = "ARS"
    items: list[PricedLineItemOut]
    total_items: int
    total_price: Decimal
    total_discount: Decimal | None = None
    discounted_total_price: Decimal | None = None
    stock_issues: list[StockIssueOut] = []
    virtual: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CartItemAddIn(Schema):
    product_id: str
    quantity: int = 1


class CartItemUpdateIn(Schema):
    quantity: int


class VirtualCartIn(Schema):
    selected_product_ids: list[str]


class OrderLineOut(Schema):
    id: int
    product_id: str
    name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    applied_promotion_id: str | None = None


class ShippingAddressOut(Schema):
    recipient_name: str = ""
    phone_number: str = ""
    document_number: str = ""
    street: str = ""
    street_number: str = ""
    apartment: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    additional_notes: str = ""


class OrderOut(Schema):
    id: str
    status: str
    status_label: str = ""
    currency: str
    payment_id: str = ""
    items: list[OrderLineOut]
    subtotal: Decimal
    discount_total: Decimal
    total: Decimal
    shipping_address: ShippingAddressOut
    created_at: datetime
    updated_at: datetime
