from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from ninja import Schema


class PromotionIn(Schema):
    title: str
    description: str = ""
    type: str
    product_ids: list[str]
    start_date: str
    end_date: str
    buy_quantity: int | None = None
    get_quantity: int | None = None
    discount_percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    image_url: str = ""
    is_active: bool = True


class PromotionPatchIn(Schema):
    title: str | None = None
    description: str | None = None
    type: str | None = None
    product_ids: list[str] | None = None
    start_date: str | None = None
    end_date: str | None = None
    buy_quantity: int | None = None
    get_quantity: int | None = None
    discount_percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    image_url: str | None = None
    is_active: bool | None = None


class PromotionProductOut(Schema):
    id: str
    name: str


class PromotionOut(Schema):
    id: str
    title: str
    description: str
    type: str
    buy_quantity: int | None = None
    get_quantity: int | None = None
    discount_percentage: Decimal | None = None
    discount_amount: Decimal | None = None
    start_date: datetime
    end_date: datetime
    image_url: str
    is_active: bool
    created_at: datetime
    updated_at: datetime
    products: list[PromotionProductOut]
