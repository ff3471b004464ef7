from __future__ import annotations

from decimal import Decimal

from ninja import Schema


class ProductOut(Schema):
    id: str
    name: str
    description: str
    price: Decimal
    stock: int
    in_stock: bool
