from __future__ import annotations

import json
import uuid
from decimal import Decimal

import pytest

from checkout.models import Order, OrderLine

pytestmark = pytest.mark.django_db


def _json(client, method: str, path: str, body=None):
    return getattr(client, method)(path, data=json.dumps(body or {}), content_type="application/json")


def test_cart_requires_auth(client):
    assert client.get("/api/checkout/cart").status_code == 401


def test_cart_flow(auth_client, make_product):
    a = make_product(name="A", price="50.00", stock=10)
    b = make_product(name="B", price="5.00", stock=10)

    r = _json(auth_client, "post", "/api/checkout/cart/items", {"product_id": str(a.id), "quantity": 2})
    assert r.status_code == 200, r.content
    assert Decimal(r.json()["total_price"]) == Decimal("100.00")

    _json(auth_client, "post", "/api/checkout/cart/items", {"product_id": str(b.id), "quantity": 1})
    r = _json(auth_client, "patch", f"/api/checkout/cart/items/{b.id}", {"quantity": 4})
    assert r.json()["total_items"] == 6

    r = _json(auth_client, "post", "/api/checkout/cart/virtual", {"selected_product_ids": [str(b.id)]})
    assert r.json()["virtual"] is True
    assert Decimal(r.json()["total_price"]) == Decimal("20.00")

    r = auth_client.delete(f"/api/checkout/cart/items/{a.id}")
    assert [i["product_id"] for i in r.json()["items"]] == [str(b.id)]

    r = auth_client.delete("/api/checkout/cart")
    assert r.json()["items"] == []


def test_cart_errors_are_mapped(auth_client, make_product):
    p = make_product(stock=1)

    r = _json(auth_client, "post", "/api/checkout/cart/items", {"product_id": str(p.id), "quantity": 5})
    assert r.status_code == 409
    assert r.json()["code"] == "insufficient_stock"

    r = _json(auth_client, "post", "/api/checkout/cart/items", {"product_id": "nope", "quantity": 1})
    assert r.status_code == 400

    r = _json(auth_client, "post", "/api/checkout/cart/items", {"product_id": str(uuid.uuid4()), "quantity": 1})
    assert r.status_code == 404

    assert auth_client.get("/api/checkout/cart").status_code == 404


def test_orders_are_scoped_to_user(auth_client, user, staff_user):
    mine = Order.objects.create(user=user, total=Decimal("10.00"))
    OrderLine.objects.create(
        order=mine, product_id=uuid.uuid4(), name="A", unit_price=Decimal("5.00"), quantity=2
    )
    theirs = Order.objects.create(user=staff_user)

    r = auth_client.get("/api/checkout/orders")
    assert [o["id"] for o in r.json()] == [str(mine.id)]
    assert Decimal(r.json()[0]["items"][0]["subtotal"]) == Decimal("10.00")

    assert auth_client.get(f"/api/checkout/orders/{theirs.id}").status_code == 404
    assert auth_client.get(f"/api/checkout/orders/{mine.id}").status_code == 200
