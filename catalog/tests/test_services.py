from __future__ import annotations

import uuid

import pytest

from catalog.services import decrement_stock, get_product, get_products, restore_stock

pytestmark = pytest.mark.django_db


def test_decrement_stock(make_product):
    p = make_product(stock=5)

    assert decrement_stock(product_id=p.id, amount=3) is True
    p.refresh_from_db()
    assert p.stock == 2


def test_decrement_refused_when_insufficient(make_product):
    p = make_product(stock=2)

    assert decrement_stock(product_id=p.id, amount=3) is False
    p.refresh_from_db()
    assert p.stock == 2


def test_decrement_missing_product():
    assert decrement_stock(product_id=uuid.uuid4(), amount=1) is False


def test_restore_stock(make_product):
    p = make_product(stock=1)
    restore_stock(product_id=p.id, amount=4)
    p.refresh_from_db()
    assert p.stock == 5


def test_inactive_products_are_hidden(make_product):
    live = make_product(name="Live")
    hidden = make_product(name="Hidden", is_active=False)

    assert get_product(product_id=hidden.id) is None
    assert set(get_products(product_ids=[live.id, hidden.id])) == {live.id}


def test_product_endpoints(client, make_product):
    p = make_product(name="Alfajor", price="3.50", stock=0)

    listing = client.get("/api/catalog/products", {"q": "alfa"})
    assert listing.status_code == 200
    assert listing.json()["items"][0]["in_stock"] is False

    assert client.get(f"/api/catalog/products/{p.id}").json()["name"] == "Alfajor"
    assert client.get(f"/api/catalog/products/{uuid.uuid4()}").status_code == 404
