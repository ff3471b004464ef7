from __future__ import annotations

import json
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from promotions.models import Promotion

pytestmark = pytest.mark.django_db


def _body(product, **overrides) -> dict:
    now = timezone.now()
    body = {
        "title": "Two for one",
        "type": "NXN",
        "product_ids": [str(product.id)],
        "start_date": (now - timedelta(hours=1)).isoformat(),
        "end_date": (now + timedelta(days=3)).isoformat(),
        "buy_quantity": 1,
        "get_quantity": 1,
    }
    body.update(overrides)
    return body


def _post(client, body):
    return client.post("/api/promotions", data=json.dumps(body), content_type="application/json")


def test_staff_can_create(staff_client, make_product):
    product = make_product(name="Mate")
    r = _post(staff_client, _body(product))

    assert r.status_code == 201, r.content
    data = r.json()
    assert data["type"] == "NXN"
    assert data["products"] == [{"id": str(product.id), "name": "Mate"}]


def test_non_staff_is_forbidden(auth_client, make_product):
    r = _post(auth_client, _body(make_product()))
    assert r.status_code == 403


def test_anonymous_is_unauthorized(client, make_product):
    r = _post(client, _body(make_product()))
    assert r.status_code == 401


def test_overlap_is_409(staff_client, make_product):
    product = make_product()
    assert _post(staff_client, _body(product)).status_code == 201

    r = _post(staff_client, _body(product, title="Again"))
    assert r.status_code == 409
    assert r.json()["code"] == "conflict"


def test_invalid_body_is_400(staff_client, make_product):
    r = _post(staff_client, _body(make_product(), type="PERCENTAGE"))
    assert r.status_code == 400
    assert r.json()["code"] == "validation_error"


def test_public_reads(client, make_product, make_promotion):
    product = make_product(name="Dulce")
    promotion = make_promotion([product], discount_percentage=Decimal("25"))

    listing = client.get("/api/promotions", {"product_id": str(product.id)})
    assert listing.status_code == 200
    assert [p["id"] for p in listing.json()] == [str(promotion.id)]

    detail = client.get(f"/api/promotions/{promotion.id}")
    assert detail.json()["products"][0]["name"] == "Dulce"

    assert client.get("/api/promotions/types").json() == [t.value for t in Promotion.Type]
    by_type = client.get("/api/promotions/by-type/PERCENTAGE")
    assert [p["id"] for p in by_type.json()] == [str(promotion.id)]


def test_detail_with_malformed_id_is_400(client):
    r = client.get("/api/promotions/not-a-uuid")
    assert r.status_code == 400


def test_patch_and_delete(staff_client, make_product, make_promotion):
    promotion = make_promotion([make_product()], discount_percentage=Decimal("10"))

    r = staff_client.patch(
        f"/api/promotions/{promotion.id}",
        data=json.dumps({"discount_percentage": "30"}),
        content_type="application/json",
    )
    assert r.status_code == 200, r.content
    assert Decimal(r.json()["discount_percentage"]) == Decimal("30")

    r = staff_client.delete(f"/api/promotions/{promotion.id}")
    assert r.status_code == 204
    assert not Promotion.objects.exists()
