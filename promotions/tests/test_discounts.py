from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from api.errors import BadRequest, ValidationFailed
from promotions.models import Promotion
from promotions.services import (
    calculate_discount,
    calculate_discount_for_cart_items,
    get_active_promotions,
)


def _promo(type, **kwargs) -> Promotion:
    now = timezone.now()
    return Promotion(
        type=type,
        title="p",
        start_at=now - timedelta(days=1),
        end_at=now + timedelta(days=1),
        **kwargs,
    )


def test_percentage_discount():
    p = _promo(Promotion.Type.PERCENTAGE, discount_percentage=Decimal("10"))
    assert calculate_discount(promotion=p, quantity=3, unit_price=Decimal("100")) == Decimal("30.00")


@pytest.mark.parametrize(
    "quantity,expected",
    [(1, "0.00"), (2, "100.00"), (3, "100.00"), (5, "200.00")],
)
def test_nxn_pairwise(quantity, expected):
    p = _promo(Promotion.Type.NXN, buy_quantity=3, get_quantity=1)
    assert calculate_discount(promotion=p, quantity=quantity, unit_price=Decimal("100")) == Decimal(expected)


def test_nxn_parameterized(settings):
    settings.PROMOTIONS_NXN_MODE = "parameterized"
    p = _promo(Promotion.Type.NXN, buy_quantity=2, get_quantity=1)
    # 7 units = two complete 2+1 groups.
    assert calculate_discount(promotion=p, quantity=7, unit_price=Decimal("10")) == Decimal("20.00")

    one_for_one = _promo(Promotion.Type.NXN, buy_quantity=1, get_quantity=1)
    assert calculate_discount(promotion=one_for_one, quantity=5, unit_price=Decimal("100")) == Decimal("200.00")


def test_percent_second():
    p = _promo(Promotion.Type.PERCENT_SECOND, discount_percentage=Decimal("50"))
    assert calculate_discount(promotion=p, quantity=4, unit_price=Decimal("100")) == Decimal("100.00")
    assert calculate_discount(promotion=p, quantity=1, unit_price=Decimal("100")) == Decimal("0.00")


def test_fixed_and_bundle():
    fixed = _promo(Promotion.Type.FIXED, discount_amount=Decimal("2.50"))
    assert calculate_discount(promotion=fixed, quantity=3, unit_price=Decimal("10")) == Decimal("7.50")

    bundle = _promo(Promotion.Type.BUNDLE)
    assert calculate_discount(promotion=bundle, quantity=10, unit_price=Decimal("10")) == Decimal("0.00")


def test_missing_scheme_field_is_rejected():
    p = _promo(Promotion.Type.PERCENTAGE)
    with pytest.raises(ValidationFailed):
        calculate_discount(promotion=p, quantity=1, unit_price=Decimal("10"))


@pytest.mark.parametrize("quantity", [0, -1, 1.5, True, "2"])
def test_invalid_quantity(quantity):
    p = _promo(Promotion.Type.FIXED, discount_amount=Decimal("1"))
    with pytest.raises(ValidationFailed):
        calculate_discount(promotion=p, quantity=quantity, unit_price=Decimal("10"))


@pytest.mark.django_db
def test_active_promotions_respect_window_and_flag(make_product, make_promotion):
    product = make_product()
    now = timezone.now()
    live = make_promotion([product], discount_percentage=Decimal("5"))
    make_promotion([product], discount_percentage=Decimal("5"), is_active=False)
    make_promotion(
        [product],
        discount_percentage=Decimal("5"),
        start_at=now + timedelta(days=1),
        end_at=now + timedelta(days=2),
    )

    assert [p.id for p in get_active_promotions(product_id=product.id)] == [live.id]


@pytest.mark.django_db
def test_best_promotion_wins(make_product, make_promotion):
    product = make_product(price="100.00")
    make_promotion([product], type=Promotion.Type.PERCENTAGE, discount_percentage=Decimal("10"))
    best = make_promotion([product], type=Promotion.Type.FIXED, discount_amount=Decimal("15"))

    result = calculate_discount_for_cart_items(
        [{"product_id": product.id, "quantity": 2, "unit_price": Decimal("100.00"), "name": product.name}]
    )

    (item,) = result.items
    assert item.discount == Decimal("30.00")
    assert item.applied_promotion_id == best.id
    assert item.discounted_subtotal == Decimal("170.00")
    assert result.total_discount == Decimal("30.00")


@pytest.mark.django_db
def test_tie_goes_to_most_recently_created(make_product, make_promotion):
    product = make_product(price="100.00")
    older = make_promotion([product], type=Promotion.Type.PERCENTAGE, discount_percentage=Decimal("10"))
    newer = make_promotion([product], type=Promotion.Type.FIXED, discount_amount=Decimal("10"))
    now = timezone.now()
    Promotion.objects.filter(id=older.id).update(created_at=now - timedelta(hours=2))
    Promotion.objects.filter(id=newer.id).update(created_at=now - timedelta(hours=1))

    result = calculate_discount_for_cart_items(
        [{"product_id": product.id, "quantity": 1, "unit_price": Decimal("100.00")}]
    )

    assert result.items[0].applied_promotion_id == newer.id
    assert result.items[0].discount == Decimal("10.00")


@pytest.mark.django_db
def test_discount_is_capped_at_subtotal(make_product, make_promotion):
    product = make_product(price="5.00")
    make_promotion([product], type=Promotion.Type.FIXED, discount_amount=Decimal("8"))

    result = calculate_discount_for_cart_items(
        [{"product_id": product.id, "quantity": 3, "unit_price": Decimal("5.00")}]
    )

    assert result.items[0].discount == Decimal("15.00")
    assert result.items[0].discounted_subtotal == Decimal("0.00")


@pytest.mark.django_db
def test_zero_discount_reports_no_promotion(make_product, make_promotion):
    product = make_product()
    make_promotion([product], type=Promotion.Type.NXN, buy_quantity=1, get_quantity=1)

    result = calculate_discount_for_cart_items(
        [{"product_id": product.id, "quantity": 1, "unit_price": Decimal("50.00")}]
    )

    assert result.items[0].discount == Decimal("0.00")
    assert result.items[0].applied_promotion_id is None


def test_empty_items_rejected():
    with pytest.raises(BadRequest):
        calculate_discount_for_cart_items([])
