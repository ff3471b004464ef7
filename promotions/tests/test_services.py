from __future__ import annotations

import uuid
from datetime import timedelta
from decimal import Decimal
from io import StringIO

import pytest
from django.core.management import call_command
from django.utils import timezone

from api.errors import Conflict, NotFound, ValidationFailed
from promotions.models import Promotion
from promotions.services import (
    create_promotion,
    delete_expired_promotions,
    delete_promotion,
    list_promotions,
    list_promotions_by_type,
    promotion_types,
    update_promotion,
)

pytestmark = pytest.mark.django_db


def _data(product_ids, /, **overrides) -> dict:
    now = timezone.now()
    data = {
        "title": "Winter sale",
        "type": "PERCENTAGE",
        "product_ids": [str(p) for p in product_ids],
        "start_date": (now - timedelta(days=1)).isoformat(),
        "end_date": (now + timedelta(days=7)).isoformat(),
        "discount_percentage": Decimal("15"),
    }
    data.update(overrides)
    return data


def test_create_promotion(make_product):
    a, b = make_product(name="A"), make_product(name="B")
    promotion = create_promotion(data=_data([a.id, b.id]))

    assert promotion.type == Promotion.Type.PERCENTAGE
    assert promotion.discount_percentage == Decimal("15")
    assert set(promotion.products.values_list("id", flat=True)) == {a.id, b.id}


def test_same_scheme_overlap_conflicts(make_product):
    a, b = make_product(name="A"), make_product(name="B")
    create_promotion(data=_data([a.id]))

    with pytest.raises(Conflict) as exc:
        create_promotion(data=_data([b.id, a.id], title="Second"))
    assert str(a.id) in str(exc.value)


def test_different_scheme_on_same_product_is_allowed(make_product):
    a = make_product()
    create_promotion(data=_data([a.id]))
    create_promotion(
        data=_data([a.id], type="FIXED", discount_percentage=None, discount_amount=Decimal("3"))
    )

    assert Promotion.objects.filter(products=a).count() == 2


def test_inactive_promotion_does_not_block(make_product):
    a = make_product()
    create_promotion(data=_data([a.id], is_active=False))
    create_promotion(data=_data([a.id], title="Live"))


@pytest.mark.parametrize(
    "overrides",
    [
        {"product_ids": []},
        {"product_ids": ["not-a-uuid"]},
        {"discount_percentage": Decimal("120")},
        {"discount_percentage": None},
        {"type": "HALF_OFF"},
        {"title": "  "},
        {"type": "NXN", "buy_quantity": 0, "get_quantity": 1},
        {"type": "FIXED", "discount_amount": Decimal("-1")},
    ],
)
def test_create_validation(make_product, overrides):
    a = make_product()
    with pytest.raises(ValidationFailed):
        create_promotion(data=_data([a.id], **overrides))


def test_window_must_be_ordered(make_product):
    a = make_product()
    now = timezone.now()
    with pytest.raises(ValidationFailed):
        create_promotion(
            data=_data([a.id], start_date=now.isoformat(), end_date=now.isoformat())
        )


def test_unknown_product_is_not_found(make_product):
    with pytest.raises(NotFound):
        create_promotion(data=_data([uuid.uuid4()]))


def test_update_promotion(make_product):
    a = make_product()
    promotion = create_promotion(data=_data([a.id]))

    updated = update_promotion(
        promotion_id=str(promotion.id),
        data={"title": "Renamed", "discount_percentage": Decimal("20")},
    )

    assert updated.title == "Renamed"
    assert updated.discount_percentage == Decimal("20")
    assert list(updated.products.all()) == [a]


def test_update_into_overlap_conflicts(make_product):
    a, b = make_product(name="A"), make_product(name="B")
    create_promotion(data=_data([a.id]))
    other = create_promotion(data=_data([b.id], title="B only"))

    with pytest.raises(Conflict):
        update_promotion(promotion_id=other.id, data={"product_ids": [str(a.id)]})


def test_update_missing_promotion():
    with pytest.raises(NotFound):
        update_promotion(promotion_id=uuid.uuid4(), data={"title": "x"})


def test_delete_promotion(make_product):
    promotion = create_promotion(data=_data([make_product().id]))
    delete_promotion(promotion_id=promotion.id)
    assert not Promotion.objects.exists()

    with pytest.raises(NotFound):
        delete_promotion(promotion_id=promotion.id)


def test_list_filters(make_product, make_promotion):
    a, b = make_product(name="A"), make_product(name="B")
    ten = make_promotion([a], discount_percentage=Decimal("10"))
    make_promotion([b], discount_percentage=Decimal("40"))
    fixed = make_promotion([a], type=Promotion.Type.FIXED, discount_amount=Decimal("1"))

    assert {p.id for p in list_promotions(product_id=str(a.id))} == {ten.id, fixed.id}
    assert [p.id for p in list_promotions(max_discount_percentage=Decimal("20"))] == [ten.id]
    assert [p.id for p in list_promotions(type="FIXED")] == [fixed.id]


def test_list_by_type(make_product, make_promotion):
    a = make_product()
    pct = make_promotion([a], discount_percentage=Decimal("10"))
    off = make_promotion([a], type=Promotion.Type.FIXED, discount_amount=Decimal("1"), is_active=False)

    assert [p.id for p in list_promotions_by_type(type="percentage")] == [pct.id]
    assert [p.id for p in list_promotions_by_type(type="ALL", is_active=False)] == [off.id]
    with pytest.raises(ValidationFailed):
        list_promotions_by_type(type="NOPE")


def test_promotion_types():
    assert promotion_types() == ["NXN", "PERCENT_SECOND", "PERCENTAGE", "FIXED", "BUNDLE"]


def test_delete_expired_promotions(make_product, make_promotion):
    a = make_product()
    now = timezone.now()
    expired = make_promotion(
        [a], discount_percentage=Decimal("10"),
        start_at=now - timedelta(days=10), end_at=now - timedelta(days=3),
    )
    current = make_promotion([a], type=Promotion.Type.FIXED, discount_amount=Decimal("1"))

    assert delete_expired_promotions(dry_run=True) == 1
    assert Promotion.objects.filter(id=expired.id).exists()

    assert delete_expired_promotions() == 1
    assert list(Promotion.objects.values_list("id", flat=True)) == [current.id]


def test_delete_expired_command(make_product, make_promotion):
    now = timezone.now()
    make_promotion(
        [make_product()], discount_percentage=Decimal("10"),
        start_at=now - timedelta(days=10), end_at=now - timedelta(days=3),
    )

    out = StringIO()
    call_command("delete_expired_promotions", stdout=out)

    assert not Promotion.objects.exists()
    assert "1" in out.getvalue()
