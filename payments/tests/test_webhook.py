from __future__ import annotations

import uuid
from decimal import Decimal

import pytest

from api.errors import NotFound, ValidationFailed
from checkout.models import Order, OrderLine
from payments.services.checkout import apply_payment_status

pytestmark = pytest.mark.django_db


@pytest.fixture
def order(user, make_product):
    product = make_product(stock=3)
    o = Order.objects.create(user=user)
    OrderLine.objects.create(
        order=o, product_id=product.id, name=product.name, unit_price=Decimal("50.00"), quantity=2
    )
    o.product = product
    return o


def test_approved_moves_to_processing(order):
    assert apply_payment_status(order_id=str(order.id), status="approved").status == Order.Status.PROCESSING


def test_pending_changes_nothing(order):
    assert apply_payment_status(order_id=order.id, status="pending").status == Order.Status.PENDING


def test_rejected_cancels_and_restocks(order):
    updated = apply_payment_status(order_id=order.id, status="rejected")

    assert updated.status == Order.Status.CANCELLED
    order.product.refresh_from_db()
    assert order.product.stock == 5


def test_cancelled_order_is_not_restocked_twice(order):
    apply_payment_status(order_id=order.id, status="rejected")
    apply_payment_status(order_id=order.id, status="rejected")

    order.product.refresh_from_db()
    assert order.product.stock == 5


def test_shipped_order_is_not_rolled_back(order):
    Order.objects.filter(id=order.id).update(status=Order.Status.SHIPPED)

    assert apply_payment_status(order_id=order.id, status="approved").status == Order.Status.SHIPPED
    assert apply_payment_status(order_id=order.id, status="rejected").status == Order.Status.SHIPPED


def test_unknown_status(order):
    with pytest.raises(ValidationFailed):
        apply_payment_status(order_id=order.id, status="weird")


def test_unknown_order():
    with pytest.raises(NotFound):
        apply_payment_status(order_id=uuid.uuid4(), status="approved")
