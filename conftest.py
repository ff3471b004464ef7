from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from django.test import Client
from django.utils import timezone

from accounts.jwt_utils import issue_access_token
from accounts.models import ShippingInfo, User
from catalog.models import Product
from promotions.models import Promotion


SHIPPING = {
    "recipient_name": "Ana Gomez",
    "phone_number": "+54 11 5555 0000",
    "document_number": "30111222",
    "street": "Av. Corrientes",
    "street_number": "1234",
    "apartment": "4B",
    "city": "Buenos Aires",
    "state": "CABA",
    "postal_code": "C1043",
    "country": "AR",
}


@pytest.fixture
def user(db):
    u = User.objects.create_user(email="buyer@example.com", password="secret-pass-1")
    ShippingInfo.objects.create(user=u, **SHIPPING)
    return u


@pytest.fixture
def staff_user(db):
    return User.objects.create_user(
        email="staff@example.com", password="secret-pass-1", is_staff=True
    )


@pytest.fixture
def make_product(db):
    def _make(name: str = "Yerba", price="50.00", stock: int = 10, **kwargs) -> Product:
        return Product.objects.create(name=name, price=Decimal(price), stock=stock, **kwargs)

    return _make


@pytest.fixture
def make_promotion(db):
    def _make(products, type=Promotion.Type.PERCENTAGE, **kwargs) -> Promotion:
        now = timezone.now()
        kwargs.setdefault("title", f"{type} promo")
        kwargs.setdefault("start_at", now - timedelta(days=1))
        kwargs.setdefault("end_at", now + timedelta(days=1))
        promotion = Promotion.objects.create(type=type, **kwargs)
        promotion.products.set(products)
        return promotion

    return _make


def _client_for(u) -> Client:
    token = issue_access_token(user_id=u.id)
    return Client(HTTP_AUTHORIZATION=f"Bearer {token}")


@pytest.fixture
def client_for(db):
    return _client_for


@pytest.fixture
def auth_client(user):
    return _client_for(user)


@pytest.fixture
def staff_client(staff_user):
    return _client_for(staff_user)


class FakeResponse:
    def __init__(self, status_code: int = 200, data=None):
        self.status_code = status_code
        self._data = data if data is not None else {}
        self.text = str(self._data)

    def json(self):
        if isinstance(self._data, Exception):
            raise self._data
        return self._data


class FakeGateway:
    """Stands in for the Mercado Pago REST API at the requests layer."""

    def __init__(self):
        self.calls: list[tuple[str, str, dict]] = []
        self.payments: dict[str, dict] = {}
        self.preference_response = FakeResponse(
            201, {"id": "pref-123", "init_point": "https://mp.test/checkout/pref-123"}
        )

    def respond_to_preferences(self, status_code: int, data) -> None:
        self.preference_response = FakeResponse(status_code, data)

    def approve(self, payment_id: str, reference: str, status: str = "approved", amount=None) -> None:
        self.payments[payment_id] = {
            "id": payment_id,
            "status": status,
            "external_reference": reference,
        }
        if amount is not None:
            self.payments[payment_id]["transaction_amount"] = amount

    def __call__(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        if method == "POST" and url.endswith("/checkout/preferences"):
            return self.preference_response
        if method == "GET" and "/v1/payments/" in url:
            payment_id = url.rsplit("/", 1)[-1]
            if payment_id not in self.payments:
                return FakeResponse(404, {"message": "not found"})
            return FakeResponse(200, self.payments[payment_id])
        return FakeResponse(500, {"message": "unexpected call"})

    @property
    def last_preference(self) -> dict:
        for method, url, kwargs in reversed(self.calls):
            if method == "POST":
                return kwargs["json"]
        raise AssertionError("no preference was requested")


@pytest.fixture
def gateway(monkeypatch):
    fake = FakeGateway()
    monkeypatch.setattr("payments.services.mercadopago.requests.request", fake)
    return fake
