from __future__ import annotations

from ninja import Schema


class LoginIn(Schema):
    email: str
    password: str


class RefreshIn(Schema):
    refresh: str


class StatusOut(Schema):
    status: str


class ShippingInfoIn(Schema):
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


class ShippingInfoOut(ShippingInfoIn):
    missing_fields: list[str] = []


class MeOut(Schema):
    id: str
    email: str
    first_name: str
    last_name: str
    is_staff: bool
    shipping_info: ShippingInfoOut | None = None
