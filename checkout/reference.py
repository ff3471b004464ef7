"""Checkout reference tokens.

The token travels through the payment gateway's external reference field and
is the only link between a payment event and the cart lines being paid for.
It is a signed, versioned binary record::

    version (1 byte) | user UUID (16 bytes) | product UUID (16 bytes) * n

base64url encoded without padding and signed with :class:`django.core.signing.Signer`.
"""
from __future__ import annotations

import base64
import binascii
import uuid
from dataclasses import dataclass

from django.conf import settings
from django.core import signing

from api.errors import ValidationFailed
from api.validation import validate_id, validate_ids

VERSION = 1
SALT = "checkout.reference"
LEGACY_SEPARATOR = "|"

_HEADER_SIZE = 1 + 16
_UUID_SIZE = 16


@dataclass(frozen=True)
class CheckoutReference:
    user_id: uuid.UUID
    product_ids: tuple[uuid.UUID, ...]


def _signer() -> signing.Signer:
    return signing.Signer(salt=SALT)


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(value: str) -> bytes:
    padded = value + "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(padded.encode("ascii"))


def max_length() -> int:
    return int(getattr(settings, "CHECKOUT_REFERENCE_MAX_LENGTH", 256))


def encode_checkout_reference(*, user_id, product_ids) -> str:
    uid = validate_id(user_id, "user_id")
    pids = validate_ids(product_ids, "product_id")
    if not pids:
        raise ValidationFailed("A checkout reference needs at least one product")

    raw = bytes([VERSION]) + uid.bytes + b"".join(p.bytes for p in pids)
    token = _signer().sign(_b64encode(raw))

    if len(token) > max_length():
        raise ValidationFailed(
            f"Too many products for a single checkout ({len(pids)}); "
            "pay for fewer items at a time"
        )
    return token


def _decode_signed(token: str) -> CheckoutReference:
    try:
        body = _signer().unsign(token)
    except signing.BadSignature:
        raise ValidationFailed("Invalid checkout reference")

    try:
        raw = _b64decode(body)
    except (binascii.Error, ValueError):
        raise ValidationFailed("Invalid checkout reference")

    if len(raw) < _HEADER_SIZE + _UUID_SIZE or (len(raw) - _HEADER_SIZE) % _UUID_SIZE:
        raise ValidationFailed("Invalid checkout reference")
    if raw[0] != VERSION:
        raise ValidationFailed(f"Unsupported checkout reference version: {raw[0]}")

    user_id = uuid.UUID(bytes=raw[1:_HEADER_SIZE])
    product_ids = tuple(
        uuid.UUID(bytes=raw[i : i + _UUID_SIZE])
        for i in range(_HEADER_SIZE, len(raw), _UUID_SIZE)
    )
    return CheckoutReference(user_id=user_id, product_ids=product_ids)


def _decode_legacy(token: str) -> CheckoutReference:
    user_part, _, products_part = token.partition(LEGACY_SEPARATOR)
    user_id = validate_id(user_part, "user_id")
    product_ids = validate_ids(
        [p for p in products_part.split(",") if p.strip()], "product_id"
    )
    if not product_ids:
        raise ValidationFailed("Checkout reference has no products")
    return CheckoutReference(user_id=user_id, product_ids=tuple(product_ids))


def decode_checkout_reference(token: str) -> CheckoutReference:
    token = (token or "").strip()
    if not token:
        raise ValidationFailed("external_reference must not be empty")

    if LEGACY_SEPARATOR in token:
        if not getattr(settings, "CHECKOUT_ACCEPT_LEGACY_REFERENCE", True):
            raise ValidationFailed("Legacy checkout references are not accepted")
        return _decode_legacy(token)

    return _decode_signed(token)
