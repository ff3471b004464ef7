from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

import requests
from django.conf import settings

from api.errors import NotFound, UpstreamError, ValidationFailed
from api.validation import quantize_money, validate_id, validate_quantity

logger = logging.getLogger(__name__)

MERCADOPAGO_API_BASE_URL_DEFAULT = "https://api.mercadopago.com"

APPROVED = "approved"
REJECTED = "rejected"
PENDING = "pending"

# Gateway payment statuses folded into the three outcomes checkout cares about.
STATUS_MAP = {
    "approved": APPROVED,
    "rejected": REJECTED,
    "cancelled": REJECTED,
    "refunded": REJECTED,
    "charged_back": REJECTED,
    "pending": PENDING,
    "in_process": PENDING,
    "in_mediation": PENDING,
    "authorized": PENDING,
}


@dataclass(frozen=True)
class MercadoPagoConfigData:
    access_token: str
    api_base_url: str
    timeout_seconds: int


@dataclass(frozen=True)
class PreferenceItem:
    product_id: uuid.UUID
    title: str
    unit_price: Decimal
    quantity: int


@dataclass(frozen=True)
class Preference:
    preference_id: str
    init_point: str
    raw_request: dict
    raw_response: dict


@dataclass(frozen=True)
class PaymentStatus:
    payment_id: str
    status: str
    raw_status: str
    external_reference: str
    raw: dict
    transaction_amount: Decimal | None = None


def get_mercadopago_config() -> MercadoPagoConfigData | None:
    from payments.models import MercadoPagoConfig

    cfg = MercadoPagoConfig.objects.filter(is_active=True).order_by("-id").first()
    if cfg is not None and (cfg.access_token or "").strip():
        return MercadoPagoConfigData(
            access_token=cfg.access_token.strip(),
            api_base_url=(cfg.api_base_url or MERCADOPAGO_API_BASE_URL_DEFAULT).strip().rstrip("/"),
            timeout_seconds=int(cfg.timeout_seconds or 5),
        )

    token = str(getattr(settings, "MERCADOPAGO_ACCESS_TOKEN", "") or "").strip()
    if not token:
        return None
    base_url = str(
        getattr(settings, "MERCADOPAGO_API_BASE_URL", "") or MERCADOPAGO_API_BASE_URL_DEFAULT
    ).strip().rstrip("/")
    return MercadoPagoConfigData(
        access_token=token,
        api_base_url=base_url,
        timeout_seconds=int(getattr(settings, "MERCADOPAGO_TIMEOUT_SECONDS", 5) or 5),
    )


def normalize_status(raw_status: str) -> str:
    status = STATUS_MAP.get((raw_status or "").strip().lower())
    if status is None:
        raise ValidationFailed(f"Unknown payment status: {raw_status}")
    return status


def _back_url(outcome: str) -> str:
    backend = str(settings.BACKEND_URL).rstrip("/")
    base_path = str(getattr(settings, "API_BASE_PATH", "api")).strip("/")
    return f"{backend}/{base_path}/payments/{outcome}"


class MercadoPagoClient:
    def __init__(self, cfg: MercadoPagoConfigData | None = None) -> None:
        cfg = cfg or get_mercadopago_config()
        if cfg is None:
            raise UpstreamError("Mercado Pago is not configured")
        self.cfg = cfg

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.cfg.access_token}",
        }

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.cfg.api_base_url}{path}"
        try:
            return requests.request(
                method, url, headers=self._headers(), timeout=self.cfg.timeout_seconds, **kwargs
            )
        except requests.RequestException:
            logger.exception("Mercado Pago request failed", extra={"method": method, "path": path})
            raise UpstreamError("Payment gateway is unreachable")

    @staticmethod
    def _json(r: requests.Response, *, what: str) -> dict[str, Any]:
        try:
            data = r.json()
        except ValueError:
            raise UpstreamError(f"Mercado Pago {what}: invalid response")
        if not isinstance(data, dict):
            raise UpstreamError(f"Mercado Pago {what}: unexpected response")
        return data

    def create_preference(self, payload: dict[str, Any]) -> dict[str, Any]:
        r = self._request("POST", "/checkout/preferences", json=payload)
        if r.status_code >= 400:
            logger.warning(
                "Mercado Pago preference rejected",
                extra={"status_code": r.status_code, "body": r.text[:300]},
            )
            raise UpstreamError(f"Mercado Pago preference failed: {r.status_code}")
        return self._json(r, what="preference")

    def get_payment(self, payment_id: str) -> dict[str, Any]:
        r = self._request("GET", f"/v1/payments/{payment_id}")
        if r.status_code == 404:
            raise NotFound(f"Payment not found: {payment_id}", code="payment_not_found")
        if r.status_code >= 400:
            logger.warning(
                "Mercado Pago payment lookup failed",
                extra={"status_code": r.status_code, "payment_id": payment_id},
            )
            raise UpstreamError(f"Mercado Pago payment lookup failed: {r.status_code}")
        return self._json(r, what="payment")


def create_preference(*, items: list[PreferenceItem], total: Decimal, reference: str) -> Preference:
    """Create a hosted checkout preference and return where to send the buyer."""
    if not items:
        raise ValidationFailed("At least one item is required")
    reference = (reference or "").strip()
    if not reference:
        raise ValidationFailed("external_reference must not be empty")

    payload_items = []
    for item in items:
        pid = validate_id(item.product_id, "product_id")
        qty = validate_quantity(item.quantity)
        unit_price = quantize_money(item.unit_price)
        if unit_price < 0:
            raise ValidationFailed("unit_price must be a non-negative number")
        payload_items.append(
            {
                "id": str(pid),
                "title": str(item.title or pid)[:256],
                "unit_price": float(unit_price),
                "quantity": qty,
            }
        )

    total = quantize_money(total)
    if total < 0:
        raise ValidationFailed("total must be a non-negative number")

    payload = {
        "items": payload_items,
        "back_urls": {
            "success": _back_url("success"),
            "failure": _back_url("failure"),
            "pending": _back_url("pending"),
        },
        "auto_return": "approved",
        "external_reference": reference,
        "transaction_amount": float(total),
    }

    data = MercadoPagoClient().create_preference(payload)
    init_point = str(data.get("init_point") or "").strip()
    if not init_point:
        raise UpstreamError("Mercado Pago preference: missing init_point")

    preference_id = str(data.get("id") or "")
    logger.info(
        "Mercado Pago preference created",
        extra={"preference_id": preference_id, "items": len(payload_items)},
    )
    return Preference(
        preference_id=preference_id,
        init_point=init_point,
        raw_request=payload,
        raw_response=data,
    )


def get_payment_status(*, payment_id: str) -> PaymentStatus:
    payment_id = str(payment_id or "").strip()
    if not payment_id:
        raise ValidationFailed("payment_id must not be empty")

    data = MercadoPagoClient().get_payment(payment_id)
    raw_status = str(data.get("status") or "")
    status = STATUS_MAP.get(raw_status.strip().lower())
    if status is None:
        raise UpstreamError(f"Mercado Pago payment: unknown status {raw_status!r}")

    amount = data.get("transaction_amount")
    try:
        transaction_amount = quantize_money(Decimal(str(amount))) if amount is not None else None
    except (InvalidOperation, ValueError):
        raise UpstreamError(f"Mercado Pago payment: bad transaction_amount {amount!r}")

    return PaymentStatus(
        payment_id=payment_id,
        status=status,
        raw_status=raw_status,
        external_reference=str(data.get("external_reference") or ""),
        raw=data,
        transaction_amount=transaction_amount,
    )
