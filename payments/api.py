from __future__ import annotations

import hmac
import logging

from django.conf import settings
from django.http import HttpResponseRedirect
from ninja import Router
from ninja.errors import HttpError

from accounts.auth import JWTAuth

from .schemas import CheckoutIn, CheckoutOut, PaymentStatusOut, WebhookIn, WebhookOut
from .services.checkout import apply_payment_status, confirm_checkout, start_checkout
from .services.mercadopago import get_payment_status


router = Router(tags=["payments"])

logger = logging.getLogger(__name__)

_auth = JWTAuth()


def _require_user(request):
    user = getattr(request, "auth", None)
    if not user or not getattr(user, "is_authenticated", False):
        raise HttpError(401, "Unauthorized")
    return user


def _check_webhook_secret(request) -> None:
    expected = str(getattr(settings, "PAYMENTS_WEBHOOK_SECRET", "") or "")
    if not expected:
        return
    provided = request.headers.get("X-Webhook-Secret") or ""
    if not hmac.compare_digest(provided.encode(), expected.encode()):
        logger.warning("Webhook rejected: bad secret")
        raise HttpError(401, "Unauthorized")


@router.post("/checkout", response=CheckoutOut, auth=_auth)
def checkout(request, payload: CheckoutIn):
    user = _require_user(request)
    session = start_checkout(user=user, selected_product_ids=payload.selected_product_ids)
    return {
        "cart": session.cart.as_dict(),
        "init_point": session.init_point,
        "reference": session.reference,
        "payment_intent_id": str(session.payment_intent_id),
    }


@router.get("/success", include_in_schema=False)
def payment_success(request, payment_id: str = "", external_reference: str = ""):
    return HttpResponseRedirect(
        confirm_checkout(payment_id=payment_id, external_reference=external_reference)
    )


@router.get("/failure", include_in_schema=False)
def payment_failure(request, payment_id: str = "", status: str = ""):
    logger.info("Payment failed", extra={"payment_id": payment_id, "status": status})
    return HttpResponseRedirect(f"{str(settings.FRONTEND_URL).rstrip('/')}/")


@router.get("/pending", response=PaymentStatusOut)
def payment_pending(request, payment_id: str = ""):
    payment = get_payment_status(payment_id=payment_id)
    return {
        "payment_id": payment.payment_id,
        "status": payment.status,
        "raw_status": payment.raw_status,
        "external_reference": payment.external_reference,
    }


@router.post("/webhook", response=WebhookOut)
def payment_webhook(request, payload: WebhookIn):
    _check_webhook_secret(request)
    order = apply_payment_status(
        order_id=payload.order_id,
        status=payload.status,
        payment_id=payload.payment_id,
    )
    return {"status": "ok", "order_id": str(order.id), "order_status": order.status}
