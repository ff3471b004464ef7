from __future__ import annotations

from ninja import Query, Router
from ninja.errors import HttpError

from accounts.auth import JWTAuth
from api.errors import NotFound
from api.validation import validate_id

from .models import Order
from .schemas import CartItemAddIn, CartItemUpdateIn, CartOut, OrderOut, VirtualCartIn
from .services import (
    add_item,
    clear_cart,
    create_virtual_cart,
    get_cart,
    remove_item,
    update_item,
)

router = Router(tags=["checkout"])
_auth = JWTAuth()

SHIPPING_SNAPSHOT_FIELDS = (
    "recipient_name",
    "phone_number",
    "document_number",
    "street",
    "street_number",
    "apartment",
    "city",
    "state",
    "postal_code",
    "country",
    "additional_notes",
)


def _require_user(request):
    user = getattr(request, "auth", None)
    if not user or not getattr(user, "is_authenticated", False):
        raise HttpError(401, "Unauthorized")
    return user


def order_out(o: Order) -> dict:
    return {
        "id": str(o.id),
        "status": o.status,
        "status_label": str(o.get_status_display()),
        "currency": o.currency,
        "payment_id": o.payment_id or "",
        "items": [
            {
                "id": ln.id,
                "product_id": str(ln.product_id),
                "name": ln.name,
                "quantity": ln.quantity,
                "unit_price": ln.unit_price,
                "subtotal": ln.subtotal,
                "discount": ln.discount,
                "total": ln.total,
                "applied_promotion_id": str(ln.applied_promotion_id) if ln.applied_promotion_id else None,
            }
            for ln in o.lines.all()
        ],
        "subtotal": o.subtotal,
        "discount_total": o.discount_total,
        "total": o.total,
        "shipping_address": {f: getattr(o, f"shipping_{f}") or "" for f in SHIPPING_SNAPSHOT_FIELDS},
        "created_at": o.created_at,
        "updated_at": o.updated_at,
    }


@router.get("/cart", response=CartOut, auth=_auth)
def cart(request):
    user = _require_user(request)
    return get_cart(user_id=user.id).as_dict()


@router.post("/cart/items", response=CartOut, auth=_auth)
def cart_add_item(request, payload: CartItemAddIn):
    user = _require_user(request)
    return add_item(user_id=user.id, product_id=payload.product_id, quantity=payload.quantity).as_dict()


@router.patch("/cart/items/{product_id}", response=CartOut, auth=_auth)
def cart_update_item(request, product_id: str, payload: CartItemUpdateIn):
    user = _require_user(request)
    return update_item(user_id=user.id, product_id=product_id, quantity=payload.quantity).as_dict()


@router.delete("/cart/items/{product_id}", response=CartOut, auth=_auth)
def cart_remove_item(request, product_id: str):
    user = _require_user(request)
    return remove_item(user_id=user.id, product_id=product_id).as_dict()


@router.delete("/cart", response=CartOut, auth=_auth)
def cart_clear(request, product_ids: list[str] | None = Query(None)):
    user = _require_user(request)
    return clear_cart(user_id=user.id, product_ids=product_ids or None).as_dict()


@router.post("/cart/virtual", response=CartOut, auth=_auth)
def cart_virtual(request, payload: VirtualCartIn):
    user = _require_user(request)
    return create_virtual_cart(user_id=user.id, selected_product_ids=payload.selected_product_ids).as_dict()


@router.get("/orders", response=list[OrderOut], auth=_auth)
def list_orders(request, limit: int = 20):
    user = _require_user(request)
    limit = max(1, min(int(limit or 20), 50))

    orders = Order.objects.filter(user=user).prefetch_related("lines").order_by("-created_at")[:limit]
    return [order_out(o) for o in orders]


@router.get("/orders/{order_id}", response=OrderOut, auth=_auth)
def get_order(request, order_id: str):
    user = _require_user(request)
    oid = validate_id(order_id, "order_id")

    o = Order.objects.filter(user=user, id=oid).prefetch_related("lines").first()
    if not o:
        raise NotFound("Order not found")
    return order_out(o)
