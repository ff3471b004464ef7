from __future__ import annotations

from decimal import Decimal

from ninja import Router
from ninja.errors import HttpError

from accounts.auth import JWTAuth

from .models import Promotion
from .schemas import PromotionIn, PromotionOut, PromotionPatchIn
from .services import (
    create_promotion,
    delete_promotion,
    get_promotion,
    list_promotions,
    list_promotions_by_type,
    promotion_types,
    update_promotion,
)

router = Router(tags=["promotions"])
auth = JWTAuth()


def _require_staff(request) -> None:
    user = getattr(request, "auth", None)
    if user is None or not getattr(user, "is_staff", False):
        raise HttpError(403, "Forbidden")


def _promotion_out(p: Promotion) -> dict:
    return {
        "id": str(p.id),
        "title": p.title,
        "description": p.description or "",
        "type": p.type,
        "buy_quantity": p.buy_quantity,
        "get_quantity": p.get_quantity,
        "discount_percentage": p.discount_percentage,
        "discount_amount": p.discount_amount,
        "start_date": p.start_at,
        "end_date": p.end_at,
        "image_url": p.image_url or "",
        "is_active": bool(p.is_active),
        "created_at": p.created_at,
        "updated_at": p.updated_at,
        "products": [{"id": str(x.id), "name": x.name} for x in p.products.all()],
    }


@router.get("", response=list[PromotionOut])
def promotions(
    request,
    start_date: str | None = None,
    end_date: str | None = None,
    product_id: str | None = None,
    type: str | None = None,
    min_discount_percentage: Decimal | None = None,
    max_discount_percentage: Decimal | None = None,
):
    rows = list_promotions(
        start_date=start_date,
        end_date=end_date,
        product_id=product_id,
        type=type,
        min_discount_percentage=min_discount_percentage,
        max_discount_percentage=max_discount_percentage,
    )
    return [_promotion_out(p) for p in rows]


@router.get("/types", response=list[str])
def types(request):
    return promotion_types()


@router.get("/by-type/{promotion_type}", response=list[PromotionOut])
def promotions_by_type(request, promotion_type: str, is_active: bool = True):
    return [_promotion_out(p) for p in list_promotions_by_type(type=promotion_type, is_active=is_active)]


@router.get("/{promotion_id}", response=PromotionOut)
def promotion_detail(request, promotion_id: str):
    return _promotion_out(get_promotion(promotion_id=promotion_id))


@router.post("", response={201: PromotionOut}, auth=auth)
def promotion_create(request, payload: PromotionIn):
    _require_staff(request)
    p = create_promotion(data=payload.dict())
    return 201, _promotion_out(get_promotion(promotion_id=p.id))


@router.patch("/{promotion_id}", response=PromotionOut, auth=auth)
def promotion_update(request, promotion_id: str, payload: PromotionPatchIn):
    _require_staff(request)
    p = update_promotion(promotion_id=promotion_id, data=payload.dict(exclude_unset=True))
    return _promotion_out(get_promotion(promotion_id=p.id))


@router.delete("/{promotion_id}", response={204: None}, auth=auth)
def promotion_delete(request, promotion_id: str):
    _require_staff(request)
    delete_promotion(promotion_id=promotion_id)
    return 204, None
