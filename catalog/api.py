from __future__ import annotations

from ninja import Router
from ninja.pagination import PageNumberPagination, paginate

from api.errors import NotFound
from api.validation import validate_id

from .api_schemas import ProductOut
from .models import Product
from .services import get_product

router = Router(tags=["catalog"])


class ProductPagination(PageNumberPagination):
    page_size = 24


def _product_out(p: Product) -> dict:
    return {
        "id": str(p.id),
        "name": p.name,
        "description": p.description or "",
        "price": p.price,
        "stock": int(p.stock),
        "in_stock": int(p.stock) > 0,
    }


@router.get("/products", response=list[ProductOut])
@paginate(ProductPagination)
def products(request, q: str = ""):
    qs = Product.objects.filter(is_active=True).order_by("name")
    q = (q or "").strip()
    if q:
        qs = qs.filter(name__icontains=q)
    return [_product_out(p) for p in qs]


@router.get("/products/{product_id}", response=ProductOut)
def product_detail(request, product_id: str):
    p = get_product(product_id=validate_id(product_id, "product_id"))
    if p is None:
        raise NotFound("Product not found")
    return _product_out(p)
