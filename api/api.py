from __future__ import annotations

import logging

from django.conf import settings
from ninja import NinjaAPI

from accounts.api import router as auth_router
from catalog.api import router as catalog_router
from checkout.api import router as checkout_router
from payments.api import router as payments_router
from promotions.api import router as promotions_router

from .errors import DomainError

logger = logging.getLogger(__name__)

docs_url = "/docs" if getattr(settings, "NINJA_ENABLE_DOCS", True) else None
openapi_url = "/openapi.json" if getattr(settings,
                                         "NINJA_ENABLE_DOCS", True) else None

api = NinjaAPI(
    title="Cart & checkout pricing API",
    version="1",
    docs_url=docs_url,
    openapi_url=openapi_url,
)


@api.exception_handler(DomainError)
def domain_error(request, exc: DomainError):
    if exc.status_code >= 500:
        logger.error(
            "Request failed: %s",
            exc.message,
            extra={"path": request.path, "code": exc.code},
        )
    return api.create_response(
        request,
        {"detail": exc.message, "code": exc.code},
        status=exc.status_code,
    )


api.add_router("/auth", auth_router)
api.add_router("/catalog", catalog_router)
api.add_router("/promotions", promotions_router)
api.add_router("/checkout", checkout_router)
api.add_router("/payments", payments_router)


@api.get("/health")
def health(request):
    return {"status": "ok"}
