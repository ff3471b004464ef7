from __future__ import annotations

from django.conf import settings
from django.contrib.auth import authenticate, get_user_model
from django.http import JsonResponse
from ninja import Router
from ninja.errors import HttpError

from .auth import JWTAuth
from .jwt_utils import REFRESH, issue_access_token, issue_refresh_token, token_user_id
from .models import ShippingInfo
from .schemas import LoginIn, MeOut, RefreshIn, ShippingInfoIn, ShippingInfoOut, StatusOut

router = Router(tags=["auth"])
User = get_user_model()
auth = JWTAuth()


def _cookie_samesite() -> str:
    v = (getattr(settings, "AUTH_COOKIE_SAMESITE", "lax") or "lax").lower()
    if v == "strict":
        return "Strict"
    if v == "none":
        return "None"
    return "Lax"


def _cookie_secure(request) -> bool:
    explicit = getattr(settings, "AUTH_COOKIE_SECURE", None)
    if explicit is True or explicit is False:
        return bool(explicit)
    return bool(request.is_secure())


def _cookie_domain():
    return getattr(settings, "AUTH_COOKIE_DOMAIN", None) or None


def _set_auth_cookies(request, response: JsonResponse, *, access: str, refresh: str | None):
    cookies = [(getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token"), access)]
    if refresh is not None:
        cookies.append((getattr(settings, "AUTH_COOKIE_REFRESH_NAME", "refresh_token"), refresh))

    for name, value in cookies:
        response.set_cookie(
            name,
            value,
            httponly=True,
            secure=_cookie_secure(request),
            samesite=_cookie_samesite(),
            domain=_cookie_domain(),
            path="/",
        )


def _clear_auth_cookies(response: JsonResponse):
    for name in (
        getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token"),
        getattr(settings, "AUTH_COOKIE_REFRESH_NAME", "refresh_token"),
    ):
        response.delete_cookie(name, path="/", domain=_cookie_domain())


def _shipping_out(info: ShippingInfo | None) -> dict | None:
    if info is None:
        return None
    return {**info.as_snapshot(), "missing_fields": info.missing_fields()}


@router.post("/login", response=StatusOut)
def login(request, payload: LoginIn):
    user = authenticate(request, username=payload.email, password=payload.password)
    if user is None:
        raise HttpError(401, "Invalid credentials")

    resp = JsonResponse({"status": "ok"})
    _set_auth_cookies(
        request,
        resp,
        access=issue_access_token(user_id=user.id),
        refresh=issue_refresh_token(user_id=user.id),
    )
    return resp


@router.post("/refresh", response=StatusOut)
def refresh(request, payload: RefreshIn | None = None):
    refresh_token = (payload.refresh or "").strip() if payload is not None else ""
    if not refresh_token:
        refresh_name = getattr(settings, "AUTH_COOKIE_REFRESH_NAME", "refresh_token")
        refresh_token = (request.COOKIES.get(refresh_name) or "").strip()

    if not refresh_token:
        raise HttpError(401, "Invalid refresh token")

    user_id = token_user_id(refresh_token, token_type=REFRESH)
    if user_id is None:
        raise HttpError(401, "Invalid refresh token")

    resp = JsonResponse({"status": "ok"})
    _set_auth_cookies(request, resp, access=issue_access_token(user_id=user_id), refresh=None)
    return resp


@router.post("/logout", response=StatusOut)
def logout(request):
    resp = JsonResponse({"status": "ok"})
    _clear_auth_cookies(resp)
    return resp


@router.get("/me", response=MeOut, auth=auth)
def me(request):
    user = request.auth
    info = ShippingInfo.objects.filter(user=user).first()
    return {
        "id": str(user.id),
        "email": user.email,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "is_staff": bool(user.is_staff),
        "shipping_info": _shipping_out(info),
    }


@router.get("/me/shipping", response=ShippingInfoOut, auth=auth)
def get_shipping(request):
    info = ShippingInfo.objects.filter(user=request.auth).first()
    if info is None:
        raise HttpError(404, "Shipping info not found")
    return _shipping_out(info)


@router.put("/me/shipping", response=ShippingInfoOut, auth=auth)
def put_shipping(request, payload: ShippingInfoIn):
    data = {k: (v or "").strip() for k, v in payload.dict().items()}
    info, _ = ShippingInfo.objects.update_or_create(user=request.auth, defaults=data)
    return _shipping_out(info)
