from __future__ import annotations

from django.contrib.auth import get_user_model
from django.conf import settings
from ninja.security import HttpBearer

from .jwt_utils import ACCESS, token_user_id

User = get_user_model()


class JWTAuth(HttpBearer):
    def __call__(self, request):
        # Access token comes from the HttpOnly cookie, or an Authorization: Bearer header.
        try:
            cookie_name = getattr(settings, "AUTH_COOKIE_ACCESS_NAME", "access_token")
            token = (request.COOKIES.get(cookie_name) or "").strip()
        except Exception:
            token = ""

        if not token:
            return super().__call__(request)

        return self.authenticate(request, token)

    def authenticate(self, request, token: str):
        user_id = token_user_id(token, token_type=ACCESS)
        if user_id is None:
            return None

        try:
            return User.objects.get(id=user_id, is_active=True)
        except User.DoesNotExist:
            return None

