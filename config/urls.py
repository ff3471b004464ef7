from __future__ import annotations

from django.conf import settings
from django.contrib import admin
from django.urls import path

from api.api import api

urlpatterns = [
    path("admin/", admin.site.urls),
    path(f"{settings.API_BASE_PATH.strip('/')}/", api.urls),
]
