from __future__ import annotations

from .settings_base import *  # noqa: F403

DEBUG = False

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

MERCADOPAGO_ACCESS_TOKEN = "TEST-access-token"
BACKEND_URL = "http://backend.test"
FRONTEND_URL = "http://shop.test"
PROMOTIONS_NXN_MODE = "pairwise"
