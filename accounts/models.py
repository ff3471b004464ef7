from __future__ import annotations

import uuid

from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.contrib.auth.models import PermissionsMixin
from django.conf import settings
from django.db import models


class UserManager(BaseUserManager):
    def create_user(self, email: str, password: str | None = None, **extra_fields):
        if not email:
            raise ValueError("Email is required")
        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email: str, password: str | None = None, **extra_fields):
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("is_active", True)
        return self.create_user(email=email, password=password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True)
    first_name = models.CharField(max_length=150, blank=True)
    last_name = models.CharField(max_length=150, blank=True)

    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    date_joined = models.DateTimeField(auto_now_add=True)

    objects = UserManager()

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS: list[str] = []

    def __str__(self) -> str:
        return self.email


class ShippingInfo(models.Model):
    REQUIRED_FIELDS = (
        "recipient_name",
        "phone_number",
        "document_number",
        "street",
        "street_number",
        "city",
        "state",
        "postal_code",
        "country",
    )

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="shipping_info"
    )

    recipient_name = models.CharField(max_length=200, blank=True, default="")
    phone_number = models.CharField(max_length=32, blank=True, default="")
    document_number = models.CharField(max_length=32, blank=True, default="")
    street = models.CharField(max_length=255, blank=True, default="")
    street_number = models.CharField(max_length=32, blank=True, default="")
    apartment = models.CharField(max_length=32, blank=True, default="")
    city = models.CharField(max_length=120, blank=True, default="")
    state = models.CharField(max_length=120, blank=True, default="")
    postal_code = models.CharField(max_length=32, blank=True, default="")
    country = models.CharField(max_length=120, blank=True, default="")
    additional_notes = models.TextField(blank=True, default="")

    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"{self.user_id}:{self.city}"

    def missing_fields(self) -> list[str]:
        return [f for f in self.REQUIRED_FIELDS if not (getattr(self, f, "") or "").strip()]

    def as_snapshot(self) -> dict:
        return {
            "recipient_name": self.recipient_name,
            "phone_number": self.phone_number,
            "document_number": self.document_number,
            "street": self.street,
            "street_number": self.street_number,
            "apartment": self.apartment,
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
            "additional_notes": self.additional_notes,
        }
