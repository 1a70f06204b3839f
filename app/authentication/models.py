"""
Authentication models.

This module defines the custom user model:
- User: Email-based account that also carries the payer data the payment
  gateway needs (display name, CPF/CNPJ tax id, linked gateway customer id)

Related files:
    - managers.py: Custom user manager for email-based creation
    - payments/services/customer_service.py: Links users to gateway customers
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager
from core.model_mixins import UUIDPrimaryKeyMixin


class User(UUIDPrimaryKeyMixin, AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Fields:
        email: Primary identifier, unique, used for login
        name: Display name (optional)
        tax_id: CPF or CNPJ, digits only; required by the gateway for PIX
        gateway_customer_id: Customer id at the payment gateway once linked
        is_active / is_staff: Account flags
        date_joined / updated_at: Timestamps

    Usage:
        user = User.objects.create_user(
            email="fan@example.com",
            password="securepassword",
            name="Fan",
        )
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )
    name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Display name shown to creators and on receipts",
    )

    # Gateway payer data
    tax_id = models.CharField(
        max_length=14,
        blank=True,
        default="",
        help_text="CPF (11 digits) or CNPJ (14 digits), digits only",
    )
    gateway_customer_id = models.CharField(
        max_length=50,
        blank=True,
        default="",
        db_index=True,
        help_text="Customer id at the payment gateway (cus_xxx)",
    )

    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["-date_joined"]

    def __str__(self):
        return self.email

    def get_full_name(self):
        """Return the display name, or the email if none is set."""
        return self.name or self.email

    def get_short_name(self):
        """Return the display name, or the email local part."""
        return self.name or self.email.split("@")[0]
