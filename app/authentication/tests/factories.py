"""
Factory Boy factories for authentication models.

Models:
- User: Custom user model with email-based authentication

Usage:
    from authentication.tests.factories import UserFactory

    user = UserFactory()
    payer = UserFactory(name="Ana", tax_id="12345678909")
"""

import factory

from authentication.models import User


class UserFactory(factory.django.DjangoModelFactory):
    """
    Factory for User model.

    Examples:
        # Basic user
        user = UserFactory()

        # User already known to the gateway
        user = UserFactory(gateway_customer_id="cus_000001")

        # Staff user
        user = UserFactory(is_staff=True)
    """

    class Meta:
        model = User
        skip_postgeneration_save = True

    email = factory.Sequence(lambda n: f"user{n}@example.com")
    name = factory.Sequence(lambda n: f"User {n}")
    tax_id = "12345678909"
    is_active = True
    is_staff = False

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        """Override create to use UserManager.create_user()."""
        password = kwargs.pop("password", "TestPass123!")
        return model_class.objects.create_user(
            email=kwargs.pop("email"), password=password, **kwargs
        )
