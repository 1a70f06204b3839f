"""
Gateway payer records.

Every charge needs a gateway customer. CustomerService makes sure the paying
user is linked to one, creating or adopting it on first purchase.

Usage:
    from payments.services import CustomerService

    customer_id = CustomerService.ensure_customer(user, tax_id="12345678909")
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from core.services import BaseService

from payments.adapters import AsaasAdapter, CreateCustomerParams
from payments.exceptions import InvalidPaymentMetadataError

if TYPE_CHECKING:
    from authentication.models import User


def normalize_tax_id(tax_id: str | None) -> str:
    """Strip formatting from a CPF/CNPJ and validate its length."""
    if not tax_id:
        return ""
    digits = re.sub(r"\D", "", tax_id)
    if len(digits) not in (11, 14):
        raise InvalidPaymentMetadataError(
            "Tax id must be a CPF (11 digits) or CNPJ (14 digits)",
            error_code="INVALID_TAX_ID",
        )
    return digits


class CustomerService(BaseService):
    """
    Links users to gateway customers.

    Resolution order:
        1. Reuse user.gateway_customer_id (pushing a new tax id to the gateway)
        2. Adopt an existing gateway customer with the same email
        3. Create a new customer (notifications disabled)

    A newly supplied tax id is stored on the user only once the gateway
    holds it, so a failed push is retried on the next purchase.
    """

    # Gateway adapter - can be injected for testing
    _gateway_adapter: type | None = None

    @classmethod
    def get_gateway_adapter(cls) -> type:
        """Get the gateway adapter class."""
        return cls._gateway_adapter or AsaasAdapter

    @classmethod
    def set_gateway_adapter(cls, adapter: type | None) -> None:
        """Set the gateway adapter class (for testing)."""
        cls._gateway_adapter = adapter

    @classmethod
    def ensure_customer(cls, user: User, tax_id: str | None = None) -> str:
        """
        Return the gateway customer id for a user, creating one if needed.

        Args:
            user: The paying user
            tax_id: CPF/CNPJ supplied with this purchase (optional)

        Returns:
            Gateway customer id

        Raises:
            InvalidPaymentMetadataError: Malformed tax id
            GatewayError: Gateway call failed
        """
        adapter = cls.get_gateway_adapter()
        logger = cls.get_logger()

        new_tax_id = normalize_tax_id(tax_id)
        tax_id_changed = bool(new_tax_id) and new_tax_id != user.tax_id
        effective_tax_id = new_tax_id if tax_id_changed else user.tax_id

        if user.gateway_customer_id:
            if tax_id_changed:
                adapter.update_customer(user.gateway_customer_id, new_tax_id)
                user.tax_id = new_tax_id
                user.save(update_fields=["tax_id", "updated_at"])
                logger.info(
                    "Updated gateway customer tax id",
                    extra={
                        "user_id": str(user.id),
                        "customer_id": user.gateway_customer_id,
                    },
                )
            return user.gateway_customer_id

        existing = adapter.find_customer_by_email(user.email)
        if existing is not None:
            if effective_tax_id and existing.tax_id != effective_tax_id:
                adapter.update_customer(existing.id, effective_tax_id)
            customer_id = existing.id
            logger.info(
                "Adopted existing gateway customer",
                extra={"user_id": str(user.id), "customer_id": customer_id},
            )
        else:
            created = adapter.create_customer(
                CreateCustomerParams(
                    name=user.get_short_name(),
                    email=user.email,
                    tax_id=effective_tax_id or None,
                    external_reference=str(user.id),
                )
            )
            customer_id = created.id
            logger.info(
                "Created gateway customer",
                extra={"user_id": str(user.id), "customer_id": customer_id},
            )

        user.gateway_customer_id = customer_id
        user.tax_id = effective_tax_id
        user.save(update_fields=["gateway_customer_id", "tax_id", "updated_at"])
        return customer_id
