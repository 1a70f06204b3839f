"""
Payment adapters for external services.

This module provides the adapter for the PIX payment gateway. All gateway
API calls should go through it to ensure consistent error handling,
timeouts and observability.

Usage:
    from payments.adapters import AsaasAdapter, CreatePixChargeParams

    charge = AsaasAdapter.create_pix_charge(
        CreatePixChargeParams(
            customer_id="cus_000005219613",
            amount_centavos=1198,
            description="Tip for Ana",
            external_reference=str(payment.id),
        )
    )
"""

from payments.adapters.asaas_adapter import (
    AsaasAdapter,
    ChargeResult,
    CreateCustomerParams,
    CreatePixChargeParams,
    CustomerResult,
    PixQrCodeResult,
    TransferResult,
    backoff_delay,
    centavos_to_reais,
    detect_pix_key_type,
    is_retryable_gateway_error,
    reais_to_centavos,
)

__all__ = [
    "AsaasAdapter",
    "ChargeResult",
    "CreateCustomerParams",
    "CreatePixChargeParams",
    "CustomerResult",
    "PixQrCodeResult",
    "TransferResult",
    "backoff_delay",
    "centavos_to_reais",
    "detect_pix_key_type",
    "is_retryable_gateway_error",
    "reais_to_centavos",
]
