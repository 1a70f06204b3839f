"""
Payments app for PIX payments through the Asaas gateway.

This app handles:
- Purchase intents (subscription, ppv, tip, pro plan, pack) with fee splits
- PIX charges and gateway customers
- Reconciliation of gateway status (webhooks and polling)
- Entitlement grants on confirmation
- Creator balance ledger and PIX payouts

Related apps:
    - authentication: User model (payer, tax id)
    - creators / content / chat: What a payment unlocks
    - notifications: Receipts and live events

Usage:
    from payments.services import PaymentIntentService, ReconciliationService

    intent = PaymentIntentService.create_tip_payment(user, creator_id, amount=1000)
    ReconciliationService.confirm(intent.payment.id)
"""
