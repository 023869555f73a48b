"""
Subscriptions package - recurring billing for storefront orders.

This package integrates with:
- Stripe: remote subscriptions, invoices and webhooks
- License API: license keys and addon entitlements for purchased plugins

Local state is the source of truth for entitlement; webhooks and the scheduled
sweep reconcile it with the processor.
"""
