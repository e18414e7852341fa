"""Inbound Iute webhooks.

Callbacks are RSA-signature-verified against the provider's cached public
key, then synced onto the matching Shopify order.
"""
