"""Iute loan status → Shopify order sync service."""

__version__ = "0.1.0"
