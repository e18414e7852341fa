"""Iute sync service configuration."""

from __future__ import annotations

from pydantic_settings import BaseSettings

# Country selector -> top-level domain of the Iute e-shop API
_TLD_BY_COUNTRY: dict[str, str] = {
    "al": "al",
    "en": "al",  # Albania (EN) shares the AL domain
    "mk": "mk",
    "md": "md",
    "bg": "bg",
    "bs": "ba",
}

_DEFAULT_TLD = "mk"


def iute_domain_for_country(country: str, is_test: bool) -> str:
    """Return the Iute base URL for a country selector and mode."""
    base = "https://ecom-stage.iutecredit" if is_test else "https://ecom.iutecredit"
    tld = _TLD_BY_COUNTRY.get(country.strip().lower(), _DEFAULT_TLD)
    return f"{base}.{tld}"


class Settings(BaseSettings):
    """Environment-driven settings for the sync service."""

    port: int = 10000
    log_level: str = "INFO"

    iute_country: str = "mk"
    iute_testmode: bool = True
    iute_admin_key: str = ""
    # Comma-separated Iute order ids polled every cycle
    iute_order_ids: str = ""
    iute_key_ttl_seconds: int = 3600

    shopify_shop: str = ""
    shopify_admin_token: str = ""
    shopify_api_version: str = "2025-01"

    poll_cron: str = "*/5 * * * *"
    poll_enabled: bool = True

    http_timeout_seconds: float = 30.0

    model_config = {"env_file": ".env", "extra": "ignore"}

    @property
    def iute_domain(self) -> str:
        return iute_domain_for_country(self.iute_country, self.iute_testmode)

    @property
    def order_ids(self) -> list[str]:
        return [s.strip() for s in self.iute_order_ids.split(",") if s.strip()]

    def missing_credentials(self) -> list[str]:
        """Names of required environment variables that are unset."""
        required = {
            "IUTE_ADMIN_KEY": self.iute_admin_key,
            "SHOPIFY_SHOP": self.shopify_shop,
            "SHOPIFY_ADMIN_TOKEN": self.shopify_admin_token,
        }
        return [name for name, value in required.items() if not value]
