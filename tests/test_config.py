"""Tests for environment-driven settings."""

from __future__ import annotations

import pytest

from iute_sync.config import Settings, iute_domain_for_country


class TestIuteDomain:
    @pytest.mark.parametrize(
        "country,tld",
        [("al", "al"), ("en", "al"), ("mk", "mk"), ("md", "md"), ("bg", "bg"), ("bs", "ba")],
    )
    def test_country_tlds(self, country, tld):
        assert iute_domain_for_country(country, is_test=False) == f"https://ecom.iutecredit.{tld}"

    def test_stage_domain(self):
        assert iute_domain_for_country("bg", is_test=True) == "https://ecom-stage.iutecredit.bg"

    def test_unknown_country_defaults_to_mk(self):
        assert iute_domain_for_country("xx", is_test=False) == "https://ecom.iutecredit.mk"

    def test_country_case_insensitive(self):
        assert iute_domain_for_country("BS", is_test=False) == "https://ecom.iutecredit.ba"


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("IUTE_COUNTRY", "IUTE_TESTMODE", "IUTE_ORDER_IDS", "POLL_CRON", "PORT"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None)

        assert settings.port == 10000
        assert settings.iute_domain == "https://ecom-stage.iutecredit.mk"
        assert settings.order_ids == []
        assert settings.poll_cron == "*/5 * * * *"
        assert settings.iute_key_ttl_seconds == 3600

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("IUTE_COUNTRY", "md")
        monkeypatch.setenv("IUTE_TESTMODE", "false")
        monkeypatch.setenv("IUTE_ORDER_IDS", " 1, 2 ,,3 ")
        monkeypatch.setenv("SHOPIFY_SHOP", "demo.myshopify.com")

        settings = Settings(_env_file=None)

        assert settings.iute_domain == "https://ecom.iutecredit.md"
        assert settings.order_ids == ["1", "2", "3"]
        assert settings.shopify_shop == "demo.myshopify.com"

    def test_missing_credentials(self, monkeypatch):
        for name in ("IUTE_ADMIN_KEY", "SHOPIFY_SHOP", "SHOPIFY_ADMIN_TOKEN"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings(_env_file=None, shopify_shop="demo.myshopify.com")

        assert settings.missing_credentials() == ["IUTE_ADMIN_KEY", "SHOPIFY_ADMIN_TOKEN"]
