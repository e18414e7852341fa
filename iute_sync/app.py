"""Application factory and process entry point.

All shared objects (HTTP clients, the public key cache, the orchestrator
and the poll scheduler) are constructed once here and handed to the
routes through ``app.state.services``.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI

from iute_sync.config import Settings
from iute_sync.scheduler_jobs import PollDriver, build_scheduler
from iute_sync.sync import SyncOrchestrator
from iute_sync.tools.iute_client import IuteClient
from iute_sync.tools.shopify_client import ShopifyClient
from iute_sync.webhooks.handlers import register_iute_routes
from iute_sync.webhooks.keys import PublicKeyCache
from iute_sync.webhooks.verification import WebhookVerifier

logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    iute: IuteClient
    shopify: ShopifyClient
    key_cache: PublicKeyCache
    verifier: WebhookVerifier
    orchestrator: SyncOrchestrator
    poll_driver: PollDriver

    def close(self) -> None:
        self.iute.close()
        self.shopify.close()


def build_services(settings: Settings) -> Services:
    iute = IuteClient(
        settings.iute_domain,
        settings.iute_admin_key,
        timeout=settings.http_timeout_seconds,
    )
    shopify = ShopifyClient(
        settings.shopify_shop,
        settings.shopify_admin_token,
        api_version=settings.shopify_api_version,
        timeout=settings.http_timeout_seconds,
    )
    key_cache = PublicKeyCache(
        iute.fetch_public_key, ttl=timedelta(seconds=settings.iute_key_ttl_seconds)
    )
    orchestrator = SyncOrchestrator(iute, shopify)
    return Services(
        settings=settings,
        iute=iute,
        shopify=shopify,
        key_cache=key_cache,
        verifier=WebhookVerifier(key_cache),
        orchestrator=orchestrator,
        poll_driver=PollDriver(orchestrator, settings.order_ids),
    )


def create_app(settings: Settings | None = None, services: Services | None = None) -> FastAPI:
    """Build the FastAPI app. ``services`` overrides wiring in tests."""
    settings = settings or (services.settings if services else Settings())
    services = services or build_services(settings)

    for name in settings.missing_credentials():
        logger.warning("Missing %s", name)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler: BackgroundScheduler | None = None
        if settings.poll_enabled and services.poll_driver.order_ids:
            scheduler = build_scheduler(services.poll_driver, settings.poll_cron)
            scheduler.start()
            logger.info(
                "Iute poll scheduled (%s) for %d order ids",
                settings.poll_cron,
                len(services.poll_driver.order_ids),
            )
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)
            services.close()

    app = FastAPI(title="Iute Shopify Sync", lifespan=lifespan)
    app.state.services = services
    register_iute_routes(app)
    return app


def main() -> None:
    import uvicorn

    settings = Settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Server listening on :%d (Iute domain %s)", settings.port, settings.iute_domain)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
