"""Periodic Iute status poll.

Each cycle walks the configured order ids once, sequentially. One id's
failure is captured in the report and never stops the rest of the cycle.
APScheduler runs the cycle on a cron expression (default every 5 minutes)
with ``max_instances=1`` so cycles never overlap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Sequence

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from iute_sync.sync import SyncOrchestrator, SyncResult

logger = logging.getLogger(__name__)

POLL_JOB_ID = "iute-poll"
DEFAULT_POLL_CRON = "*/5 * * * *"


@dataclass
class PollFailure:
    order_id: str
    error: str
    error_type: str


@dataclass
class PollReport:
    """Per-id outcomes of one poll cycle."""

    results: list[SyncResult] = field(default_factory=list)
    failures: list[PollFailure] = field(default_factory=list)

    @property
    def processed(self) -> int:
        return len(self.results) + len(self.failures)

    @property
    def synced(self) -> list[str]:
        return [r.order_id for r in self.results if r.success]

    @property
    def failed_ids(self) -> list[str]:
        return [f.order_id for f in self.failures]


class PollDriver:
    """Runs the orchestrator over a fixed list of Iute order ids."""

    def __init__(self, orchestrator: SyncOrchestrator, order_ids: Sequence[str]) -> None:
        self._orchestrator = orchestrator
        self._order_ids = tuple(order_ids)

    @property
    def order_ids(self) -> tuple[str, ...]:
        return self._order_ids

    def run_cycle(self) -> PollReport:
        report = PollReport()
        if not self._order_ids:
            return report

        for order_id in self._order_ids:
            try:
                report.results.append(self._orchestrator.sync_one(order_id))
            except Exception as e:
                logger.warning("Iute poll sync failed for %s", order_id, exc_info=True)
                report.failures.append(
                    PollFailure(order_id=order_id, error=str(e), error_type=type(e).__name__)
                )

        logger.info(
            "Iute poll complete: %d processed, %d synced, %d not found, %d failed",
            report.processed,
            len(report.synced),
            len(report.results) - len(report.synced),
            len(report.failures),
        )
        return report


def iute_poll_job(driver: PollDriver) -> None:
    """Scheduler entry point. Called every cycle by APScheduler."""
    try:
        driver.run_cycle()
    except Exception:
        logger.warning("Iute poll job failed", exc_info=True)


def build_scheduler(driver: PollDriver, cron: str = DEFAULT_POLL_CRON) -> BackgroundScheduler:
    """Create a (not yet started) scheduler running ``driver`` on ``cron``."""
    scheduler = BackgroundScheduler(timezone="UTC")
    scheduler.add_job(
        iute_poll_job,
        trigger=CronTrigger.from_crontab(cron, timezone="UTC"),
        args=[driver],
        id=POLL_JOB_ID,
        name="Iute status poll",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler
