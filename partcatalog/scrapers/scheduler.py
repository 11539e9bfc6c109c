"""APScheduler-based scraping scheduler.

Runs a periodic scrape job for each configured retailer. Jobs are
staggered so retailers don't all start crawling in the same second, and
each job allows a single instance, so a crawl that outlives its interval
is never started twice.

stop() removes the jobs before shutting APScheduler down, so the same
instance can be started again. A plain stop cancels crawls in flight
(their job rows are marked failed); stop(wait=True) lets them finish.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Set

import structlog
from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from partcatalog.config import Settings, settings as default_settings
from partcatalog.core.enums import Retailer
from partcatalog.core.exceptions import JobAlreadyRunningError
from partcatalog.scrapers.scraper_service import ScraperService

logger = structlog.get_logger(__name__)


@dataclass
class SchedulerConfig:
    """Which retailers to crawl and how often."""

    retailers: List[Retailer] = field(default_factory=lambda: [Retailer.BERMOR])
    interval_hours: float = 6.0
    stagger_seconds: int = 30
    enabled: bool = True

    @classmethod
    def from_settings(cls, config: Optional[Settings] = None) -> "SchedulerConfig":
        """Build the config from SCHEDULER_* settings, skipping unknown retailer codes."""
        config = config or default_settings

        retailers: List[Retailer] = []
        for code in config.get_scheduler_retailers():
            try:
                retailers.append(Retailer(code))
            except ValueError:
                logger.warning("unknown_scheduler_retailer", retailer=code)

        return cls(
            retailers=retailers,
            interval_hours=config.SCHEDULER_INTERVAL_HOURS,
            stagger_seconds=config.SCHEDULER_STAGGER_SECONDS,
            enabled=config.SCHEDULER_ENABLED,
        )


class ScraperScheduler:
    """Manages periodic scraping jobs using APScheduler.

    This scheduler:
    - Adds one interval job per configured retailer on start
    - Staggers the first runs to avoid a thundering herd
    - Keeps running when a job fails; the failure is on the job row
    """

    def __init__(self, service: ScraperService, config: Optional[SchedulerConfig] = None):
        """Initialize scraper scheduler.

        Args:
            service: Job runner invoked on every tick
            config: Retailers and interval (defaults to SchedulerConfig())
        """
        self.service = service
        self.config = config or SchedulerConfig()
        self.scheduler = AsyncIOScheduler(timezone="UTC")
        self.logger = logger.bind(service="scraper_scheduler")
        self._job_ids: Dict[Retailer, str] = {}
        self._in_flight: Set[asyncio.Task] = set()
        self._started = False

    def start(self) -> None:
        """Schedule the configured retailers and start the scheduler.

        Must be called from inside a running event loop.
        """
        if self._started:
            self.logger.warning("scheduler_already_running")
            return

        for idx, retailer in enumerate(self.config.retailers):
            self.add_retailer_job(retailer, offset_seconds=idx * self.config.stagger_seconds)

        self.scheduler.start()
        self._started = True
        self.logger.info(
            "scheduler_started",
            retailers=[r.value for r in self.config.retailers],
            interval_hours=self.config.interval_hours,
        )

    async def stop(self, wait: bool = False) -> None:
        """Stop the scheduler and drop its jobs.

        Args:
            wait: Let crawls in flight finish before shutting down. Otherwise
                they are cancelled and their job rows end up failed with
                error "cancelled".
        """
        if not self._started:
            self.logger.warning("scheduler_not_running")
            return

        self._started = False
        # No new ticks from here on
        self.scheduler.remove_all_jobs()
        self._job_ids.clear()

        if wait and self._in_flight:
            self.logger.info("scheduler_waiting_for_jobs", jobs=len(self._in_flight))
            await asyncio.gather(*self._in_flight, return_exceptions=True)

        self.scheduler.shutdown(wait=False)
        # AsyncIOScheduler applies shutdown on the next loop iteration
        await asyncio.sleep(0)
        self.logger.info("scheduler_stopped", waited=wait)

    def add_retailer_job(self, retailer: Retailer, offset_seconds: int = 0) -> Optional[Job]:
        """Add a periodic scraping job for a retailer.

        Args:
            retailer: Retailer to crawl
            offset_seconds: Delay before the first run (for staggering)

        Returns:
            APScheduler Job instance or None if already scheduled
        """
        if retailer in self._job_ids:
            self.logger.warning("job_already_exists", retailer=retailer.value)
            return None

        first_run = datetime.now(timezone.utc) + timedelta(seconds=offset_seconds)
        trigger = IntervalTrigger(
            hours=self.config.interval_hours,
            start_date=first_run,
            timezone="UTC",
        )

        job = self.scheduler.add_job(
            func=self._run_retailer_wrapper,
            trigger=trigger,
            args=[retailer],
            id=f"scrape_{retailer.value.lower()}",
            name=f"Scrape {retailer.value}",
            replace_existing=True,
            max_instances=1,  # Prevent concurrent runs of same retailer
            coalesce=True,
            next_run_time=first_run,
        )
        self._job_ids[retailer] = job.id

        self.logger.info(
            "retailer_job_added",
            retailer=retailer.value,
            interval_hours=self.config.interval_hours,
            offset_seconds=offset_seconds,
            first_run=first_run.isoformat(),
        )
        return job

    def remove_retailer_job(self, retailer: Retailer) -> bool:
        """Remove a retailer's scraping job.

        Returns:
            True if job was removed, False if not found
        """
        job_id = self._job_ids.pop(retailer, None)
        if not job_id:
            self.logger.warning("job_not_found", retailer=retailer.value)
            return False

        self.scheduler.remove_job(job_id)
        self.logger.info("retailer_job_removed", retailer=retailer.value)
        return True

    async def _run_retailer_wrapper(self, retailer: Retailer) -> None:
        """Entry point APScheduler calls; only cancellation escapes."""
        task = asyncio.current_task()
        self._in_flight.add(task)
        try:
            await self.service.run_job(retailer)
        except asyncio.CancelledError:
            self.logger.warning("scheduled_scrape_cancelled", retailer=retailer.value)
            raise
        except JobAlreadyRunningError:
            self.logger.warning("scrape_tick_skipped_job_running", retailer=retailer.value)
        except Exception as e:
            self.logger.error(
                "scheduled_scrape_failed",
                retailer=retailer.value,
                error=str(e),
                exc_info=True,
            )
        finally:
            self._in_flight.discard(task)

    def get_jobs_status(self) -> Dict[str, dict]:
        """Get status of all scheduled jobs, keyed by retailer code."""
        jobs = {}
        for retailer, job_id in self._job_ids.items():
            job = self.scheduler.get_job(job_id)
            if job:
                jobs[retailer.value] = {
                    "job_id": job_id,
                    "next_run": job.next_run_time.isoformat() if job.next_run_time else None,
                    "trigger": str(job.trigger),
                }
        return jobs

    def is_running(self) -> bool:
        return self._started
