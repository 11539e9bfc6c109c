"""Scraper orchestration service (job runner).

Connects the adapter layer with the catalog merger and owns the
ScrapeJob lifecycle: running -> completed | failed.

Listings are streamed from the adapter and merged one at a time, so a
crawl that dies halfway keeps everything merged before the failure and
the job row records the partial counts. A cancelled crawl (scheduler
shutdown, Ctrl+C) is recorded the same way before the cancellation
propagates.
"""

import asyncio
import traceback
from datetime import datetime
from decimal import Decimal
from typing import Callable, ClassVar, Dict, Iterable, List, Optional, Set, Tuple, Union
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from partcatalog.config import settings
from partcatalog.core.enums import JobStatus, Retailer
from partcatalog.core.exceptions import AdapterNotFoundError, JobAlreadyRunningError
from partcatalog.models.base import utcnow
from partcatalog.models.scrape_job import ScrapeJob
from partcatalog.schemas.job import JobResult
from partcatalog.scrapers.factory import AdapterFactory, get_adapter_factory
from partcatalog.scrapers.utils.fetcher import Fetcher
from partcatalog.scrapers.utils.normalizer import normalize_listing
from partcatalog.services.catalog_merger import CatalogMerger

logger = structlog.get_logger(__name__)


def default_fetcher() -> Fetcher:
    """Build a Fetcher from the configured timeout, retries and User-Agent."""
    return Fetcher(
        max_retries=settings.FETCH_MAX_RETRIES,
        timeout=settings.REQUEST_TIMEOUT_SECONDS,
        user_agent=settings.SCRAPER_USER_AGENT,
    )


class ScraperService:
    """Runs scrape jobs for retailers and records them in scrape_jobs.

    At most one job per retailer runs at a time in this process; a second
    request for a retailer that is still crawling is rejected before any
    job row is written.
    """

    # Retailers with a job in flight, shared by every instance
    _running_retailers: ClassVar[Set[Retailer]] = set()

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        adapter_factory: Optional[AdapterFactory] = None,
        fetcher_factory: Callable[[], Fetcher] = default_fetcher,
        merger: Optional[CatalogMerger] = None,
    ):
        """Initialize scraper service.

        Args:
            session_factory: Factory for the short sessions that write job rows
            adapter_factory: Adapter registry (defaults to the global factory)
            fetcher_factory: Builds the Fetcher for each job
            merger: Catalog merger (defaults to one on session_factory)
        """
        self.session_factory = session_factory
        self.adapter_factory = adapter_factory or get_adapter_factory()
        self.fetcher_factory = fetcher_factory
        self.merger = merger or CatalogMerger(session_factory)
        self.logger = logger.bind(service="scraper_service")

    @classmethod
    def is_running(cls, retailer: Retailer) -> bool:
        return retailer in cls._running_retailers

    async def run_job(self, retailer: Union[Retailer, str]) -> JobResult:
        """Run one scrape job for a retailer.

        Args:
            retailer: Retailer (or its code) to crawl

        Returns:
            JobResult of the completed job

        Raises:
            JobAlreadyRunningError: If a job for this retailer is in flight
            AdapterNotFoundError: If no adapter is registered for the retailer
            Exception: Whatever terminated the crawl; the job row is marked
                failed with partial counts before it propagates
            asyncio.CancelledError: If the job task is cancelled; the job row
                is marked failed with error "cancelled" first
        """
        result, error = await self._run_guarded(Retailer(retailer))
        if error is not None:
            raise error
        return result

    async def run_all_jobs(
        self,
        retailers: Optional[Iterable[Union[Retailer, str]]] = None,
    ) -> List[JobResult]:
        """Run jobs for several retailers one after another.

        A failing retailer does not stop the others; its failure is
        reported as a JobResult with success=False.

        Args:
            retailers: Retailers to crawl (defaults to every registered one)

        Returns:
            One JobResult per retailer, in order
        """
        targets = (
            [Retailer(r) for r in retailers]
            if retailers is not None
            else self.adapter_factory.get_registered_retailers()
        )

        results: List[JobResult] = []
        for retailer in targets:
            try:
                result, _ = await self._run_guarded(retailer)
            except (JobAlreadyRunningError, AdapterNotFoundError) as e:
                self.logger.warning("scrape_job_not_started", retailer=retailer.value, error=str(e))
                result = JobResult(success=False, retailer=retailer, error=str(e))
            results.append(result)

        self.logger.info(
            "all_jobs_finished",
            total=len(results),
            succeeded=sum(1 for r in results if r.success),
            failed=sum(1 for r in results if not r.success),
        )
        return results

    async def _run_guarded(self, retailer: Retailer) -> Tuple[JobResult, Optional[Exception]]:
        """Run a job under the per-retailer guard.

        Returns the job result plus the exception that failed the crawl, if any.
        """
        if retailer in self._running_retailers:
            self.logger.warning("scrape_job_already_running", retailer=retailer.value)
            raise JobAlreadyRunningError(retailer.value)

        self._running_retailers.add(retailer)
        try:
            return await self._execute(retailer)
        finally:
            self._running_retailers.discard(retailer)

    async def _execute(self, retailer: Retailer) -> Tuple[JobResult, Optional[Exception]]:
        async with self.fetcher_factory() as fetcher:
            adapter = self.adapter_factory.create_adapter(retailer, fetcher)
            if adapter is None:
                raise AdapterNotFoundError(retailer.value)

            start_time = utcnow()
            job_id = await self._create_job(retailer, adapter.get_info(), start_time)

            self.logger.info(
                "scrape_job_started",
                retailer=retailer.value,
                job_id=str(job_id),
                adapter=adapter.__class__.__name__,
            )

            counts = {"items_scraped": 0, "items_updated": 0, "items_failed": 0}
            try:
                async for raw in adapter.iter_listings():
                    counts["items_scraped"] += 1
                    try:
                        normalized = normalize_listing(raw)
                        await self.merger.merge(normalized, retailer)
                        counts["items_updated"] += 1
                    except Exception as e:
                        counts["items_failed"] += 1
                        self.logger.warning(
                            "listing_processing_failed",
                            retailer=retailer.value,
                            name=getattr(raw, "name", None),
                            url=getattr(raw, "url", None),
                            error=str(e),
                            error_type=type(e).__name__,
                        )
            except asyncio.CancelledError:
                duration = self._duration(start_time)
                await self._finish_job(
                    job_id,
                    JobStatus.FAILED,
                    counts,
                    duration,
                    error="cancelled",
                    error_traceback=traceback.format_exc(),
                )
                self.logger.warning(
                    "scrape_job_cancelled",
                    retailer=retailer.value,
                    job_id=str(job_id),
                    duration_seconds=duration,
                    **counts,
                )
                raise
            except Exception as e:
                duration = self._duration(start_time)
                await self._finish_job(
                    job_id,
                    JobStatus.FAILED,
                    counts,
                    duration,
                    error=str(e) or type(e).__name__,
                    error_traceback=traceback.format_exc(),
                )
                self.logger.error(
                    "scrape_job_failed",
                    retailer=retailer.value,
                    job_id=str(job_id),
                    error=str(e),
                    duration_seconds=duration,
                    **counts,
                    exc_info=True,
                )
                result = JobResult(
                    success=False,
                    retailer=retailer,
                    job_id=str(job_id),
                    duration_seconds=duration,
                    error=str(e) or type(e).__name__,
                    **counts,
                )
                return result, e

            duration = self._duration(start_time)
            await self._finish_job(job_id, JobStatus.COMPLETED, counts, duration)

            self.logger.info(
                "scrape_job_completed",
                retailer=retailer.value,
                job_id=str(job_id),
                duration_seconds=duration,
                **counts,
            )

            return (
                JobResult(
                    success=True,
                    retailer=retailer,
                    job_id=str(job_id),
                    duration_seconds=duration,
                    **counts,
                ),
                None,
            )

    async def _create_job(self, retailer: Retailer, info: Dict, started_at: datetime) -> UUID:
        async with self.session_factory() as db:
            job_record = ScrapeJob(
                retailer=retailer,
                status=JobStatus.RUNNING,
                started_at=started_at,
                metadata_=info,
            )
            db.add(job_record)
            await db.commit()
            return job_record.id

    async def _finish_job(
        self,
        job_id: UUID,
        status: JobStatus,
        counts: Dict[str, int],
        duration: float,
        error: Optional[str] = None,
        error_traceback: Optional[str] = None,
    ) -> None:
        async with self.session_factory() as db:
            job_record = await db.get(ScrapeJob, job_id)
            job_record.status = status
            job_record.completed_at = utcnow()
            job_record.duration_seconds = Decimal(str(round(duration, 2)))
            job_record.items_scraped = counts["items_scraped"]
            job_record.items_updated = counts["items_updated"]
            job_record.items_failed = counts["items_failed"]
            job_record.error = error
            job_record.error_traceback = error_traceback
            await db.commit()

    @staticmethod
    def _duration(start_time: datetime) -> float:
        return round((utcnow() - start_time).total_seconds(), 2)
