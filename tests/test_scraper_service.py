"""Tests for the job runner: job lifecycle, counters and the per-retailer guard."""

import asyncio
from decimal import Decimal
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import selectinload

from partcatalog.core.enums import JobStatus, Retailer
from partcatalog.core.exceptions import AdapterNotFoundError, FetchError, JobAlreadyRunningError
from partcatalog.models import Product, ScrapeJob
from partcatalog.scrapers.adapters import BermorAdapter
from partcatalog.scrapers.base import BaseAdapter, RawListing
from partcatalog.scrapers.factory import AdapterFactory
from partcatalog.scrapers.scraper_service import ScraperService


class NullFetcher:
    """Stands in for Fetcher when the adapter never fetches."""

    async def __aenter__(self) -> "NullFetcher":
        return self

    async def __aexit__(self, *exc_info) -> None:
        return None


class PageFetcher(NullFetcher):
    """Serves canned bodies by URL."""

    def __init__(self, pages: Dict[str, str]):
        self.pages = pages

    async def fetch(self, url: str, params: Optional[Dict[str, Any]] = None) -> str:
        return self.pages.get(url, "<html><body></body></html>")


class ListAdapter(BaseAdapter):
    """Yields a fixed list of listings, then optionally fails."""

    retailer = Retailer.BERMOR
    adapter_type = "api"

    def __init__(
        self,
        fetcher,
        listings: Sequence[RawListing] = (),
        error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
        **kwargs,
    ):
        super().__init__(fetcher, **kwargs)
        self.listings = list(listings)
        self.error = error
        self.gate = gate

    async def iter_listings(self) -> AsyncIterator[RawListing]:
        if self.gate is not None:
            await self.gate.wait()
        for listing in self.listings:
            yield listing
        if self.error is not None:
            raise self.error


class StallingAdapter(ListAdapter):
    """Yields its listings, then blocks until the job is cancelled."""

    def __init__(self, fetcher, stalled: asyncio.Event, **kwargs):
        super().__init__(fetcher, **kwargs)
        self.stalled = stalled

    async def iter_listings(self) -> AsyncIterator[RawListing]:
        for listing in self.listings:
            yield listing
        self.stalled.set()
        await asyncio.Event().wait()


def raw(name: str, price: str = "1000", in_stock: bool = True) -> RawListing:
    slug = name.lower().replace(" ", "-")
    return RawListing(
        name=name,
        price=Decimal(price),
        url=f"https://shop.example.ph/product/{slug}/",
        in_stock=in_stock,
    )


def make_service(session_factory, registrations: Dict[Retailer, Dict[str, Any]], fetcher_factory=NullFetcher):
    factory = AdapterFactory()
    for retailer, options in registrations.items():
        adapter_class = options.pop("adapter_class", ListAdapter)
        factory.register_adapter(retailer, adapter_class, **options)
    return ScraperService(session_factory, adapter_factory=factory, fetcher_factory=fetcher_factory)


async def all_jobs(session_factory) -> List[ScrapeJob]:
    async with session_factory() as session:
        return list((await session.execute(select(ScrapeJob))).scalars().all())


async def product_count(session_factory) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count()).select_from(Product))).scalar()


# ============================================================================
# TESTS: JOB LIFECYCLE
# ============================================================================

class TestRunJob:
    """Tests for ScraperService.run_job."""

    async def test_completed_job(self, session_factory):
        service = make_service(
            session_factory,
            {
                Retailer.BERMOR: {
                    "listings": [
                        raw("AMD Ryzen 5 7600 Processor", "12000"),
                        raw("Kingston Fury Beast 16GB DDR5", "3495", in_stock=False),
                        raw("MSI GeForce RTX 4060 Ventus 2X", "18995"),
                    ]
                }
            },
        )

        result = await service.run_job(Retailer.BERMOR)

        assert result.success is True
        assert result.retailer == Retailer.BERMOR
        assert result.items_scraped == 3
        assert result.items_updated == 3
        assert result.items_failed == 0
        assert result.error is None
        assert result.duration_seconds is not None
        assert await product_count(session_factory) == 3

        [job] = await all_jobs(session_factory)
        assert str(job.id) == result.job_id
        assert job.retailer == Retailer.BERMOR
        assert job.status == JobStatus.COMPLETED
        assert job.items_scraped == 3
        assert job.items_updated == 3
        assert job.completed_at is not None
        assert job.error is None
        assert job.metadata_["adapter"] == "ListAdapter"

    async def test_accepts_retailer_code(self, session_factory):
        service = make_service(session_factory, {Retailer.BERMOR: {}})

        result = await service.run_job("BERMOR")

        assert result.success is True
        assert result.items_scraped == 0

    async def test_item_failures_are_counted(self, session_factory):
        service = make_service(
            session_factory,
            {
                Retailer.BERMOR: {
                    "listings": [
                        raw("AMD Ryzen 5 7600 Processor", "12000"),
                        raw("Mystery Bundle", "0"),
                        raw("Kingston Fury Beast 16GB DDR5", "3495"),
                    ]
                }
            },
        )

        result = await service.run_job(Retailer.BERMOR)

        assert result.success is True
        assert result.items_scraped == 3
        assert result.items_updated == 2
        assert result.items_failed == 1
        assert await product_count(session_factory) == 2

    async def test_adapter_failure_marks_job_failed(self, session_factory):
        error = FetchError("https://shop.example.ph/page/3/", attempts=3)
        service = make_service(
            session_factory,
            {
                Retailer.BERMOR: {
                    "listings": [raw("AMD Ryzen 5 7600 Processor"), raw("NZXT H5 Flow")],
                    "error": error,
                }
            },
        )

        with pytest.raises(FetchError):
            await service.run_job(Retailer.BERMOR)

        [job] = await all_jobs(session_factory)
        assert job.status == JobStatus.FAILED
        assert job.items_scraped == 2
        assert job.items_updated == 2
        assert job.error
        assert "FetchError" in job.error_traceback
        assert job.completed_at is not None
        # Listings merged before the failure are kept
        assert await product_count(session_factory) == 2
        assert not ScraperService.is_running(Retailer.BERMOR)

    async def test_cancelled_job_marked_failed(self, session_factory):
        stalled = asyncio.Event()
        service = make_service(
            session_factory,
            {
                Retailer.BERMOR: {
                    "adapter_class": StallingAdapter,
                    "stalled": stalled,
                    "listings": [
                        raw("AMD Ryzen 5 7600 Processor", "12000"),
                        raw("Kingston Fury Beast 16GB DDR5", "3495"),
                    ],
                }
            },
        )

        task = asyncio.create_task(service.run_job(Retailer.BERMOR))
        await asyncio.wait_for(stalled.wait(), timeout=5)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        [job] = await all_jobs(session_factory)
        assert job.status == JobStatus.FAILED
        assert job.error == "cancelled"
        assert job.completed_at is not None
        assert job.items_scraped == 2
        assert job.items_updated == 2
        assert await product_count(session_factory) == 2
        assert not ScraperService.is_running(Retailer.BERMOR)

    async def test_unregistered_retailer(self, session_factory):
        service = make_service(session_factory, {})

        with pytest.raises(AdapterNotFoundError):
            await service.run_job(Retailer.PCWORTH)

        assert await all_jobs(session_factory) == []
        assert not ScraperService.is_running(Retailer.PCWORTH)


# ============================================================================
# TESTS: ONE JOB PER RETAILER
# ============================================================================

class TestRetailerGuard:
    """Tests for the per-retailer in-flight guard."""

    async def test_rejected_while_running(self, session_factory):
        ScraperService._running_retailers.add(Retailer.BERMOR)
        service = make_service(session_factory, {Retailer.BERMOR: {"listings": [raw("NZXT H5 Flow")]}})

        with pytest.raises(JobAlreadyRunningError):
            await service.run_job(Retailer.BERMOR)

        assert await all_jobs(session_factory) == []
        assert await product_count(session_factory) == 0

    async def test_overlapping_runs(self, session_factory):
        gate = asyncio.Event()
        service = make_service(
            session_factory,
            {Retailer.BERMOR: {"listings": [raw("NZXT H5 Flow")], "gate": gate}},
        )
        # A second instance shares the guard
        other = ScraperService(
            session_factory,
            adapter_factory=service.adapter_factory,
            fetcher_factory=NullFetcher,
        )

        first = asyncio.create_task(service.run_job(Retailer.BERMOR))
        while not ScraperService.is_running(Retailer.BERMOR):
            await asyncio.sleep(0)

        with pytest.raises(JobAlreadyRunningError):
            await other.run_job(Retailer.BERMOR)

        gate.set()
        result = await first

        assert result.success is True
        assert len(await all_jobs(session_factory)) == 1
        assert not ScraperService.is_running(Retailer.BERMOR)

    async def test_other_retailers_not_blocked(self, session_factory):
        ScraperService._running_retailers.add(Retailer.BERMOR)

        class DatablitzListAdapter(ListAdapter):
            retailer = Retailer.DATABLITZ

        service = make_service(
            session_factory,
            {Retailer.DATABLITZ: {"adapter_class": DatablitzListAdapter, "listings": [raw("NZXT H5 Flow")]}},
        )

        result = await service.run_job(Retailer.DATABLITZ)

        assert result.success is True


# ============================================================================
# TESTS: RUN ALL
# ============================================================================

class TestRunAllJobs:
    """Tests for ScraperService.run_all_jobs."""

    async def test_failures_do_not_stop_other_retailers(self, session_factory):
        class DatablitzListAdapter(ListAdapter):
            retailer = Retailer.DATABLITZ

        service = make_service(
            session_factory,
            {
                Retailer.BERMOR: {"listings": [raw("NZXT H5 Flow")], "error": RuntimeError("layout changed")},
                Retailer.DATABLITZ: {"adapter_class": DatablitzListAdapter, "listings": [raw("Corsair 4000D")]},
            },
        )

        results = await service.run_all_jobs()

        assert [r.retailer for r in results] == [Retailer.BERMOR, Retailer.DATABLITZ]
        assert results[0].success is False
        assert results[0].error == "layout changed"
        assert results[0].items_scraped == 1
        assert results[1].success is True
        assert results[1].items_updated == 1

    async def test_explicit_retailers(self, session_factory):
        ScraperService._running_retailers.add(Retailer.DATABLITZ)
        service = make_service(session_factory, {Retailer.BERMOR: {}})

        results = await service.run_all_jobs(["BERMOR", Retailer.DATABLITZ, Retailer.PCWORTH])

        assert [r.success for r in results] == [True, False, False]
        assert "already running" in results[1].error
        assert "No adapter registered" in results[2].error


# ============================================================================
# TESTS: END TO END
# ============================================================================

CATEGORY_URL = "https://bermorzone.com.ph/product-category/video-cards/"


def bermor_page(names: List[Tuple[int, str]], next_page: bool) -> str:
    blocks = "".join(
        f"""
        <li class="product type-product">
          <a href="https://bermorzone.com.ph/product/{idx}/" class="woocommerce-LoopProduct-link">
            <img src="https://bermorzone.com.ph/img/{idx}.jpg">
            <h2 class="woocommerce-loop-product__title">{name}</h2>
            <span class="price">₱{10000 + idx * 1000:,}.00</span>
          </a>
        </li>
        """
        for idx, name in names
    )
    next_link = f'<a class="next page-numbers" href="{CATEGORY_URL}page/2/">→</a>' if next_page else ""
    return f'<html><body><ul class="products">{blocks}</ul>{next_link}</body></html>'


class TestEndToEnd:
    """Bermor crawl through normalization and merge."""

    async def test_bermor_two_pages(self, session_factory, fake_sleep, sleeps):
        pages = {
            CATEGORY_URL: bermor_page(
                [
                    (1, "MSI GeForce RTX 4060 Ventus 2X"),
                    (2, "Sapphire Pulse Radeon RX 7600"),
                    (3, "Zotac Gaming RTX 3050 Twin Edge"),
                ],
                next_page=True,
            ),
            f"{CATEGORY_URL}page/2/": bermor_page(
                [
                    (4, "ASUS Dual RTX 4070 Super"),
                    (5, "Gigabyte Radeon RX 7800 XT Gaming OC"),
                ],
                next_page=False,
            ),
        }
        service = make_service(
            session_factory,
            {
                Retailer.BERMOR: {
                    "adapter_class": BermorAdapter,
                    "category_urls": {"GPU": [CATEGORY_URL]},
                    "sleep": fake_sleep,
                }
            },
            fetcher_factory=lambda: PageFetcher(pages),
        )

        result = await service.run_job(Retailer.BERMOR)

        assert result.success is True
        assert result.items_scraped == 5
        assert result.items_updated == 5
        assert sleeps == [1.0]

        async with session_factory() as session:
            products = (
                await session.execute(select(Product).options(selectinload(Product.listings)))
            ).scalars().all()

        assert len(products) == 5
        for product in products:
            assert product.category.value == "GPU"
            assert [l.retailer for l in product.listings] == [Retailer.BERMOR]
        assert {p.brand for p in products} == {"MSI", "Sapphire", "Zotac", "ASUS", "Gigabyte"}
