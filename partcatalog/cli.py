"""Command-line entry point for running and inspecting the ingestion pipeline.

Usage:
    partcatalog init-db
    partcatalog scrape --retailer BERMOR
    partcatalog scrape --all
    partcatalog schedule
    partcatalog products --category GPU --search rtx --page 1
    partcatalog sweep --days 30
"""

import argparse
import asyncio
import sys
from decimal import Decimal
from typing import List, Optional

import structlog

from partcatalog.config import settings
from partcatalog.core.enums import PartCategory, Retailer
from partcatalog.core.exceptions import PartCatalogException
from partcatalog.core.log_config import configure_logging
from partcatalog.db.session import async_session_factory, engine, init_db
from partcatalog.schemas.job import JobResult
from partcatalog.scrapers.register_adapters import register_all_adapters
from partcatalog.scrapers.scheduler import SchedulerConfig, ScraperScheduler
from partcatalog.scrapers.scraper_service import ScraperService
from partcatalog.services.product_service import ProductService

logger = structlog.get_logger(__name__)


def _format_price(price: Optional[Decimal]) -> str:
    if price is None:
        return "-"
    return f"₱{price:,.2f}"


def _print_job_result(result: JobResult) -> None:
    mark = "✅" if result.success else "❌"
    print(f"{mark} {result.retailer.value}")
    print(f"   Scraped: {result.items_scraped}")
    print(f"   Merged:  {result.items_updated}")
    print(f"   Failed:  {result.items_failed}")
    if result.duration_seconds is not None:
        print(f"   Duration: {result.duration_seconds:.2f}s")
    if result.error:
        print(f"   Error: {result.error}")


async def cmd_init_db(args: argparse.Namespace) -> int:
    await init_db()
    print("✅ Database tables created")
    return 0


async def cmd_scrape(args: argparse.Namespace) -> int:
    register_all_adapters()
    await init_db()
    service = ScraperService(async_session_factory)

    if args.all:
        results = await service.run_all_jobs()
    else:
        try:
            results = [await service.run_job(Retailer(args.retailer.upper()))]
        except PartCatalogException as e:
            print(f"❌ {e}")
            return 1
        except Exception as e:
            print(f"❌ Scrape of {args.retailer.upper()} failed: {type(e).__name__}: {e}")
            return 1

    print(f"\n{'=' * 60}")
    print("  Scrape Summary")
    print(f"{'=' * 60}")
    for result in results:
        _print_job_result(result)
    return 0 if all(r.success for r in results) else 1


async def cmd_schedule(args: argparse.Namespace) -> int:
    config = SchedulerConfig.from_settings()
    if not config.enabled:
        print("❌ Scheduler disabled (set SCHEDULER_ENABLED=true)")
        return 1
    if args.retailers:
        config.retailers = [Retailer(code.strip().upper()) for code in args.retailers.split(",") if code.strip()]
    if args.interval_hours:
        config.interval_hours = args.interval_hours

    if not config.retailers:
        print("❌ No retailers to schedule (set SCHEDULER_RETAILERS or --retailers)")
        return 1

    register_all_adapters()
    await init_db()

    scheduler = ScraperScheduler(ScraperService(async_session_factory), config)
    scheduler.start()
    print(f"⏰ Scheduler running for {', '.join(r.value for r in config.retailers)} "
          f"every {config.interval_hours}h (Ctrl+C to stop)")

    try:
        await asyncio.Event().wait()
    except asyncio.CancelledError:
        pass
    finally:
        await scheduler.stop()
    return 0


async def cmd_products(args: argparse.Namespace) -> int:
    category = PartCategory(args.category.upper()) if args.category else None

    async with async_session_factory() as db:
        result = await ProductService(db).search_products(
            category=category,
            search=args.search,
            page=args.page,
            limit=args.limit,
        )

    meta = result.pagination
    print(f"\n📦 Page {meta.page}/{max(meta.total_pages, 1)} ({meta.total} products)\n")
    for product in result.data:
        print(f"[{product.category.value}] {product.name}")
        if product.brand:
            print(f"    🏢 Brand: {product.brand}")
        print(f"    💰 {_format_price(product.lowest_price)} - {_format_price(product.highest_price)}")
        for listing in product.listings:
            print(f"    🏪 {listing.retailer.value}: {_format_price(listing.price)} "
                  f"({listing.stock_status.value}) {listing.retailer_url}")
        print()
    return 0


async def cmd_sweep(args: argparse.Namespace) -> int:
    retailer = Retailer(args.retailer.upper()) if args.retailer else None

    async with async_session_factory() as db:
        count = await ProductService(db).deactivate_stale_listings(retailer=retailer, days=args.days)

    print(f"🧹 Deactivated {count} stale listing(s)")
    return 0


COMMANDS = {
    "init-db": cmd_init_db,
    "scrape": cmd_scrape,
    "schedule": cmd_schedule,
    "products": cmd_products,
    "sweep": cmd_sweep,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="partcatalog",
        description="PC parts catalog ingestion pipeline",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    scrape = subparsers.add_parser("scrape", help="Run scrape jobs now")
    target = scrape.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--retailer",
        choices=[r.value for r in Retailer],
        type=str.upper,
        help="Retailer to scrape",
    )
    target.add_argument("--all", action="store_true", help="Scrape every registered retailer")

    schedule = subparsers.add_parser("schedule", help="Run the periodic scheduler")
    schedule.add_argument("--retailers", help="Comma-separated retailer codes (default: SCHEDULER_RETAILERS)")
    schedule.add_argument("--interval-hours", type=float, help="Hours between runs (default: SCHEDULER_INTERVAL_HOURS)")

    products = subparsers.add_parser("products", help="Query the catalog")
    products.add_argument(
        "--category",
        choices=[c.value for c in PartCategory],
        type=str.upper,
        help="Category filter",
    )
    products.add_argument("--search", help="Case-insensitive name/brand search")
    products.add_argument("--page", type=int, default=1)
    products.add_argument("--limit", type=int, default=20)

    sweep = subparsers.add_parser("sweep", help="Deactivate listings not scraped recently")
    sweep.add_argument("--retailer", choices=[r.value for r in Retailer], type=str.upper)
    sweep.add_argument(
        "--days",
        type=int,
        default=settings.STALE_LISTING_DAYS,
        help=f"Staleness threshold in days (default: {settings.STALE_LISTING_DAYS})",
    )

    return parser


async def _run(args: argparse.Namespace) -> int:
    try:
        return await COMMANDS[args.command](args)
    finally:
        await engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments and run the selected command."""
    args = build_parser().parse_args(argv)
    configure_logging(debug=args.debug or settings.DEBUG)

    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
