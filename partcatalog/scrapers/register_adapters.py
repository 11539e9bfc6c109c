"""Register all retailer adapters with the factory.

Call register_all_adapters() once at startup (the CLI does) before
running jobs through the global factory.
"""

from typing import Optional

import structlog

from partcatalog.config import Settings, settings as default_settings
from partcatalog.core.enums import Retailer
from partcatalog.scrapers.adapters import BermorAdapter, DatablitzAdapter, PCWorthAdapter
from partcatalog.scrapers.factory import AdapterFactory, get_adapter_factory

logger = structlog.get_logger(__name__)


def register_all_adapters(
    factory: Optional[AdapterFactory] = None,
    config: Optional[Settings] = None,
) -> AdapterFactory:
    """Register every available adapter, configured from settings.

    Args:
        factory: Factory to register into (defaults to the global one)
        config: Settings to read page caps and delays from

    Returns:
        The factory the adapters were registered into
    """
    factory = factory or get_adapter_factory()
    config = config or default_settings

    adapters = [
        (
            Retailer.BERMOR,
            BermorAdapter,
            {
                "max_pages": config.BERMOR_MAX_PAGES,
                "page_delay": config.HTML_PAGE_DELAY_SECONDS,
                "category_delay": config.HTML_CATEGORY_DELAY_SECONDS,
            },
        ),
        (Retailer.DATABLITZ, DatablitzAdapter, {"max_pages": config.DATABLITZ_MAX_PAGES}),
        (Retailer.PCWORTH, PCWorthAdapter, {"max_pages": config.PCWORTH_MAX_PAGES}),
    ]

    for retailer, adapter_class, options in adapters:
        try:
            factory.register_adapter(retailer, adapter_class, **options)
        except Exception as e:
            logger.error(
                "adapter_registration_failed",
                retailer=retailer.value,
                error=str(e),
                exc_info=True,
            )

    logger.info(
        "all_adapters_registered",
        count=len(factory.get_registered_retailers()),
        retailers=[r.value for r in factory.get_registered_retailers()],
    )
    return factory
