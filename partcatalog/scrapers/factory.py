"""Factory for creating and managing retailer adapter instances."""

from typing import Any, Dict, List, Optional, Type

import structlog

from partcatalog.core.enums import Retailer
from partcatalog.scrapers.base import BaseAdapter
from partcatalog.scrapers.utils.fetcher import Fetcher


logger = structlog.get_logger(__name__)


class AdapterFactory:
    """Registry of adapter classes and the per-retailer options they are built with.

    Adapters are created fresh for every job with the job's Fetcher
    injected, so no crawl state leaks between runs.
    """

    def __init__(self):
        self._adapter_registry: Dict[Retailer, Type[BaseAdapter]] = {}
        self._adapter_options: Dict[Retailer, Dict[str, Any]] = {}

    def register_adapter(
        self,
        retailer: Retailer,
        adapter_class: Type[BaseAdapter],
        **options: Any,
    ) -> None:
        """Register an adapter class for a retailer.

        Args:
            retailer: Retailer the adapter crawls
            adapter_class: Adapter class (must inherit from BaseAdapter)
            **options: Constructor keyword arguments (page caps, delays, ...)
        """
        if not issubclass(adapter_class, BaseAdapter):
            raise ValueError(f"Adapter class must inherit from BaseAdapter: {adapter_class}")

        self._adapter_registry[retailer] = adapter_class
        self._adapter_options[retailer] = dict(options)
        logger.info(
            "adapter_registered",
            retailer=retailer.value,
            adapter_type=adapter_class.adapter_type,
            options=options,
        )

    def create_adapter(self, retailer: Retailer, fetcher: Fetcher) -> Optional[BaseAdapter]:
        """Create a configured adapter instance.

        Args:
            retailer: Retailer to crawl
            fetcher: Fetcher the adapter will drive

        Returns:
            Adapter instance, or None if the retailer is not registered
        """
        adapter_class = self._adapter_registry.get(retailer)
        if not adapter_class:
            logger.warning("adapter_not_found", retailer=retailer.value)
            return None

        adapter = adapter_class(fetcher, **self._adapter_options.get(retailer, {}))

        logger.info(
            "adapter_created",
            retailer=retailer.value,
            adapter_type=adapter.adapter_type,
        )

        return adapter

    def get_registered_retailers(self) -> List[Retailer]:
        return list(self._adapter_registry.keys())

    def has_adapter(self, retailer: Retailer) -> bool:
        return retailer in self._adapter_registry


# Global factory instance
adapter_factory = AdapterFactory()


def get_adapter_factory() -> AdapterFactory:
    """Get the global adapter factory instance."""
    return adapter_factory
