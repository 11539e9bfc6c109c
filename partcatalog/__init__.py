"""PartCatalog: PC parts catalog ingestion pipeline."""

__version__ = "0.1.0"
