"""Enums shared by the catalog models and the scraper pipeline."""

from enum import Enum


class Retailer(str, Enum):
    """Retail catalogs crawled by the ingestion pipeline."""

    BERMOR = "BERMOR"
    DATABLITZ = "DATABLITZ"
    PCWORTH = "PCWORTH"


class PartCategory(str, Enum):
    """Canonical part taxonomy."""

    CPU = "CPU"
    GPU = "GPU"
    MOTHERBOARD = "MOTHERBOARD"
    RAM = "RAM"
    STORAGE = "STORAGE"
    PSU = "PSU"
    CASE = "CASE"
    CPU_COOLER = "CPU_COOLER"
    CASE_FAN = "CASE_FAN"
    MONITOR = "MONITOR"
    PERIPHERAL = "PERIPHERAL"
    ACCESSORY = "ACCESSORY"
    OTHER = "OTHER"


class StockStatus(str, Enum):
    """Per-retailer stock status of a listing."""

    IN_STOCK = "IN_STOCK"
    LIMITED_STOCK = "LIMITED_STOCK"  # Manual/administrative use only
    OUT_OF_STOCK = "OUT_OF_STOCK"


class JobStatus(str, Enum):
    """Lifecycle of a scrape job."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
