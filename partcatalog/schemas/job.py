"""Scrape job result schema."""

from typing import Optional

from pydantic import BaseModel

from partcatalog.core.enums import Retailer


class JobResult(BaseModel):
    """Summary returned to whoever triggered a scrape job."""

    success: bool
    retailer: Retailer
    job_id: Optional[str] = None
    items_scraped: int = 0
    items_updated: int = 0
    items_failed: int = 0
    duration_seconds: Optional[float] = None
    error: Optional[str] = None
