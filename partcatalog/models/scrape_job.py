"""Scrape job tracking and monitoring."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import JSON, DateTime, Enum as SAEnum, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from partcatalog.core.enums import JobStatus, Retailer
from partcatalog.models.base import Base, UUIDPrimaryKeyMixin, utcnow


class ScrapeJob(UUIDPrimaryKeyMixin, Base):
    """Tracks execution of scrape jobs.

    Each Job Runner invocation creates one ScrapeJob record to track status,
    item counters and errors. Rows are not touched after completion.
    """

    __tablename__ = "scrape_jobs"

    retailer: Mapped[Retailer] = mapped_column(
        SAEnum(Retailer, name="retailer", native_enum=False, length=20),
        nullable=False,
        index=True,
    )

    status: Mapped[JobStatus] = mapped_column(
        SAEnum(
            JobStatus,
            name="job_status",
            native_enum=False,
            length=20,
            values_callable=lambda enum: [member.value for member in enum],
        ),
        nullable=False,
        default=JobStatus.PENDING,
        index=True,
        comment="Status: 'pending', 'running', 'completed', 'failed'",
    )

    # Timing
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="When job started executing",
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="When job finished (success or failure)",
    )
    duration_seconds: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(8, 2),
        nullable=True,
        comment="Total execution time in seconds",
    )

    # Metrics
    items_scraped: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Raw listings yielded by the adapter",
    )
    items_updated: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Listings merged into the catalog (created or updated)",
    )
    items_failed: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Listings that failed normalization or merge",
    )

    # Error tracking
    error: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Error message if job failed",
    )
    error_traceback: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        comment="Full error traceback for debugging",
    )

    metadata_: Mapped[dict] = mapped_column(
        "metadata",
        JSON,
        nullable=False,
        default=dict,
        comment="Adapter name and paging limits used for this run",
    )

    def __repr__(self) -> str:
        return f"<ScrapeJob(id={self.id}, retailer={self.retailer.value}, status='{self.status.value}')>"
