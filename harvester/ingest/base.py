"""Record types and run configuration for catalog harvesting."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from harvester.config import Settings, settings


@dataclass(frozen=True)
class BrandRecord:
    """A brand discovered on the catalog."""

    name: str
    slug: str
    description: str = ""
    image_url: str = ""
    source_url: str = ""


@dataclass(frozen=True)
class TobaccoMetadata:
    """Domain attributes of a tobacco. Missing values stay None."""

    strength: Optional[str] = None
    cut: Optional[str] = None
    flavor_profile: Optional[str] = None
    rating: Optional[float] = None
    reviews_count: Optional[int] = None


@dataclass(frozen=True)
class TobaccoRecord:
    """A tobacco scraped from its detail page."""

    name: str
    slug: str
    description: str = ""
    image_url: str = ""
    source_url: str = ""
    metadata: TobaccoMetadata = field(default_factory=TobaccoMetadata)


@dataclass(frozen=True)
class ExtractionCandidate:
    """Raw (name, slug, url) triple produced by one extraction strategy."""

    name: str
    slug: str
    source_url: str


@dataclass(frozen=True)
class ScrapeConfig:
    """Per-run scraper configuration. Durations are in seconds."""

    timeout: float = 60.0
    max_retries: int = 3
    delay_brand: float = 2.0
    delay_tobacco: float = 1.0
    backoff_base: float = 2.0
    content_wait: float = 5.0
    render_settle: float = 2.0
    scroll_settle: float = 2.0
    max_scroll_attempts: int = 50

    @classmethod
    def from_settings(cls, source: Settings = settings) -> "ScrapeConfig":
        """Build a run configuration from environment settings."""
        return cls(
            timeout=source.scraper_timeout,
            max_retries=source.scraper_max_retries,
            delay_brand=source.scraper_delay_brand,
            delay_tobacco=source.scraper_delay_tobacco,
            backoff_base=source.scraper_backoff_base,
            content_wait=source.content_wait_seconds,
            render_settle=source.render_settle_seconds,
            scroll_settle=source.scroll_settle_seconds,
            max_scroll_attempts=source.max_scroll_attempts,
        )


@dataclass
class HarvestMetrics:
    """Counters collected during a harvest run."""

    brands_found: int = 0
    brands_enriched: int = 0
    tobaccos_scraped: int = 0
    items_skipped: int = 0
    errors: int = 0
    duration_seconds: float = 0.0
    failed_urls: list[str] = field(default_factory=list)

    def record_failure(self, url: str) -> None:
        self.errors += 1
        if url not in self.failed_urls:
            self.failed_urls.append(url)

    @property
    def success_rate(self) -> Optional[float]:
        """Share of successful units of work, in percent."""
        total = self.brands_found + self.tobaccos_scraped
        if total == 0:
            return None
        return total / (total + self.errors) * 100

    def log_summary(self, logger: logging.Logger) -> None:
        """Log a human-readable run summary."""
        logger.info("=" * 50)
        logger.info("HARVEST SUMMARY")
        logger.info("=" * 50)
        logger.info(f"Brands found:        {self.brands_found}")
        logger.info(f"Brands enriched:     {self.brands_enriched}")
        logger.info(f"Tobaccos scraped:    {self.tobaccos_scraped}")
        logger.info(f"Items skipped:       {self.items_skipped}")
        logger.info(f"Errors:              {self.errors}")
        logger.info(f"Duration:            {self.duration_seconds:.2f}s")

        if self.failed_urls:
            logger.info(f"Failed URLs:         {len(self.failed_urls)}")
            for index, url in enumerate(self.failed_urls, start=1):
                logger.info(f"  {index}. {url}")

        if self.success_rate is not None:
            logger.info(f"Success rate:        {self.success_rate:.2f}%")
        logger.info("=" * 50)


@dataclass
class HarvestResult:
    """Output of a full harvest run."""

    brands: list[BrandRecord]
    tobaccos: list[TobaccoRecord]
    metrics: HarvestMetrics
