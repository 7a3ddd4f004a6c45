"""Sequential, rate-limited harvest of brands and their tobaccos."""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from playwright.async_api import Page

from harvester.config import Settings, settings
from harvester.ingest.base import (
    BrandRecord,
    HarvestMetrics,
    HarvestResult,
    ScrapeConfig,
    TobaccoRecord,
)
from harvester.ingest.browser import BrowserSession
from harvester.ingest.detail import parse_brand_detail, scrape_brand_page, scrape_tobacco_page
from harvester.ingest.navigation import PageLoadError, navigate, with_query
from harvester.ingest.normalize import CATALOG_ROOT, dedupe_by_slug, normalize_candidates, normalize_slug
from harvester.ingest.readiness import await_rendered_content
from harvester.ingest.scroll import drive_scroll
from harvester.ingest.strategies import (
    ExtractionStrategy,
    brand_strategies,
    extract_with_strategies,
    tobacco_strategies,
)
from harvester.logging_config import get_logger

logger = logging.getLogger(__name__)


class CatalogHarvester:
    """
    Harvest the catalog through one shared browser page.

    Work is strictly sequential: brands in the order given, items in the
    order their links were found. A failing brand is logged and contributes
    nothing; it never aborts the run.
    """

    def __init__(
        self,
        page: Page,
        config: ScrapeConfig,
        app_settings: Settings = settings,
        metrics: Optional[HarvestMetrics] = None,
    ):
        self.page = page
        self.config = config
        self.settings = app_settings
        self.metrics = metrics or HarvestMetrics()
        self.brands: Dict[str, BrandRecord] = {}

    def brand_url(self, slug: str) -> str:
        base = self.settings.catalog_base_url.rstrip("/")
        return f"{base}/{CATALOG_ROOT}/{normalize_slug(slug)}"

    def brand_records(self) -> List[BrandRecord]:
        """Brands seen this run, in discovery order, with enrichment applied."""
        return list(self.brands.values())

    async def _open(self, url: str) -> None:
        await navigate(self.page, url, self.config)
        await await_rendered_content(self.page, self.config.content_wait, self.config.render_settle)

    async def _extract(self, strategies: List[ExtractionStrategy]):
        candidates = await extract_with_strategies(self.page, strategies)
        return normalize_candidates(candidates, self.page.url)

    # =========================================================================
    # Brands
    # =========================================================================

    async def scrape_brands(self) -> List[BrandRecord]:
        """
        Discover every brand on the brand listing page.

        Raises:
            PageLoadError: The listing page never loaded
        """
        url = with_query(self.settings.brands_url, self.settings.listing_query)
        logger.info(f"Starting brand scrape from {url}")

        await self._open(url)

        strategies = brand_strategies()
        candidates = await drive_scroll(
            self.page,
            lambda: self._extract(strategies),
            max_attempts=self.config.max_scroll_attempts,
            settle=self.config.scroll_settle,
        )

        brands = dedupe_by_slug(
            BrandRecord(name=c.name, slug=c.slug, source_url=c.source_url) for c in candidates
        )
        for brand in brands:
            self.brands.setdefault(brand.slug, brand)
        self.metrics.brands_found += len(brands)

        if brands:
            logger.info(f"Extracted {len(brands)} unique brands")
        else:
            logger.warning("No brands found with any extraction strategy; the site structure may have changed")
        return brands

    async def scrape_brand(self, slug: str) -> Optional[BrandRecord]:
        """Scrape a single brand page by slug (targeted runs)."""
        url = self.brand_url(slug)
        try:
            brand = await scrape_brand_page(self.page, url, self.config, self.settings.listing_query)
        except PageLoadError as e:
            logger.error(f"Failed to load brand page {url}: {e.reason}")
            self.metrics.record_failure(url)
            return None

        if brand is None:
            logger.warning(f"Brand page {url} has no recognizable brand name, skipping")
            return None

        self.brands[brand.slug] = brand
        self.metrics.brands_found += 1
        if brand.description or brand.image_url:
            self.metrics.brands_enriched += 1
        return brand

    async def _enrich_from_current_page(self, brand: BrandRecord, source_url: str) -> BrandRecord:
        """Fill a brand's empty description/image from its already loaded page."""
        known = self.brands.get(brand.slug, brand)
        if known.description and known.image_url:
            return known

        detail = parse_brand_detail(await self.page.content(), self.page.url, source_url)
        if detail is None:
            return known

        enriched = replace(
            known,
            description=known.description or detail.description,
            image_url=known.image_url or detail.image_url,
        )
        if enriched != known:
            self.metrics.brands_enriched += 1
        self.brands[brand.slug] = enriched
        return enriched

    # =========================================================================
    # Tobaccos
    # =========================================================================

    async def scrape_brand_tobaccos(self, brand: BrandRecord, limit: Optional[int] = None) -> List[TobaccoRecord]:
        """
        Scrape all (or the first limit) tobaccos of one brand.

        Any failure of the brand as a whole is absorbed: logged, counted and
        returned as an empty list.
        """
        log = get_logger(__name__, brand=brand.slug)
        source_url = brand.source_url or self.brand_url(brand.slug)
        brand_url = with_query(source_url, self.settings.listing_query)
        limit_info = f" (limit: {limit})" if limit else ""
        log.info(f"Scraping tobaccos for brand: {brand.name} ({brand_url}){limit_info}")

        try:
            if self.page.url == brand_url:
                log.debug(f"Brand page already loaded: {brand_url}")
            else:
                await self._open(brand_url)
            await self._enrich_from_current_page(brand, source_url)

            strategies = tobacco_strategies(brand.slug)
            links = await drive_scroll(
                self.page,
                lambda: self._extract(strategies),
                max_attempts=self.config.max_scroll_attempts,
                settle=self.config.scroll_settle,
                limit=limit,
            )
            links = dedupe_by_slug(links)
            log.info(f"Found {len(links)} unique tobacco links for brand {brand.name}")

            tobaccos: List[TobaccoRecord] = []
            for link in links:
                if limit and len(tobaccos) >= limit:
                    log.info(f"Reached limit of {limit} tobaccos, stopping scrape")
                    break

                await asyncio.sleep(self.config.delay_tobacco)

                try:
                    tobacco = await scrape_tobacco_page(
                        self.page, link.source_url, self.config, self.settings.detail_query
                    )
                except PageLoadError as e:
                    log.warning(f"Skipping tobacco {link.source_url}: {e.reason}")
                    self.metrics.record_failure(link.source_url)
                    continue

                if tobacco is None:
                    self.metrics.items_skipped += 1
                    continue

                tobaccos.append(tobacco)
                log.debug(f"Scraped tobacco: {tobacco.name} ({len(tobaccos)}/{limit or '∞'})")

            tobaccos = dedupe_by_slug(tobaccos)
            self.metrics.tobaccos_scraped += len(tobaccos)
            log.info(f"Successfully scraped {len(tobaccos)} tobaccos for brand {brand.name}")
            return tobaccos

        except Exception as e:
            log.error(f"Failed to scrape tobaccos for brand {brand.name}: {type(e).__name__}: {e}")
            self.metrics.record_failure(source_url)
            return []

    async def harvest_all(self, brands: Iterable[BrandRecord], limit: Optional[int] = None) -> List[TobaccoRecord]:
        """Harvest tobaccos brand by brand, pausing delay_brand between brands."""
        brands = list(brands)
        all_tobaccos: List[TobaccoRecord] = []

        logger.info(f"Starting tobacco scrape for {len(brands)} brands")

        for i, brand in enumerate(brands):
            logger.info(f"Processing brand {i + 1}/{len(brands)}: {brand.name}")

            if i > 0:
                await asyncio.sleep(self.config.delay_brand)

            all_tobaccos.extend(await self.scrape_brand_tobaccos(brand, limit))

        logger.info(f"Completed tobacco scrape. Total tobaccos: {len(all_tobaccos)}")
        return all_tobaccos

    async def harvest_targeted(self, slugs: Iterable[str], limit: Optional[int] = None) -> List[TobaccoRecord]:
        """
        Harvest only the given brands, each scraped from its own page first.

        Slugs are normalized and repeats dropped, first occurrence wins. The
        tobacco list is read from the brand page just loaded, so every brand
        costs one listing navigation.
        """
        unique_slugs = list(dict.fromkeys(s for s in map(normalize_slug, slugs) if s))
        all_tobaccos: List[TobaccoRecord] = []

        logger.info(f"Starting targeted harvest for {len(unique_slugs)} brands")

        for i, slug in enumerate(unique_slugs):
            logger.info(f"Processing brand {i + 1}/{len(unique_slugs)}: {slug}")

            if i > 0:
                await asyncio.sleep(self.config.delay_brand)

            brand = await self.scrape_brand(slug)
            if brand is None:
                continue
            all_tobaccos.extend(await self.scrape_brand_tobaccos(brand, limit))

        logger.info(f"Completed targeted harvest. Total tobaccos: {len(all_tobaccos)}")
        return all_tobaccos


async def run_harvest(
    config: Optional[ScrapeConfig] = None,
    brand_slugs: Optional[List[str]] = None,
    limit: Optional[int] = None,
    app_settings: Settings = settings,
) -> HarvestResult:
    """
    Run one harvest: open a browser, find brands, scrape their tobaccos.

    Args:
        config: Run configuration; defaults to environment settings
        brand_slugs: Harvest only these brands instead of discovering all
        limit: Max tobaccos per brand

    Raises:
        PageLoadError: The brand listing page could not be loaded
        BrowserStartupError: Chromium failed to launch
    """
    config = config or ScrapeConfig.from_settings(app_settings)
    metrics = HarvestMetrics()
    start = time.monotonic()

    logger.info("Starting harvest run")
    logger.debug(f"Scrape config: {config}")

    try:
        async with BrowserSession(app_settings, timeout=config.timeout) as page:
            harvester = CatalogHarvester(page, config, app_settings, metrics)

            if brand_slugs:
                tobaccos = await harvester.harvest_targeted(brand_slugs, limit)
            else:
                brands = await harvester.scrape_brands()
                tobaccos = await harvester.harvest_all(brands, limit)

            return HarvestResult(
                brands=harvester.brand_records(),
                tobaccos=tobaccos,
                metrics=metrics,
            )
    except Exception:
        metrics.errors += 1
        raise
    finally:
        metrics.duration_seconds = time.monotonic() - start
        metrics.log_summary(logger)
