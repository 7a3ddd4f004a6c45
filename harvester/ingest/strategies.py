"""Ordered extraction strategies for catalog list pages.

The catalog's markup changes without notice, so list pages are read through a
chain of independent heuristics. Strategies are ordered by trust: structural
class matching, then raw link scanning, then embedded JSON, then (brands only)
a hard-coded lookup table. The first strategy returning anything wins.
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from playwright.async_api import Page
from selectolax.parser import HTMLParser, Node

from harvester.ingest.base import ExtractionCandidate
from harvester.ingest.json_extractor import (
    has_type,
    entity_url,
    extract_json_scripts,
    find_catalog_entities,
)
from harvester.ingest.normalize import (
    CATALOG_ROOT,
    RESERVED_SLUGS,
    absolute_url,
    brand_slug_from_url,
    catalog_segments,
    clean_text,
    is_tobacco_url,
    tobacco_slug_from_url,
)

logger = logging.getLogger(__name__)

CATALOG_LINK_SELECTOR = f'a[href*="/{CATALOG_ROOT}/"]'
CARD_NAME_SELECTOR = 'h1, h2, h3, [class*="name"], [class*="title"]'
HEADING_SELECTOR = 'h1, h2, h3, [class*="title"], [class*="name"]'

# Degraded mode: brands known to exist on the catalog
KNOWN_BRAND_SLUGS = [
    "dogma",
    "bonche",
    "satyr",
    "kraken",
    "world-tobacco-original",
    "trofimoffs",
    "tangiers",
    "palitra",
    "rustpunk",
    "severnyy",
    "jent",
    "deus",
    "snobless",
    "nash",
    "sarma",
    "sapphire-crown",
    "joy",
    "fake",
    "dusha",
    "darkside",
    "lezzet",
    "dokhaman",
    "total-flame",
    "antagonist",
    "bezdna",
    "reverse",
    "hell",
    "adam-i-eva",
    "cbx",
    "baza",
    "carlivan",
    "al-waha",
    "zapp",
    "sweddishot",
    "brume",
    "layalina",
    "fairytale-mist",
    "sarkozy",
    "kvist",
    "soex",
]


def _href(node: Optional[Node], page_url: str) -> str:
    if node is None:
        return ""
    return absolute_url(node.attributes.get("href") or "", page_url)


def _text(node: Optional[Node]) -> str:
    if node is None:
        return ""
    return clean_text(node.text(deep=True))


class ExtractionStrategy:
    """Base extraction strategy: one heuristic over a parsed page."""

    name: str = "base"

    def extract(self, tree: HTMLParser, page_url: str) -> List[ExtractionCandidate]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__}>"


# =============================================================================
# Brand list strategies
# =============================================================================


class BrandCardStrategy(ExtractionStrategy):
    """Cards whose class names look like brand/catalog items."""

    name = "brand_cards"
    card_selector = '[class*="card"], [class*="brand"], [class*="item"], [class*="object"]'

    def extract(self, tree: HTMLParser, page_url: str) -> List[ExtractionCandidate]:
        results = []
        cards = tree.css(self.card_selector)
        logger.debug(f"{self.name}: found {len(cards)} cards")

        for card in cards:
            link = card.css_first("a[href]")
            url = _href(link, page_url)
            slug = brand_slug_from_url(url)
            # Cards linking into a brand's product pages are tobaccos
            if not slug or len(catalog_segments(url)) != 1:
                continue
            name = _text(card.css_first(CARD_NAME_SELECTOR)) or _text(link)
            if name:
                results.append(ExtractionCandidate(name=name, slug=slug, source_url=url))

        return results


class BrandLinkStrategy(ExtractionStrategy):
    """Every link of the form /tobaccos/{brand}."""

    name = "brand_links"

    def extract(self, tree: HTMLParser, page_url: str) -> List[ExtractionCandidate]:
        results = []
        links = tree.css(CATALOG_LINK_SELECTOR)
        logger.debug(f"{self.name}: found {len(links)} catalog links")

        for link in links:
            url = _href(link, page_url)
            segments = catalog_segments(url)
            if len(segments) != 1 or segments[0].lower() in RESERVED_SLUGS:
                continue
            name = _text(link)
            # Icon-only and two-letter links are navigation, not brands
            if len(name) > 2:
                results.append(ExtractionCandidate(name=name, slug=segments[0], source_url=url))

        return results


class EmbeddedJsonBrandStrategy(ExtractionStrategy):
    """Brand entries found in JSON / JSON-LD script blocks."""

    name = "brand_json"

    def extract(self, tree: HTMLParser, page_url: str) -> List[ExtractionCandidate]:
        results = []
        for data in extract_json_scripts(tree):
            for entity in find_catalog_entities(data):
                raw_url = entity_url(entity)
                if raw_url:
                    url = absolute_url(raw_url, page_url)
                    segments = catalog_segments(url)
                    if len(segments) != 1:
                        continue
                    slug = entity.get("slug") or segments[0]
                elif entity.get("slug") and has_type(entity, "Brand"):
                    slug = entity["slug"]
                    url = absolute_url(f"/{CATALOG_ROOT}/{slug}", page_url)
                else:
                    continue

                if str(slug).lower() in RESERVED_SLUGS:
                    continue
                results.append(ExtractionCandidate(name=entity["name"], slug=str(slug), source_url=url))

        return results


class KnownBrandStrategy(ExtractionStrategy):
    """Match heading text against a table of known brand slugs."""

    name = "known_brands"

    def __init__(self, known_slugs: Optional[Sequence[str]] = None):
        self.known_slugs = list(known_slugs or KNOWN_BRAND_SLUGS)

    def extract(self, tree: HTMLParser, page_url: str) -> List[ExtractionCandidate]:
        results = []
        for heading in tree.css(HEADING_SELECTOR):
            name = _text(heading)
            if len(name) <= 2:
                continue

            lower_name = name.lower()
            hyphenated = lower_name.replace(" ", "-")
            match = next(
                (slug for slug in self.known_slugs if slug in lower_name or hyphenated in slug),
                None,
            )
            if match:
                results.append(
                    ExtractionCandidate(
                        name=name,
                        slug=match,
                        source_url=absolute_url(f"/{CATALOG_ROOT}/{match}", page_url),
                    )
                )

        return results


# =============================================================================
# Tobacco list strategies (brand page)
# =============================================================================


class TobaccoStrategy(ExtractionStrategy):
    """Base for strategies restricted to a single brand's tobaccos."""

    def __init__(self, brand_slug: str):
        self.brand_slug = brand_slug.lower()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} brand={self.brand_slug}>"


class TobaccoCardStrategy(TobaccoStrategy):
    """Product cards linking to /tobaccos/{brand}/{line}/{flavor}."""

    name = "tobacco_cards"
    card_selector = '[class*="card"], [class*="tobacco"], [class*="product"]'

    def extract(self, tree: HTMLParser, page_url: str) -> List[ExtractionCandidate]:
        results = []
        cards = tree.css(self.card_selector)
        logger.debug(f"{self.name}: found {len(cards)} cards")

        for card in cards:
            link = card.css_first("a[href]")
            url = _href(link, page_url)
            if not is_tobacco_url(url, self.brand_slug):
                continue
            name = _text(card.css_first(CARD_NAME_SELECTOR)) or _text(link)
            if name:
                results.append(
                    ExtractionCandidate(name=name, slug=tobacco_slug_from_url(url), source_url=url)
                )

        return results


class TobaccoLinkStrategy(TobaccoStrategy):
    """Every link of the form /tobaccos/{brand}/{line}/{flavor}."""

    name = "tobacco_links"

    def extract(self, tree: HTMLParser, page_url: str) -> List[ExtractionCandidate]:
        results = []
        links = tree.css(CATALOG_LINK_SELECTOR)
        logger.debug(f"{self.name}: found {len(links)} catalog links")

        for link in links:
            url = _href(link, page_url)
            if not is_tobacco_url(url, self.brand_slug):
                continue
            name = _text(link.css_first('[class*="name"], [class*="title"]')) or _text(link)
            if name:
                results.append(
                    ExtractionCandidate(name=name, slug=tobacco_slug_from_url(url), source_url=url)
                )

        return results


class EmbeddedJsonTobaccoStrategy(TobaccoStrategy):
    """Tobacco entries found in JSON / JSON-LD script blocks."""

    name = "tobacco_json"

    def extract(self, tree: HTMLParser, page_url: str) -> List[ExtractionCandidate]:
        results = []
        for data in extract_json_scripts(tree):
            for entity in find_catalog_entities(data):
                raw_url = entity_url(entity)
                if not raw_url:
                    continue
                url = absolute_url(raw_url, page_url)
                if not is_tobacco_url(url, self.brand_slug):
                    continue
                slug = entity.get("slug") or tobacco_slug_from_url(url)
                results.append(ExtractionCandidate(name=entity["name"], slug=str(slug), source_url=url))

        return results


def brand_strategies() -> List[ExtractionStrategy]:
    """Strategies for the brand listing page, highest trust first."""
    return [
        BrandCardStrategy(),
        BrandLinkStrategy(),
        EmbeddedJsonBrandStrategy(),
        KnownBrandStrategy(),
    ]


def tobacco_strategies(brand_slug: str) -> List[ExtractionStrategy]:
    """Strategies for one brand's tobacco list, highest trust first."""
    return [
        TobaccoCardStrategy(brand_slug),
        TobaccoLinkStrategy(brand_slug),
        EmbeddedJsonTobaccoStrategy(brand_slug),
    ]


def run_strategies(
    tree: HTMLParser,
    page_url: str,
    strategies: Sequence[ExtractionStrategy],
) -> List[ExtractionCandidate]:
    """
    Evaluate strategies in order and return the first non-empty result.

    Later strategies are never evaluated once one has produced candidates.
    A strategy that raises counts as empty.
    """
    total = len(strategies)
    for i, strategy in enumerate(strategies, start=1):
        label = getattr(strategy, "name", type(strategy).__name__)
        try:
            logger.debug(f"Trying extraction strategy {i}/{total} ({label})")
            result = strategy.extract(tree, page_url)
        except Exception as e:
            logger.debug(f"Strategy {i}/{total} ({label}) failed: {type(e).__name__}: {e}")
            continue

        if result:
            logger.debug(f"Strategy {i}/{total} ({label}) succeeded, found {len(result)} items")
            return list(result)

        logger.debug(f"Strategy {i}/{total} ({label}) returned no data")

    logger.warning(f"All {total} extraction strategies failed on {page_url}")
    return []


async def extract_with_strategies(
    page: Page,
    strategies: Sequence[ExtractionStrategy],
) -> List[ExtractionCandidate]:
    """Snapshot the live rendered DOM and run the strategy chain against it."""
    html = await page.content()
    return run_strategies(HTMLParser(html), page.url, strategies)
