"""Detail page scraping for brands and tobaccos.

Every field is read through a cascade of sources, first non-empty value
wins. Embedded JSON-LD is preferred over visible text for descriptions,
images and ratings; visible-text descriptions must pass a minimum length so
that short labels are not mistaken for prose.
"""

import logging
import re
from typing import Any, Callable, Dict, Optional, Sequence

from playwright.async_api import Page
from selectolax.parser import HTMLParser

from harvester.ingest.base import BrandRecord, ScrapeConfig, TobaccoMetadata, TobaccoRecord
from harvester.ingest.json_extractor import extract_json_ld, find_typed_entity, image_from_json_ld
from harvester.ingest.navigation import navigate, with_query
from harvester.ingest.normalize import (
    absolute_url,
    brand_slug_from_url,
    clean_text,
    tobacco_slug_from_url,
)
from harvester.ingest.readiness import await_rendered_content, wait_for_element

logger = logging.getLogger(__name__)

# =============================================================================
# Selector cascades
# =============================================================================

TOBACCO_NAME_SELECTORS = [
    "h1",
    ".tobacco-name",
    ".product-name",
    ".page-title",
    '[class*="title"]',
]

BRAND_NAME_SELECTORS = [
    "h1",
    ".brand-name",
    ".page-title",
    "title",
    '[class*="brand"] h1',
]

TOBACCO_DESCRIPTION_SELECTORS = [
    ".tobacco-description",
    ".description",
    ".product-description",
    '[class*="description"]',
    "article p",
    "main p",
    ".content p",
    'div[class*="text"] p',
    'div[class*="content"] p',
    "section p",
    ".text-block p",
    ".about p",
    "p",
]

BRAND_DESCRIPTION_SELECTORS = [
    ".object_card_discr span",
    ".brand-description",
    ".description",
    ".about-brand",
    '[class*="description"]',
    'div[class*="text"] p',
    "article p",
    "main p",
    ".content p",
]

TOBACCO_IMAGE_SELECTORS = [
    ".tobacco-image img",
    ".product-image img",
    ".main-image img",
    "img.product-photo",
    'img[class*="product"]',
]

BRAND_IMAGE_SELECTORS = [
    ".brand-image img",
    ".brand-logo img",
    ".brand-photo img",
    "img.brand-photo",
    'img[class*="brand"]',
]

MAIN_CONTENT_SELECTOR = "main, .main, .content, #main"

STRENGTH_SELECTORS = [".strength", ".tobacco-strength", ".product-strength", "[data-strength]", ".rating-strength"]
CUT_SELECTORS = [".cut", ".tobacco-cut", ".product-cut", "[data-cut]", ".rating-cut"]
FLAVOR_SELECTORS = [".flavor-profile", ".tobacco-flavor", ".product-flavor", "[data-flavor]", ".rating-flavor"]
RATING_SELECTORS = [".rating", ".score", ".tobacco-rating", ".product-rating", "[data-rating]"]
REVIEWS_SELECTORS = [".reviews-count", ".review-count", ".total-reviews", "[data-reviews]", ".num-reviews"]

TOBACCO_MIN_DESCRIPTION = 20
BRAND_MIN_DESCRIPTION = 50

# A single bare word is a label (flavor name, category), not a description
_SINGLE_WORD = re.compile(r"^[А-Яа-яЁёA-Za-z]+$")
_DECIMAL = re.compile(r"(\d+(?:[.,]\d+)?)")
_INTEGER = re.compile(r"(\d+)")


# =============================================================================
# Cascade helpers
# =============================================================================


def first_text(
    tree: HTMLParser,
    selectors: Sequence[str],
    accept: Optional[Callable[[str], bool]] = None,
) -> Optional[str]:
    """Return cleaned text of the first selector match that is non-empty and accepted."""
    for selector in selectors:
        node = tree.css_first(selector)
        if node is None:
            continue
        text = clean_text(node.text(deep=True))
        if text and (accept is None or accept(text)):
            return text
    return None


def first_image(tree: HTMLParser, selectors: Sequence[str], page_url: str) -> Optional[str]:
    """Image URL from the selector cascade, then the first image in the main content."""
    for selector in selectors:
        src = _image_src(tree.css_first(selector))
        if src:
            return absolute_url(src, page_url)

    main = tree.css_first(MAIN_CONTENT_SELECTOR)
    if main is not None:
        src = _image_src(main.css_first("img"))
        if src:
            return absolute_url(src, page_url)
    return None


def _image_src(node) -> Optional[str]:
    if node is None:
        return None
    attrs = node.attributes
    return attrs.get("src") or attrs.get("data-src")


def parse_first_number(text: Optional[str], integer: bool = False) -> Optional[float]:
    """
    Parse the first numeric token in text.

    "4.7 / 5" -> 4.7, "4,5" -> 4.5, "123 отзыва" -> 123 (integer=True).
    Returns None when there is no number; missing is never reported as zero.
    """
    if not text:
        return None
    match = (_INTEGER if integer else _DECIMAL).search(text)
    if not match:
        return None
    try:
        if integer:
            return int(match.group(1))
        return float(match.group(1).replace(",", "."))
    except ValueError:
        return None


def _long_enough(min_length: int, reject_single_word: bool = False) -> Callable[[str], bool]:
    def accept(text: str) -> bool:
        if len(text) <= min_length:
            return False
        return not (reject_single_word and _SINGLE_WORD.match(text))
    return accept


def _aggregate_number(aggregate: Dict[str, Any], keys: Sequence[str], integer: bool = False) -> Optional[float]:
    """First present aggregateRating value among keys. Zero is a value."""
    for key in keys:
        value = aggregate.get(key)
        if value is not None:
            return parse_first_number(str(value), integer=integer)
    return None


def _structured(tree: HTMLParser, type_name: str) -> tuple[Optional[str], Optional[str], Dict[str, Any]]:
    """Description, image and raw entity from a JSON-LD block of type_name."""
    entity = find_typed_entity(extract_json_ld(tree), type_name)
    if not entity:
        return None, None, {}
    description = clean_text(str(entity.get("description") or "")) or None
    return description, image_from_json_ld(entity.get("image")), entity


# =============================================================================
# Pure parsers
# =============================================================================


def parse_tobacco_detail(html: str, page_url: str, source_url: str) -> Optional[TobaccoRecord]:
    """
    Build a TobaccoRecord from a rendered tobacco page.

    Args:
        html: Rendered page HTML
        page_url: URL the HTML was loaded from (resolves relative links)
        source_url: Canonical tobacco URL, without sort parameters

    Returns:
        TobaccoRecord, or None if no name or slug can be recovered
    """
    tree = HTMLParser(html)

    name = first_text(tree, TOBACCO_NAME_SELECTORS)
    if not name:
        logger.info(f"Could not extract tobacco name from {page_url}")
        return None

    slug = tobacco_slug_from_url(source_url)
    if not slug:
        logger.info(f"Could not extract tobacco slug from URL: {source_url}")
        return None

    description, image_url, entity = _structured(tree, "Product")
    if not description:
        description = first_text(
            tree,
            TOBACCO_DESCRIPTION_SELECTORS,
            _long_enough(TOBACCO_MIN_DESCRIPTION, reject_single_word=True),
        )
    if image_url:
        image_url = absolute_url(image_url, page_url)
    else:
        image_url = first_image(tree, TOBACCO_IMAGE_SELECTORS, page_url)

    aggregate = entity.get("aggregateRating") if isinstance(entity.get("aggregateRating"), dict) else {}
    rating = _aggregate_number(aggregate, ("ratingValue",))
    if rating is None:
        rating = parse_first_number(first_text(tree, RATING_SELECTORS))

    reviews_count = _aggregate_number(aggregate, ("reviewCount", "ratingCount"), integer=True)
    if reviews_count is None:
        reviews_count = parse_first_number(first_text(tree, REVIEWS_SELECTORS), integer=True)

    metadata = TobaccoMetadata(
        strength=first_text(tree, STRENGTH_SELECTORS),
        cut=first_text(tree, CUT_SELECTORS),
        flavor_profile=first_text(tree, FLAVOR_SELECTORS),
        rating=rating,
        reviews_count=reviews_count,
    )

    record = TobaccoRecord(
        name=name,
        slug=slug,
        description=description or "",
        image_url=image_url or "",
        source_url=source_url,
        metadata=metadata,
    )
    logger.debug(
        f"Parsed tobacco: {record.name} ({slug}), image: {record.image_url or 'NULL'}, "
        f"description length: {len(record.description)}"
    )
    return record


def parse_brand_detail(html: str, page_url: str, source_url: str) -> Optional[BrandRecord]:
    """Build a BrandRecord from a rendered brand page; None without name or slug."""
    tree = HTMLParser(html)

    name = first_text(tree, BRAND_NAME_SELECTORS)
    if not name:
        logger.info(f"Could not extract brand name from {page_url}")
        return None

    slug = brand_slug_from_url(source_url)
    if not slug:
        logger.info(f"Could not extract brand slug from URL: {source_url}")
        return None

    description, image_url, _ = _structured(tree, "Brand")
    if not description:
        description = first_text(tree, BRAND_DESCRIPTION_SELECTORS, _long_enough(BRAND_MIN_DESCRIPTION))
    if image_url:
        image_url = absolute_url(image_url, page_url)
    else:
        image_url = first_image(tree, BRAND_IMAGE_SELECTORS, page_url)

    return BrandRecord(
        name=name,
        slug=slug,
        description=description or "",
        image_url=image_url or "",
        source_url=source_url,
    )


# =============================================================================
# Page scrapers
# =============================================================================


async def _load(page: Page, url: str, config: ScrapeConfig) -> str:
    await navigate(page, url, config)
    await await_rendered_content(page, config.content_wait, config.render_settle)
    await wait_for_element(page, "h1", timeout=config.render_settle)
    return await page.content()


async def scrape_tobacco_page(
    page: Page,
    tobacco_url: str,
    config: ScrapeConfig,
    detail_query: Optional[str] = None,
) -> Optional[TobaccoRecord]:
    """
    Scrape one tobacco detail page.

    Navigation failures propagate as PageLoadError; a page without a
    recoverable name yields None.
    """
    detail_url = with_query(tobacco_url, detail_query)
    html = await _load(page, detail_url, config)
    return parse_tobacco_detail(html, page.url or detail_url, tobacco_url)


async def scrape_brand_page(
    page: Page,
    brand_url: str,
    config: ScrapeConfig,
    listing_query: Optional[str] = None,
) -> Optional[BrandRecord]:
    """
    Scrape one brand page for its name, description and image.

    Loading it with the listing sort query leaves the page ready for the
    tobacco list without a second navigation.
    """
    page_url = with_query(brand_url, listing_query)
    html = await _load(page, page_url, config)
    return parse_brand_detail(html, page.url or page_url, brand_url)
