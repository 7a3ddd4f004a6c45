"""Text cleanup, catalog URL parsing and slug-based deduplication."""

import logging
import re
from typing import Iterable, List, Optional, Sequence, TypeVar
from urllib.parse import urljoin, urlparse, urlunparse

from harvester.ingest.base import ExtractionCandidate

logger = logging.getLogger(__name__)

CATALOG_ROOT = "tobaccos"

# Path segments under /tobaccos/ that are site sections, not brands
RESERVED_SLUGS = frozenset({"brands"})

_WHITESPACE = re.compile(r"\s+")

T = TypeVar("T")


def clean_text(text: Optional[str]) -> str:
    """Collapse all whitespace runs (newlines, tabs) to single spaces and trim."""
    if not text:
        return ""
    return _WHITESPACE.sub(" ", text).strip()


def normalize_slug(slug: Optional[str]) -> str:
    """Lowercase a slug and replace inner whitespace with hyphens."""
    if not slug:
        return ""
    return _WHITESPACE.sub("-", slug.strip()).lower()


def absolute_url(url: str, base_url: str) -> str:
    """Resolve a possibly relative URL against the page it came from."""
    if not url:
        return ""
    if url.startswith(("http://", "https://")):
        return url
    return urljoin(base_url, url)


def canonical_url(url: str) -> str:
    """Strip query string and fragment (the site's sort parameters)."""
    return urlunparse(urlparse(url)._replace(query="", fragment=""))


def catalog_segments(url: str) -> List[str]:
    """
    Return the path segments following /tobaccos/ in a catalog URL.

    "https://site/tobaccos/dogma/100/cola?x=1" -> ["dogma", "100", "cola"]
    """
    parts = [p for p in urlparse(url).path.split("/") if p]
    if CATALOG_ROOT not in parts:
        return []
    return parts[parts.index(CATALOG_ROOT) + 1:]


def brand_slug_from_url(url: str) -> Optional[str]:
    """Brand slug is the first segment after /tobaccos/."""
    segments = catalog_segments(url)
    if not segments or segments[0].lower() in RESERVED_SLUGS:
        return None
    return segments[0].lower()


def tobacco_slug_from_url(url: str) -> Optional[str]:
    """Tobacco slug is the flavor segment of /tobaccos/{brand}/{line}/{flavor}."""
    segments = catalog_segments(url)
    if len(segments) < 3 or segments[0].lower() in RESERVED_SLUGS:
        return None
    return segments[2].lower()


def is_tobacco_url(url: str, brand_slug: Optional[str] = None) -> bool:
    """True for /tobaccos/{brand}/{line}/{flavor} links, optionally of one brand."""
    if tobacco_slug_from_url(url) is None:
        return False
    if brand_slug is None:
        return True
    return brand_slug_from_url(url) == brand_slug.lower()


def dedupe_by_slug(records: Iterable[T]) -> List[T]:
    """Drop records whose slug was already seen; the first occurrence wins."""
    seen: set[str] = set()
    unique: List[T] = []
    for record in records:
        key = record.slug.lower()
        if key in seen:
            continue
        seen.add(key)
        unique.append(record)
    return unique


def normalize_candidates(
    candidates: Sequence[ExtractionCandidate],
    base_url: str,
) -> List[ExtractionCandidate]:
    """
    Clean names, lowercase slugs, absolutize URLs and drop duplicates.

    Candidates with an empty name or slug after cleanup are discarded.
    """
    normalized: List[ExtractionCandidate] = []
    seen: set[str] = set()

    for candidate in candidates:
        slug = normalize_slug(candidate.slug)
        name = clean_text(candidate.name)
        if not slug or not name or slug in seen:
            continue
        seen.add(slug)
        normalized.append(
            ExtractionCandidate(
                name=name,
                slug=slug,
                source_url=canonical_url(absolute_url(candidate.source_url, base_url)),
            )
        )

    dropped = len(candidates) - len(normalized)
    if dropped:
        logger.debug(f"Normalized {len(candidates)} candidates to {len(normalized)} ({dropped} dropped)")

    return normalized
