"""Tests for text cleanup, slug handling and deduplication."""

from harvester.ingest.base import BrandRecord, ExtractionCandidate
from harvester.ingest.normalize import (
    brand_slug_from_url,
    canonical_url,
    catalog_segments,
    clean_text,
    dedupe_by_slug,
    is_tobacco_url,
    normalize_candidates,
    normalize_slug,
    tobacco_slug_from_url,
)


class TestCleanText:
    """Whitespace normalization."""

    def test_collapses_whitespace(self):
        assert clean_text("  Dark\n\t Side   Core ") == "Dark Side Core"

    def test_empty_values(self):
        assert clean_text("") == ""
        assert clean_text(None) == ""
        assert clean_text(" \n\t ") == ""


class TestSlugs:
    """Slug normalization and URL parsing."""

    def test_normalize_slug_lowercases_and_hyphenates(self):
        for raw in ["DogMa", "  Sapphire Crown ", "TOTAL\tFLAME", "al-waha"]:
            slug = normalize_slug(raw)
            assert slug == slug.lower()
            assert slug == slug.strip()
            assert " " not in slug and "\t" not in slug

        assert normalize_slug("  Sapphire Crown ") == "sapphire-crown"

    def test_catalog_segments(self):
        assert catalog_segments("https://htreviews.org/tobaccos/dogma/100/cola?r=1") == ["dogma", "100", "cola"]
        assert catalog_segments("/tobaccos/dogma") == ["dogma"]
        assert catalog_segments("https://htreviews.org/about") == []

    def test_brand_slug_from_url(self):
        assert brand_slug_from_url("https://htreviews.org/tobaccos/DOGMA") == "dogma"
        assert brand_slug_from_url("https://htreviews.org/tobaccos/dogma/100/cola") == "dogma"
        assert brand_slug_from_url("https://htreviews.org/tobaccos/brands") is None
        assert brand_slug_from_url("") is None

    def test_tobacco_slug_from_url(self):
        assert tobacco_slug_from_url("https://htreviews.org/tobaccos/dogma/100/Cola?s=1") == "cola"
        assert tobacco_slug_from_url("https://htreviews.org/tobaccos/dogma") is None

    def test_is_tobacco_url_filters_brand(self):
        url = "https://htreviews.org/tobaccos/dogma/100/cola"
        assert is_tobacco_url(url)
        assert is_tobacco_url(url, "Dogma")
        assert not is_tobacco_url(url, "bonche")
        assert not is_tobacco_url("https://htreviews.org/tobaccos/brands/a/b")

    def test_canonical_url_strips_query(self):
        assert canonical_url("https://htreviews.org/tobaccos/dogma?r=position#top") == (
            "https://htreviews.org/tobaccos/dogma"
        )


class TestDedupe:
    """First-wins deduplication."""

    def test_first_occurrence_wins(self):
        records = [
            BrandRecord(name="Dogma", slug="dogma", source_url="first"),
            BrandRecord(name="Bonche", slug="bonche"),
            BrandRecord(name="Dogma again", slug="DOGMA", source_url="second"),
        ]

        unique = dedupe_by_slug(records)

        assert [r.slug for r in unique] == ["dogma", "bonche"]
        assert unique[0].source_url == "first"

    def test_idempotent(self):
        records = [
            BrandRecord(name="A", slug="a"),
            BrandRecord(name="B", slug="b"),
            BrandRecord(name="A2", slug="a"),
        ]
        once = dedupe_by_slug(records)
        assert dedupe_by_slug(once) == once


class TestNormalizeCandidates:
    """Candidate cleanup before records are built."""

    def test_cleans_and_absolutizes(self):
        candidates = [
            ExtractionCandidate(name="  Dogma\n ", slug="Dogma", source_url="/tobaccos/dogma?r=position"),
            ExtractionCandidate(name="", slug="empty", source_url="/tobaccos/empty"),
            ExtractionCandidate(name="Dogma dup", slug="dogma", source_url="/tobaccos/dogma"),
            ExtractionCandidate(name="No slug", slug="  ", source_url="/tobaccos/"),
        ]

        result = normalize_candidates(candidates, "https://htreviews.org/tobaccos/brands")

        assert result == [
            ExtractionCandidate(
                name="Dogma",
                slug="dogma",
                source_url="https://htreviews.org/tobaccos/dogma",
            )
        ]
