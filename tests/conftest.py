"""Shared fixtures: a scripted stand-in for a Playwright page."""

from typing import Dict, Iterable, Optional
from unittest.mock import AsyncMock

import pytest

from harvester.ingest.base import ScrapeConfig

EMPTY_PAGE = "<html><body></body></html>"


class FakePage:
    """
    Minimal async Page double serving canned HTML per URL.

    URLs are matched without their query string. goto() raises for any URL
    containing one of the failing fragments.
    """

    def __init__(self, pages: Dict[str, str], failing: Iterable[str] = ()):
        self.pages = pages
        self.failing = list(failing)
        self.url = "about:blank"
        self.visited = []

        self.goto = AsyncMock(side_effect=self._goto)
        self.content = AsyncMock(side_effect=self._content)
        self.evaluate = AsyncMock(return_value=None)
        self.wait_for_load_state = AsyncMock(return_value=None)
        self.wait_for_timeout = AsyncMock(return_value=None)
        self.wait_for_selector = AsyncMock(return_value=None)

    async def _goto(self, url: str, **kwargs):
        if any(fragment in url for fragment in self.failing):
            raise RuntimeError(f"net::ERR_CONNECTION_RESET at {url}")
        self.url = url
        self.visited.append(url)

    async def _content(self) -> str:
        return self.pages.get(self.url.split("?", 1)[0], EMPTY_PAGE)


@pytest.fixture
def fast_config() -> ScrapeConfig:
    """Config with every wait set to zero."""
    return ScrapeConfig(
        timeout=1.0,
        max_retries=1,
        delay_brand=0,
        delay_tobacco=0,
        backoff_base=0,
        content_wait=0,
        render_settle=0,
        scroll_settle=0,
        max_scroll_attempts=5,
    )


@pytest.fixture
def make_page():
    def factory(pages: Optional[Dict[str, str]] = None, failing: Iterable[str] = ()) -> FakePage:
        return FakePage(pages or {}, failing)
    return factory
