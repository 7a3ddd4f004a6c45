"""Infinite-scroll pagination driven by extraction convergence."""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, List, Optional

from playwright.async_api import Page

from harvester.ingest.base import ExtractionCandidate
from harvester.ingest.normalize import dedupe_by_slug

logger = logging.getLogger(__name__)

DEFAULT_MAX_SCROLL_ATTEMPTS = 50
DEFAULT_SCROLL_SETTLE = 2.0

SCROLL_TO_BOTTOM_JS = "window.scrollTo(0, document.body.scrollHeight)"

ExtractFn = Callable[[], Awaitable[List[ExtractionCandidate]]]


class ScrollState(str, Enum):
    """Driver state. Anything but SCROLLING is terminal."""

    SCROLLING = "scrolling"
    CONVERGED = "converged"
    CAPPED = "capped"
    LIMITED = "limited"


class ScrollPaginationDriver:
    """
    Load a lazily paginated list by scrolling until nothing new appears.

    The catalog exposes no reliable "has more" signal, so after every
    scroll-to-bottom the list is re-extracted and the number of unique items
    compared with the previous pass. An unchanged count means convergence;
    max_attempts bounds the loop regardless of what the page reports.
    """

    def __init__(
        self,
        page: Page,
        extract_fn: ExtractFn,
        max_attempts: int = DEFAULT_MAX_SCROLL_ATTEMPTS,
        settle: float = DEFAULT_SCROLL_SETTLE,
        limit: Optional[int] = None,
    ):
        self.page = page
        self.extract_fn = extract_fn
        self.max_attempts = max_attempts
        self.settle = settle
        self.limit = limit

        self.state = ScrollState.SCROLLING
        self.attempts = 0
        self.items: List[ExtractionCandidate] = []

    def _merge(self, batch: List[ExtractionCandidate]) -> int:
        self.items = dedupe_by_slug([*self.items, *batch])
        return len(self.items)

    def _limit_reached(self) -> bool:
        return bool(self.limit) and len(self.items) >= self.limit

    async def _scroll(self) -> None:
        await self.page.evaluate(SCROLL_TO_BOTTOM_JS)
        await asyncio.sleep(self.settle)

    async def run(self) -> List[ExtractionCandidate]:
        """Drive the page to a terminal state and return the unique items."""
        previous_count = self._merge(await self.extract_fn())
        logger.info(f"Initial extraction: {previous_count} items")

        while self.state is ScrollState.SCROLLING:
            if self._limit_reached():
                self.state = ScrollState.LIMITED
                logger.info(f"Reached limit of {self.limit} items, stopping scroll")
                break

            if self.attempts >= self.max_attempts:
                self.state = ScrollState.CAPPED
                logger.info(
                    f"Scroll cap of {self.max_attempts} attempts reached with {len(self.items)} items"
                )
                break

            await self._scroll()
            current_count = self._merge(await self.extract_fn())

            if current_count == previous_count:
                self.state = ScrollState.CONVERGED
                logger.info(f"No new items after {self.attempts} scrolls ({current_count} total)")
                break

            previous_count = current_count
            self.attempts += 1
            logger.info(f"Scroll {self.attempts}: found {current_count} total items")

        return self.items


async def drive_scroll(
    page: Page,
    extract_fn: ExtractFn,
    max_attempts: int = DEFAULT_MAX_SCROLL_ATTEMPTS,
    settle: float = DEFAULT_SCROLL_SETTLE,
    limit: Optional[int] = None,
) -> List[ExtractionCandidate]:
    """Scroll-paginate page and return the deduplicated extraction results."""
    driver = ScrollPaginationDriver(page, extract_fn, max_attempts, settle, limit)
    return await driver.run()
