"""Page navigation with bounded exponential-backoff retries."""

import asyncio
import logging
from typing import Optional

from playwright.async_api import Page

from harvester.ingest.base import ScrapeConfig

logger = logging.getLogger(__name__)


class PageLoadError(Exception):
    """Page failed to load after all retries."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to load {url}: {reason}")


def with_query(url: str, query: Optional[str]) -> str:
    """Append a query string to a URL, keeping any existing parameters."""
    if not query:
        return url
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}{query}"


def backoff_delay(attempt: int, base: float) -> float:
    """Delay before retry number attempt+1: base * 2^attempt."""
    return base * (2 ** attempt)


async def navigate(page: Page, url: str, config: ScrapeConfig) -> None:
    """
    Open url and wait for network idle, retrying transient failures.

    Makes 1 + config.max_retries attempts in total.

    Args:
        page: Shared Playwright page
        url: Target URL
        config: Run configuration (timeout, max_retries, backoff_base)

    Raises:
        PageLoadError: When every attempt failed; chained from the last error
    """
    attempts = config.max_retries + 1
    last_error: Optional[Exception] = None

    for attempt in range(attempts):
        try:
            logger.debug(f"Navigating to {url} (attempt {attempt + 1}/{attempts})")
            await page.goto(
                url,
                wait_until="networkidle",
                timeout=config.timeout * 1000,
            )
            return
        except Exception as e:
            last_error = e

            if attempt < attempts - 1:
                wait_time = backoff_delay(attempt, config.backoff_base)
                logger.warning(
                    f"Attempt {attempt + 1}/{attempts} for {url} failed: "
                    f"{type(e).__name__}: {e}. Retrying in {wait_time:.1f}s"
                )
                await asyncio.sleep(wait_time)
            else:
                logger.error(f"All {attempts} attempts failed for {url}: {type(e).__name__}: {e}")

    raise PageLoadError(url, f"{type(last_error).__name__}: {last_error}") from last_error
