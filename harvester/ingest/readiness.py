"""Best-effort waits for JavaScript-rendered content."""

import logging

from playwright.async_api import Page

logger = logging.getLogger(__name__)


async def await_rendered_content(page: Page, max_wait: float = 5.0, settle: float = 2.0) -> bool:
    """
    Give client-side rendering time to populate the DOM.

    Waits for network idle (up to max_wait seconds), then a fixed settle
    period. Never raises: an unsettled page is scraped as-is.

    Returns:
        True if the page settled, False if the wait gave up
    """
    try:
        logger.debug(f"Waiting for content to load (timeout: {max_wait}s)")
        await page.wait_for_load_state("networkidle", timeout=max_wait * 1000)
        await page.wait_for_timeout(settle * 1000)
        logger.debug("Content loaded")
        return True
    except Exception as e:
        logger.warning(f"Failed to wait for content on {page.url}: {type(e).__name__}: {e}")
        return False


async def wait_for_element(page: Page, selector: str, timeout: float = 5.0) -> bool:
    """Wait for a selector to appear; False instead of raising on timeout."""
    try:
        await page.wait_for_selector(selector, timeout=timeout * 1000)
        logger.debug(f"Element found: {selector}")
        return True
    except Exception as e:
        logger.debug(f"Element not found: {selector} - {e}")
        return False
