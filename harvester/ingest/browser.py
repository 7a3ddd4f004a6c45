"""Headless browser session shared across a harvest run."""

import logging
import random
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from harvester.config import Settings, settings

logger = logging.getLogger(__name__)


class BrowserStartupError(Exception):
    """Chromium could not be launched."""


# Realistic user agents for rotation
USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/121.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
]

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--disable-blink-features=AutomationControlled",
]


class BrowserSession:
    """
    One Chromium browser, context and page reused for every navigation.

    Usage:
        async with BrowserSession() as page:
            await page.goto(...)
    """

    def __init__(self, config: Settings = settings, timeout: Optional[float] = None):
        self.config = config
        self.timeout = timeout if timeout is not None else config.scraper_timeout

        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    async def start(self) -> Page:
        """
        Launch the browser and open the shared page.

        Any failure tears down whatever was already started before raising.

        Raises:
            BrowserStartupError: Launch, context or page creation failed
        """
        logger.info("Initializing Playwright browser")
        try:
            self._playwright = await async_playwright().start()
            self._browser = await self._playwright.chromium.launch(
                headless=self.config.headless,
                args=LAUNCH_ARGS,
            )

            user_agent = self.config.user_agent or random.choice(USER_AGENTS)
            self._context = await self._browser.new_context(
                viewport={"width": self.config.viewport_width, "height": self.config.viewport_height},
                user_agent=user_agent,
            )
            self.page = await self._context.new_page()
            self.page.set_default_timeout(self.timeout * 1000)
        except Exception as e:
            await self.close()
            raise BrowserStartupError(f"Failed to start Chromium session: {type(e).__name__}: {e}") from e

        logger.info("Playwright browser initialized")
        return self.page

    async def close(self):
        """Close page, context, browser and driver; errors are logged, not raised."""
        if self._context:
            try:
                await self._context.close()
            except Exception as e:
                logger.error(f"Error closing browser context: {e}")
            self._context = None
            self.page = None

        if self._browser:
            try:
                await self._browser.close()
            except Exception as e:
                logger.error(f"Error closing browser: {e}")
            self._browser = None

        if self._playwright:
            try:
                await self._playwright.stop()
            except Exception as e:
                logger.error(f"Error stopping Playwright: {e}")
            self._playwright = None

        logger.info("Browser closed")

    async def __aenter__(self) -> Page:
        return await self.start()

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
