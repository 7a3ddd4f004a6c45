"""Tests for the CLI entry point, run metrics, logging and browser session."""

import json
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from harvester import main as cli
from harvester.config import Settings
from harvester.ingest import browser
from harvester.ingest.base import (
    BrandRecord,
    HarvestMetrics,
    HarvestResult,
    ScrapeConfig,
    TobaccoMetadata,
    TobaccoRecord,
)
from harvester.ingest.browser import BrowserSession, BrowserStartupError
from harvester.logging_config import get_logger, setup_logging


def _result() -> HarvestResult:
    metrics = HarvestMetrics(brands_found=1, tobaccos_scraped=1)
    return HarvestResult(
        brands=[BrandRecord(name="Догма", slug="dogma", source_url="https://htreviews.org/tobaccos/dogma")],
        tobaccos=[
            TobaccoRecord(
                name="Cola",
                slug="cola",
                source_url="https://htreviews.org/tobaccos/dogma/100/cola",
                metadata=TobaccoMetadata(rating=4.5),
            )
        ],
        metrics=metrics,
    )


class TestHarvestMetrics:
    """Run counters."""

    def test_record_failure_deduplicates_urls(self):
        metrics = HarvestMetrics()
        metrics.record_failure("https://htreviews.org/tobaccos/broken")
        metrics.record_failure("https://htreviews.org/tobaccos/broken")

        assert metrics.errors == 2
        assert metrics.failed_urls == ["https://htreviews.org/tobaccos/broken"]

    def test_success_rate(self):
        assert HarvestMetrics().success_rate is None
        assert HarvestMetrics(brands_found=1, tobaccos_scraped=3, errors=1).success_rate == pytest.approx(80.0)

    def test_log_summary(self, caplog):
        metrics = HarvestMetrics(brands_found=2, errors=1, failed_urls=["https://htreviews.org/tobaccos/x"])

        with caplog.at_level(logging.INFO):
            metrics.log_summary(logging.getLogger("summary"))

        assert "HARVEST SUMMARY" in caplog.text
        assert "1. https://htreviews.org/tobaccos/x" in caplog.text


class TestScrapeConfig:
    """Environment-driven run configuration."""

    def test_from_settings(self, monkeypatch):
        monkeypatch.setenv("SCRAPER_MAX_RETRIES", "5")
        monkeypatch.setenv("SCRAPER_DELAY_BRAND", "0.5")

        config = ScrapeConfig.from_settings(Settings(_env_file=None))

        assert config.max_retries == 5
        assert config.delay_brand == 0.5
        assert config.timeout == 60.0
        assert config.max_scroll_attempts == 50

    def test_brands_url(self):
        app_settings = Settings(_env_file=None, catalog_base_url="https://example.org/")

        assert app_settings.brands_url == "https://example.org/tobaccos/brands"


class TestMain:
    """Command-line runs with the harvest replaced."""

    def test_result_to_json_keeps_unicode(self):
        payload = json.loads(cli.result_to_json(_result()))

        assert payload["brands"][0]["name"] == "Догма"
        assert payload["tobaccos"][0]["metadata"]["rating"] == 4.5
        assert payload["tobaccos"][0]["metadata"]["strength"] is None
        assert payload["metrics"]["tobaccos_scraped"] == 1
        assert "Догма" in cli.result_to_json(_result())

    def test_writes_output_file(self, monkeypatch, tmp_path):
        fake_run = AsyncMock(return_value=_result())
        monkeypatch.setattr(cli, "run_harvest", fake_run)
        monkeypatch.setattr(cli, "setup_logging", MagicMock())
        output = tmp_path / "harvest.json"

        code = cli.main(["--brand", "dogma", "--brand", "bonche", "--limit", "2", "--output", str(output)])

        assert code == 0
        assert json.loads(output.read_text(encoding="utf-8"))["tobaccos"][0]["slug"] == "cola"
        kwargs = fake_run.call_args.kwargs
        assert kwargs["brand_slugs"] == ["dogma", "bonche"]
        assert kwargs["limit"] == 2

    def test_prints_to_stdout(self, monkeypatch, capsys):
        monkeypatch.setattr(cli, "run_harvest", AsyncMock(return_value=_result()))
        monkeypatch.setattr(cli, "setup_logging", MagicMock())

        assert cli.main([]) == 0
        assert json.loads(capsys.readouterr().out)["brands"][0]["slug"] == "dogma"

    def test_failed_run_exits_non_zero(self, monkeypatch):
        monkeypatch.setattr(cli, "run_harvest", AsyncMock(side_effect=BrowserStartupError("no chromium")))
        monkeypatch.setattr(cli, "setup_logging", MagicMock())

        assert cli.main([]) == 1


class TestLogging:
    """JSON file logging."""

    def test_json_log_file(self, tmp_path):
        root = logging.getLogger()
        saved_handlers, saved_level = root.handlers[:], root.level
        try:
            setup_logging(base_dir=tmp_path, log_level="debug")
            get_logger("harvester.test", brand="dogma").warning("Brand page slow")
            for handler in root.handlers:
                handler.flush()

            lines = (tmp_path / "logs" / "harvester.log").read_text().splitlines()
            record = json.loads(lines[-1])
            assert record["message"] == "Brand page slow"
            assert record["level"] == "WARNING"
            assert record["brand"] == "dogma"
            assert (tmp_path / "logs" / "error.log").read_text() == ""
        finally:
            for handler in root.handlers:
                handler.close()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)


def _fake_playwright(launch_error=None):
    page = MagicMock()
    context = MagicMock()
    context.new_page = AsyncMock(return_value=page)
    context.close = AsyncMock()
    chromium_browser = MagicMock()
    chromium_browser.new_context = AsyncMock(return_value=context)
    chromium_browser.close = AsyncMock()

    playwright = MagicMock()
    playwright.chromium.launch = AsyncMock(side_effect=launch_error, return_value=chromium_browser)
    playwright.stop = AsyncMock()

    starter = MagicMock()
    starter.start = AsyncMock(return_value=playwright)
    return starter, playwright, chromium_browser, context, page


class TestBrowserSession:
    """Browser lifecycle with Playwright mocked out."""

    @pytest.mark.asyncio
    async def test_session_opens_and_closes(self, monkeypatch):
        starter, playwright, chromium_browser, context, page = _fake_playwright()
        monkeypatch.setattr(browser, "async_playwright", lambda: starter)
        app_settings = Settings(_env_file=None, user_agent="TestAgent/1.0", headless=True)

        async with BrowserSession(app_settings, timeout=5) as session_page:
            assert session_page is page

        launch_kwargs = playwright.chromium.launch.call_args.kwargs
        assert launch_kwargs["headless"] is True
        assert "--disable-blink-features=AutomationControlled" in launch_kwargs["args"]
        assert chromium_browser.new_context.call_args.kwargs["user_agent"] == "TestAgent/1.0"
        page.set_default_timeout.assert_called_once_with(5000)
        context.close.assert_awaited_once()
        chromium_browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_launch_failure(self, monkeypatch):
        starter, playwright, _, _, _ = _fake_playwright(RuntimeError("Executable doesn't exist"))
        monkeypatch.setattr(browser, "async_playwright", lambda: starter)

        with pytest.raises(BrowserStartupError) as exc_info:
            await BrowserSession(Settings(_env_file=None)).start()

        assert isinstance(exc_info.value.__cause__, RuntimeError)
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_context_failure_tears_down_browser(self, monkeypatch):
        starter, playwright, chromium_browser, _, _ = _fake_playwright()
        chromium_browser.new_context.side_effect = RuntimeError("Target page, context or browser has been closed")
        monkeypatch.setattr(browser, "async_playwright", lambda: starter)

        with pytest.raises(BrowserStartupError):
            async with BrowserSession(Settings(_env_file=None)):
                pytest.fail("session body must not run")

        chromium_browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_page_failure_closes_context(self, monkeypatch):
        starter, playwright, chromium_browser, context, _ = _fake_playwright()
        context.new_page.side_effect = RuntimeError("new_page failed")
        monkeypatch.setattr(browser, "async_playwright", lambda: starter)
        session = BrowserSession(Settings(_env_file=None))

        with pytest.raises(BrowserStartupError):
            await session.start()

        context.close.assert_awaited_once()
        chromium_browser.close.assert_awaited_once()
        playwright.stop.assert_awaited_once()
        assert session.page is None
