"""Application configuration using Pydantic settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Harvester settings."""

    # App Settings
    log_level: str = "INFO"

    # ==========================================================================
    # Target Catalog
    # ==========================================================================
    catalog_base_url: str = "https://htreviews.org"
    brands_path: str = "/tobaccos/brands"
    listing_query: str = "r=position&s=rating&d=desc"  # Brand list / brand page sort order
    detail_query: str = "r=position&s=created&d=desc"  # Tobacco page sort order

    # ==========================================================================
    # Scraper Run Settings (seconds)
    # ==========================================================================
    scraper_timeout: float = 60.0  # Navigation timeout per attempt
    scraper_max_retries: int = 3  # Additional attempts after the first navigation
    scraper_delay_brand: float = 2.0  # Pause between brands
    scraper_delay_tobacco: float = 1.0  # Pause before each tobacco page
    scraper_backoff_base: float = 2.0  # Retry delay = base * 2^attempt

    # Dynamic content handling
    content_wait_seconds: float = 5.0  # Max wait for network idle
    render_settle_seconds: float = 2.0  # Extra wait for client-side rendering
    scroll_settle_seconds: float = 2.0  # Wait after each scroll-to-bottom
    max_scroll_attempts: int = 50

    # ==========================================================================
    # Browser
    # ==========================================================================
    headless: bool = True
    user_agent: str = ""  # Empty = pick from rotation list
    viewport_width: int = 1920
    viewport_height: int = 1080

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def brands_url(self) -> str:
        """Full URL of the brand listing page."""
        return f"{self.catalog_base_url.rstrip('/')}{self.brands_path}"


settings = Settings()
