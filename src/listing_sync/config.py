"""Application configuration using pydantic-settings."""

from datetime import timedelta
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="LISTING_SYNC_",
        extra="ignore",
    )

    # Backend API (the marketplace's CRUD service)
    api_base_url: str = Field(
        default="http://localhost:3000/api/v1",
        description="Base URL of the listing backend, without trailing slash",
    )
    listings_path: str = Field(default="/houses/getAll")
    reviews_path: str = Field(default="/reviews")
    listing_views_path: str = Field(
        default="/house-views/{listing_id}",
        description="Per-listing view count endpoint; {listing_id} is substituted",
    )
    landlord_views_path: str = Field(
        default="/landlord-views/{landlord_id}",
        description="Per-landlord view count endpoint; {landlord_id} is substituted",
    )
    delete_listing_path: str = Field(default="/houses/house/{listing_id}")
    request_timeout_seconds: float = Field(default=15.0, gt=0)

    # Polling and aggregation
    poll_interval_seconds: float = Field(
        default=3.0,
        gt=0,
        description="Seconds between snapshot polls",
    )
    metrics_concurrency: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Maximum listings whose metrics are fetched at the same time",
    )
    history_retention_days: int = Field(default=7, ge=1)

    # Presentation
    highlight_dwell_seconds: float = Field(
        default=4.0,
        gt=0,
        description="How long a newly arrived listing stays highlighted",
    )
    notice_ttl_seconds: float = Field(default=5.0, gt=0)

    # History persistence ("" keeps the event log in memory only)
    history_db_path: str = Field(default="data/history.db")

    # Web API
    web_host: str = Field(default="127.0.0.1", description="Web server host")
    web_port: int = Field(default=8000, description="Web server port")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    @property
    def data_dir(self) -> str:
        """Return the directory containing the history database."""
        return str(Path(self.history_db_path).parent)

    @property
    def history_retention(self) -> timedelta:
        return timedelta(days=self.history_retention_days)

    @property
    def highlight_dwell(self) -> timedelta:
        return timedelta(seconds=self.highlight_dwell_seconds)

    @property
    def notice_ttl(self) -> timedelta:
        return timedelta(seconds=self.notice_ttl_seconds)

    def endpoint(self, path: str, **params: str) -> str:
        """Build an absolute backend URL from a configured path template."""
        return self.api_base_url.rstrip("/") + path.format(**params)
