"""Shared pytest fixtures."""

import os
import sys
from collections.abc import Callable, Iterator
from datetime import UTC, datetime
from typing import Any

import pytest
import structlog
from hypothesis import HealthCheck, settings

from listing_sync.config import Settings
from listing_sync.models import ListingRecord, Review


def pytest_configure(config: pytest.Config) -> None:
    """Force line-buffered stdout when piped."""
    if hasattr(sys.stdout, "reconfigure") and not sys.stdout.isatty():
        sys.stdout.reconfigure(line_buffering=True)
    if hasattr(sys.stderr, "reconfigure") and not sys.stderr.isatty():
        sys.stderr.reconfigure(line_buffering=True)


# Hypothesis settings profiles for different environments
settings.register_profile("fast", max_examples=25)
settings.register_profile(
    "ci",
    max_examples=200,
    suppress_health_check=[HealthCheck.too_slow],
)
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "fast"))


@pytest.fixture(autouse=True)
def _isolate_settings_from_dotenv(monkeypatch: pytest.MonkeyPatch) -> None:
    """Prevent a local .env file from leaking into test Settings instances."""
    monkeypatch.setattr(
        Settings,
        "model_config",
        {**Settings.model_config, "env_file": None},
    )


@pytest.fixture(autouse=True)
def _reset_structlog_config() -> Iterator[None]:
    """Undo global structlog configuration done by a test (e.g. via ``main()``)."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def app_settings() -> Settings:
    """Settings pointing at a fake backend, with in-memory history."""
    return Settings(
        api_base_url="http://backend.test/api/v1",
        history_db_path="",
        metrics_concurrency=4,
    )


@pytest.fixture
def now() -> datetime:
    return datetime(2024, 1, 10, 12, 30, tzinfo=UTC)


@pytest.fixture
def make_listing() -> Callable[..., ListingRecord]:
    """Factory building listings from backend-shaped payloads."""

    def _make(listing_id: str, **fields: Any) -> ListingRecord:
        return ListingRecord.model_validate({"_id": listing_id, **fields})

    return _make


@pytest.fixture
def make_review() -> Callable[..., Review]:
    def _make(listing_id: str, created_at: str | None = None, **fields: Any) -> Review:
        return Review.model_validate({"listingId": listing_id, "createdAt": created_at, **fields})

    return _make
