"""Concurrent per-listing engagement metric retrieval."""

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Final

import httpx

from listing_sync.client import BackendClient, BackendError
from listing_sync.logging import get_logger
from listing_sync.metrics.parsing import extract_count, resolve_landlord_id
from listing_sync.models import ZERO_METRICS, ListingRecord, MetricRecord

logger = get_logger(__name__)

_DEFAULT_CONCURRENCY: Final = 10

# Failures that are absorbed per listing; anything else is a bug and propagates.
_FETCH_ERRORS: Final = (httpx.HTTPError, BackendError, ValueError)


@dataclass
class MetricsFetch:
    """Result of one metrics refresh.

    ``metrics`` has an entry for every listing; listings whose lookups failed
    show zeros there and are also named in ``failed``, so callers can tell a
    real zero from an unknown count.
    """

    metrics: dict[str, MetricRecord] = field(default_factory=dict)
    failed: frozenset[str] = frozenset()


class MetricsAggregator:
    """Fetch view and landlord-view counts for every listing in a collection."""

    def __init__(self, client: BackendClient, *, concurrency: int = _DEFAULT_CONCURRENCY) -> None:
        """Initialize the aggregator.

        Args:
            client: Backend client used for the count lookups.
            concurrency: Maximum listings being fetched at once. Excess
                listings queue on a semaphore.
        """
        self._client = client
        self._concurrency = concurrency

    async def fetch_metrics(self, listings: Sequence[ListingRecord]) -> dict[str, MetricRecord]:
        """Fetch metrics for all listings.

        A failed lookup only zeroes the metrics of its own listing.

        Returns:
            Mapping of listing id to MetricRecord, with an entry for every listing.
        """
        return (await self.fetch_with_failures(listings)).metrics

    async def fetch_with_failures(self, listings: Sequence[ListingRecord]) -> MetricsFetch:
        """Like ``fetch_metrics``, but also report which listings failed."""
        if not listings:
            return MetricsFetch()

        semaphore = asyncio.Semaphore(self._concurrency)
        records = await asyncio.gather(
            *(self._fetch_single(listing, semaphore) for listing in listings)
        )

        metrics: dict[str, MetricRecord] = {}
        failed: set[str] = set()
        for listing, record in zip(listings, records, strict=True):
            if record is None:
                failed.add(listing.id)
            metrics[listing.id] = record if record is not None else ZERO_METRICS

        logger.info(
            "metrics_refreshed",
            listings=len(metrics),
            failed=len(failed),
            total_views=sum(m.views for m in metrics.values()),
        )
        return MetricsFetch(metrics=metrics, failed=frozenset(failed))

    async def _landlord_views(self, landlord_id: str | None) -> Any:
        if landlord_id is None:
            return None
        return await self._client.fetch_landlord_views(landlord_id)

    async def _fetch_single(
        self, listing: ListingRecord, semaphore: asyncio.Semaphore
    ) -> MetricRecord | None:
        """Fetch one listing's counts. None means a lookup failed."""
        landlord_id = resolve_landlord_id(listing.landlord)

        async with semaphore:
            results = await asyncio.gather(
                self._client.fetch_listing_views(listing.id),
                self._landlord_views(landlord_id),
                return_exceptions=True,
            )

        for result in results:
            if isinstance(result, _FETCH_ERRORS):
                logger.warning(
                    "metrics_fetch_failed",
                    listing_id=listing.id,
                    landlord_id=landlord_id,
                    error=str(result),
                )
                return None
            if isinstance(result, BaseException):
                raise result

        views_payload, landlord_payload = results
        return MetricRecord(
            views=extract_count(views_payload),
            landlord_views=extract_count(landlord_payload),
        )
