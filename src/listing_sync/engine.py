"""Live listing sync engine: poll, reconcile, refresh metrics, record history."""

from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Final

import aiosqlite
import httpx
import structlog
from pydantic import BaseModel

from listing_sync.client import BackendClient, BackendError
from listing_sync.config import Settings
from listing_sync.db import HistoryStore
from listing_sync.logging import get_logger
from listing_sync.metrics import HistoryLog, MetricsAggregator, build_range, review_counts
from listing_sync.models import (
    ZERO_METRICS,
    HistoryEvent,
    ListingRecord,
    MetricRecord,
    Notice,
    Review,
    SeriesRange,
    SortDirection,
    SortKey,
    TimePoint,
)
from listing_sync.presentation import (
    HighlightSet,
    ListingQuery,
    NoticeQueue,
    SortState,
    derived_view_count,
    listing_stats,
    new_listings_message,
    sort_listings,
)
from listing_sync.sync import PollScheduler, SchedulerState, reconcile

logger = get_logger(__name__)

Clock = Callable[[], datetime]
NewListingsHook = Callable[[list[ListingRecord]], None]

_FETCH_ERRORS: Final = (httpx.HTTPError, BackendError, ValueError)


def utc_now() -> datetime:
    return datetime.now(UTC)


class ListingRow(BaseModel):
    """One row of the listings table as handed to the display layer."""

    listing: ListingRecord
    metrics: MetricRecord
    view_count: int
    highlighted: bool


class EngineSnapshot(BaseModel):
    """Read-only view of everything the admin listings page renders."""

    listings: list[ListingRow]
    stats: dict[str, int]
    notices: list[Notice]
    series_range: SeriesRange
    series: list[TimePoint]
    sort_key: SortKey | None
    sort_direction: SortDirection
    query: ListingQuery
    missing: list[str]
    last_synced_at: datetime | None
    scheduler_state: SchedulerState


class SyncEngine:
    """Keeps a local listing collection eventually consistent with the backend.

    Each cycle fetches a snapshot and reconciles it into the held collection.
    Only when reconciliation reports a content change (or the review list
    changed) are metrics refetched and history recorded, so an idle backend
    costs one listings request and one reviews request per poll.
    """

    def __init__(
        self,
        client: BackendClient,
        settings: Settings,
        *,
        store: HistoryStore | None = None,
        clock: Clock = utc_now,
        on_new_listings: NewListingsHook | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            client: Backend client for snapshots, reviews and metrics.
            settings: Application settings.
            store: Optional persistent store for the history log.
            clock: Source of the current time (injectable for tests).
            on_new_listings: Called once per cycle that adds listings, e.g.
                to play a chime.
        """
        self._client = client
        self._store = store
        self._clock = clock
        self._on_new_listings = on_new_listings
        self._aggregator = MetricsAggregator(client, concurrency=settings.metrics_concurrency)
        self._history = HistoryLog(retention=settings.history_retention)
        self._highlights = HighlightSet(settings.highlight_dwell)
        self._notices = NoticeQueue(settings.notice_ttl)
        self._sort = SortState()
        self._query = ListingQuery()
        self._range = SeriesRange.LAST_7D

        self._listings: list[ListingRecord] = []
        self._reviews: list[Review] = []
        self._metrics: dict[str, MetricRecord] = {}
        self._missing: list[str] = []
        self._tombstones: set[str] = set()
        self._last_synced_at: datetime | None = None
        self._cycles = 0
        # Set on a content change, cleared once metrics and history caught up
        self._metrics_pending = False
        # History events not yet written to the store
        self._unpersisted: list[HistoryEvent] = []

        self.scheduler = PollScheduler(self.cycle, interval_seconds=settings.poll_interval_seconds)

    # --- read-only state ---

    @property
    def listings(self) -> tuple[ListingRecord, ...]:
        return tuple(self._listings)

    @property
    def reviews(self) -> tuple[Review, ...]:
        return tuple(self._reviews)

    @property
    def metrics(self) -> dict[str, MetricRecord]:
        return dict(self._metrics)

    @property
    def history(self) -> tuple[HistoryEvent, ...]:
        return self._history.events

    # --- lifecycle ---

    async def load_history(self) -> int:
        """Restore the retained part of the history log from the store."""
        if self._store is None:
            return 0
        cutoff = self._history.cutoff(self._clock())
        events = await self._store.load_since(cutoff)
        self._history = HistoryLog(events, retention=self._history.retention)
        logger.info("history_loaded", events=len(events))
        return len(events)

    def start(self) -> None:
        self.scheduler.start()

    async def stop(self) -> None:
        await self.scheduler.dispose()

    # --- the poll cycle ---

    async def cycle(self) -> None:
        """Fetch, reconcile and, on change, refresh metrics and history.

        A metrics refresh that raised is retried on every following cycle,
        even when the snapshot itself no longer changes. History events the
        store rejected stay queued and are written with the next append.
        """
        self._cycles += 1
        with structlog.contextvars.bound_contextvars(poll_cycle=self._cycles):
            await self._run_cycle()

    async def _run_cycle(self) -> None:
        try:
            incoming = await self._client.fetch_listings()
        except _FETCH_ERRORS as e:
            logger.warning("snapshot_fetch_failed", error=str(e))
            return

        incoming = self._drop_tombstoned(incoming)
        result = reconcile(self._listings, incoming)
        self._listings = result.merged
        self._missing = result.missing
        now = self._clock()
        self._last_synced_at = now

        reviews_changed = await self._refresh_reviews()

        if result.changed:
            logger.info(
                "snapshot_changed",
                added=len(result.added),
                held=len(result.merged),
                incoming=len(incoming),
                missing=len(result.missing),
            )
            if result.added:
                self._announce(result.added, now)

        if result.changed or reviews_changed:
            self._metrics_pending = True

        if self._metrics_pending:
            await self._refresh_metrics()
            self._metrics_pending = False
        else:
            logger.debug("snapshot_unchanged", held=len(self._listings))

        await self._persist_history()

    def _drop_tombstoned(self, incoming: Sequence[ListingRecord]) -> list[ListingRecord]:
        """Hide listings the admin deleted until the backend stops returning them."""
        if not self._tombstones:
            return list(incoming)
        present = {item.id for item in incoming}
        self._tombstones &= present
        return [item for item in incoming if item.id not in self._tombstones]

    async def _refresh_reviews(self) -> bool:
        """Fetch reviews; returns whether they differ from the held list."""
        try:
            reviews = await self._client.fetch_reviews()
        except _FETCH_ERRORS as e:
            logger.warning("reviews_fetch_failed", error=str(e))
            return False
        if reviews == self._reviews:
            return False
        self._reviews = reviews
        return True

    def _announce(self, added: list[ListingRecord], now: datetime) -> None:
        self._highlights.add((item.id for item in added), now)
        self._notices.push(new_listings_message(len(added)), now)
        if self._on_new_listings is not None:
            self._on_new_listings(added)

    async def _refresh_metrics(self) -> None:
        fetched = await self._aggregator.fetch_with_failures(self._listings)
        current_ids = {item.id for item in self._listings}
        self._metrics = {k: v for k, v in fetched.metrics.items() if k in current_ids}

        events = self._history.append_cycle(
            self._metrics,
            review_counts(self._reviews),
            self._clock(),
            unavailable=fetched.failed,
        )
        self._unpersisted.extend(events)

    async def _persist_history(self) -> None:
        """Write queued history events to the store, keeping them on failure."""
        if self._store is None:
            self._unpersisted.clear()
            return
        if not self._unpersisted:
            return

        cutoff = self._history.cutoff(self._clock())
        pending = [e for e in self._unpersisted if e.timestamp >= cutoff]
        try:
            await self._store.append(pending)
        except aiosqlite.Error as e:
            logger.warning("history_persist_failed", queued=len(pending), error=str(e))
            self._unpersisted = pending
            return
        self._unpersisted = []

        try:
            await self._store.prune(cutoff)
        except aiosqlite.Error as e:
            logger.warning("history_prune_failed", error=str(e))

    # --- commands ---

    async def delete_listing(self, listing_id: str) -> bool:
        """Delete a listing the admin confirmed, then refresh in the background.

        Local state only changes once the backend confirms the deletion.
        """
        now = self._clock()
        try:
            await self._client.delete_listing(listing_id)
        except _FETCH_ERRORS as e:
            logger.warning("listing_delete_failed", listing_id=listing_id, error=str(e))
            self._notices.push("Failed to delete listing", now, level="error")
            return False

        self._listings = [item for item in self._listings if item.id != listing_id]
        self._metrics.pop(listing_id, None)
        self._highlights.discard(listing_id)
        self._tombstones.add(listing_id)
        self._notices.push("Listing deleted", now)
        self.scheduler.request_refresh()
        return True

    def change_sort(self, key: SortKey) -> SortState:
        self._sort.cycle(key)
        return self._sort

    def change_filter(self, text: str = "", status: str | None = None) -> ListingQuery:
        self._query = ListingQuery(text=text, status=status)
        return self._query

    def change_range(self, series_range: SeriesRange) -> SeriesRange:
        self._range = series_range
        return self._range

    def force_refresh(self) -> bool:
        return self.scheduler.request_refresh()

    # --- display view ---

    def series(self, series_range: SeriesRange | None = None) -> list[TimePoint]:
        return build_range(
            series_range or self._range,
            self._listings,
            self._reviews,
            self._history.events,
            self._clock(),
        )

    def snapshot(self) -> EngineSnapshot:
        now = self._clock()
        highlighted = self._highlights.active(now)
        visible = sort_listings(self._query.apply(self._listings), self._sort, self._metrics)
        rows = [
            ListingRow(
                listing=item,
                metrics=self._metrics.get(item.id, ZERO_METRICS),
                view_count=derived_view_count(item, self._metrics),
                highlighted=item.id in highlighted,
            )
            for item in visible
        ]
        return EngineSnapshot(
            listings=rows,
            stats=listing_stats(self._listings),
            notices=self._notices.active(now),
            series_range=self._range,
            series=self.series(),
            sort_key=self._sort.key,
            sort_direction=self._sort.direction,
            query=self._query,
            missing=list(self._missing),
            last_synced_at=self._last_synced_at,
            scheduler_state=self.scheduler.state,
        )
