"""Delta-event history of listing metrics over a sliding retention window."""

from collections import Counter
from collections.abc import Collection, Iterable, Mapping
from datetime import datetime, timedelta
from typing import Final, NamedTuple

from listing_sync.logging import get_logger
from listing_sync.models import HistoryEvent, MetricRecord, Review

logger = get_logger(__name__)

DEFAULT_RETENTION: Final = timedelta(days=7)


class Observation(NamedTuple):
    """The counters last recorded for a listing."""

    views: int
    reviews: int


def review_counts(reviews: Iterable[Review]) -> dict[str, int]:
    """Count reviews per listing id. Reviews without a listing id are ignored."""
    return dict(Counter(r.listing_id for r in reviews if r.listing_id))


def record(
    previous_latest: Mapping[str, Observation],
    current_metrics: Mapping[str, MetricRecord],
    current_review_counts: Mapping[str, int],
    now: datetime,
    unavailable: Collection[str] = (),
) -> list[HistoryEvent]:
    """Compute the events to append for one metrics refresh.

    Counters are treated as monotonic: a decrease (counter reset) gives a
    zero delta, never a negative one. A listing's first observation is
    recorded as a baseline event with zero deltas, so totals accumulated
    before tracking started do not show up as a spike. After that, an event
    is only emitted when views or reviews went up.

    Listings in ``unavailable`` (their counts could not be fetched) are
    skipped, so a placeholder zero never becomes an observation.
    """
    events: list[HistoryEvent] = []
    for listing_id, metrics in current_metrics.items():
        if listing_id in unavailable:
            continue
        reviews = current_review_counts.get(listing_id, 0)
        prior = previous_latest.get(listing_id)

        if prior is None:
            delta_views = delta_reviews = 0
        else:
            delta_views = max(0, metrics.views - prior.views)
            delta_reviews = max(0, reviews - prior.reviews)
            if delta_views == 0 and delta_reviews == 0:
                continue

        events.append(
            HistoryEvent(
                timestamp=now,
                listing_id=listing_id,
                views=metrics.views,
                landlord_views=metrics.landlord_views,
                reviews=reviews,
                delta_views=delta_views,
                delta_reviews=delta_reviews,
            )
        )
    return events


class HistoryLog:
    """Append-only event log bounded to a retention window.

    The latest observation per listing is always derived from the log itself
    (last event wins by append order); there is no separate table to drift.
    """

    def __init__(
        self,
        events: Iterable[HistoryEvent] = (),
        *,
        retention: timedelta = DEFAULT_RETENTION,
    ) -> None:
        self._events = list(events)
        self._retention = retention

    @property
    def events(self) -> tuple[HistoryEvent, ...]:
        return tuple(self._events)

    @property
    def retention(self) -> timedelta:
        return self._retention

    def __len__(self) -> int:
        return len(self._events)

    def latest_by_listing(self) -> dict[str, Observation]:
        latest: dict[str, Observation] = {}
        for event in self._events:
            latest[event.listing_id] = Observation(event.views, event.reviews)
        return latest

    def append_cycle(
        self,
        metrics: Mapping[str, MetricRecord],
        reviews_by_listing: Mapping[str, int],
        now: datetime,
        *,
        unavailable: Collection[str] = (),
    ) -> list[HistoryEvent]:
        """Record one refresh, append its events, then prune expired ones.

        Returns:
            The events appended by this call.
        """
        new_events = record(
            self.latest_by_listing(), metrics, reviews_by_listing, now, unavailable
        )
        self._events.extend(new_events)
        pruned = self.prune(now)
        logger.info(
            "history_recorded",
            appended=len(new_events),
            pruned=pruned,
            size=len(self._events),
        )
        return new_events

    def prune(self, now: datetime) -> int:
        """Drop events older than the retention window. Returns how many were dropped."""
        cutoff = self.cutoff(now)
        kept = [e for e in self._events if e.timestamp >= cutoff]
        removed = len(self._events) - len(kept)
        self._events = kept
        return removed

    def cutoff(self, now: datetime) -> datetime:
        return now - self._retention
