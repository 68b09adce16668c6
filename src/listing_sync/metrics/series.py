"""Bucket listings, reviews and view deltas into daily or hourly chart points.

Buckets are UTC calendar days (labelled ``YYYY-MM-DD``) or UTC clock hours
(labelled ``HH:00``). Every point carries per-bucket counts and running
cumulative totals for three series: listings, reviews and views.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Final

from listing_sync.models import HistoryEvent, ListingRecord, Review, SeriesRange, TimePoint

_HOUR: Final = timedelta(hours=1)
_HOURS_PER_DAY: Final = 24


@dataclass
class _Counts:
    listings: int = 0
    reviews: int = 0
    views: int = 0


def _accumulate(buckets: Iterable[tuple[str, _Counts]]) -> list[TimePoint]:
    """Turn ordered per-bucket counts into points with running totals."""
    listing_total = review_total = views_total = 0
    points: list[TimePoint] = []
    for label, counts in buckets:
        listing_total += counts.listings
        review_total += counts.reviews
        views_total += counts.views
        points.append(
            TimePoint(
                label=label,
                listing_daily=counts.listings,
                review_daily=counts.reviews,
                listing_cumulative=listing_total,
                review_cumulative=review_total,
                views_delta=counts.views,
                views_cumulative=views_total,
            )
        )
    return points


def _utc_day(ts: datetime) -> date:
    return ts.astimezone(UTC).date()


def _hour_start(ts: datetime) -> datetime:
    return ts.astimezone(UTC).replace(minute=0, second=0, microsecond=0)


def build_daily(
    listings: Sequence[ListingRecord],
    reviews: Sequence[Review],
    history: Sequence[HistoryEvent],
) -> list[TimePoint]:
    """One point per distinct day present in any input, oldest first.

    Listings are bucketed by creation time, or update time when the backend
    has no creation time. Records with neither are left out.
    """
    days: dict[date, _Counts] = {}

    for listing in listings:
        if listing.timestamp is not None:
            days.setdefault(_utc_day(listing.timestamp), _Counts()).listings += 1
    for review in reviews:
        if review.created_at is not None:
            days.setdefault(_utc_day(review.created_at), _Counts()).reviews += 1
    for event in history:
        days.setdefault(_utc_day(event.timestamp), _Counts()).views += event.delta_views

    return _accumulate((day.isoformat(), days[day]) for day in sorted(days))


def build_hourly_24h(
    listings: Sequence[ListingRecord],
    reviews: Sequence[Review],
    history: Sequence[HistoryEvent],
    now: datetime,
) -> list[TimePoint]:
    """Exactly 24 hourly points ending with the hour that contains ``now``.

    Each bucket covers ``[hour_start, hour_start + 1h)``. Cumulative values
    start from zero at the first of the 24 hours.
    """
    current = _hour_start(now)
    starts = [current - _HOUR * i for i in range(_HOURS_PER_DAY - 1, -1, -1)]
    hours = {start: _Counts() for start in starts}

    def bucket(ts: datetime | None) -> _Counts | None:
        if ts is None:
            return None
        return hours.get(_hour_start(ts))

    for listing in listings:
        if (counts := bucket(listing.timestamp)) is not None:
            counts.listings += 1
    for review in reviews:
        if (counts := bucket(review.created_at)) is not None:
            counts.reviews += 1
    for event in history:
        if (counts := bucket(event.timestamp)) is not None:
            counts.views += event.delta_views

    return _accumulate((f"{start:%H}:00", hours[start]) for start in starts)


def build_range(
    series_range: SeriesRange,
    listings: Sequence[ListingRecord],
    reviews: Sequence[Review],
    history: Sequence[HistoryEvent],
    now: datetime,
) -> list[TimePoint]:
    """Chart points for the selected range.

    ``24h`` uses the hourly builder. ``7d`` and ``30d`` keep the daily points
    of the last N days (today included); their cumulative values are the
    all-time running totals. ``all`` returns every daily point.
    """
    if series_range is SeriesRange.LAST_24H:
        return build_hourly_24h(listings, reviews, history, now)

    points = build_daily(listings, reviews, history)
    days = series_range.days
    if days is None:
        return points

    first_day = (_utc_day(now) - timedelta(days=days - 1)).isoformat()
    return [p for p in points if p.label >= first_day]
