"""Display-side state: sorting, filtering, new-item highlights and notices."""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Final, Literal

from pydantic import BaseModel, field_validator

from listing_sync.models import (
    ListingRecord,
    ListingStatus,
    MetricRecord,
    Notice,
    SortDirection,
    SortKey,
)

DEFAULT_HIGHLIGHT_DWELL: Final = timedelta(seconds=4)
DEFAULT_NOTICE_TTL: Final = timedelta(seconds=5)
_MAX_NOTICES: Final = 20


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------


@dataclass
class SortState:
    """Tri-state column sort: none -> ascending -> descending -> none."""

    key: SortKey | None = None
    direction: SortDirection = SortDirection.NONE

    def cycle(self, key: SortKey) -> None:
        """Advance the sort for ``key``. Switching columns starts at ascending."""
        if key != self.key or self.direction is SortDirection.NONE:
            self.key = key
            self.direction = SortDirection.ASC
        elif self.direction is SortDirection.ASC:
            self.direction = SortDirection.DESC
        else:
            self.key = None
            self.direction = SortDirection.NONE


def derived_view_count(listing: ListingRecord, metrics: Mapping[str, MetricRecord]) -> int:
    """Fetched view count, falling back to the count the backend embedded."""
    metric = metrics.get(listing.id)
    if metric is not None:
        return metric.views
    return listing.views or 0


def _sort_value(
    listing: ListingRecord, key: SortKey, metrics: Mapping[str, MetricRecord]
) -> Any:
    match key:
        case SortKey.PRICE:
            return listing.price
        case SortKey.UPDATED_AT:
            return listing.updated_at
        case SortKey.VIEWS:
            return derived_view_count(listing, metrics)


def sort_listings(
    listings: Sequence[ListingRecord],
    state: SortState,
    metrics: Mapping[str, MetricRecord],
) -> list[ListingRecord]:
    """Return listings in display order. Unsorted keeps reconciliation order.

    Listings without a value for the sort key go last in either direction.
    """
    if state.key is None or state.direction is SortDirection.NONE:
        return list(listings)

    key = state.key
    with_value = [item for item in listings if _sort_value(item, key, metrics) is not None]
    without_value = [item for item in listings if _sort_value(item, key, metrics) is None]
    with_value.sort(
        key=lambda item: _sort_value(item, key, metrics),
        reverse=state.direction is SortDirection.DESC,
    )
    return with_value + without_value


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------


class ListingQuery(BaseModel):
    """Text and status filter for the listings table.

    Text matches title, estate or landlord name (case-insensitive substring).
    """

    text: str = ""
    status: str | None = None

    @field_validator("text", mode="before")
    @classmethod
    def clean_text(cls, v: object) -> str:
        if v is None:
            return ""
        return str(v).strip().lower()

    @field_validator("status", mode="before")
    @classmethod
    def clean_status(cls, v: object) -> str | None:
        if not v:
            return None
        cleaned = str(v).strip().lower()
        return None if cleaned in ("", "all") else cleaned

    def matches(self, listing: ListingRecord) -> bool:
        if self.status is not None and (listing.status or "").lower() != self.status:
            return False
        if not self.text:
            return True
        haystacks = (listing.title, listing.estate, listing.landlord_name)
        return any(self.text in h.lower() for h in haystacks if h)

    def apply(self, listings: Iterable[ListingRecord]) -> list[ListingRecord]:
        return [item for item in listings if self.matches(item)]


# ---------------------------------------------------------------------------
# Highlights and notices
# ---------------------------------------------------------------------------


class HighlightSet:
    """Listing ids flagged as new, each for a fixed dwell time.

    Expiry is evaluated against the ``now`` passed in, so entries disappear
    on their own schedule regardless of when the next poll happens.
    """

    def __init__(self, dwell: timedelta = DEFAULT_HIGHLIGHT_DWELL) -> None:
        self._dwell = dwell
        self._expires: dict[str, datetime] = {}

    def add(self, listing_ids: Iterable[str], now: datetime) -> None:
        for listing_id in listing_ids:
            self._expires[listing_id] = now + self._dwell

    def discard(self, listing_id: str) -> None:
        self._expires.pop(listing_id, None)

    def active(self, now: datetime) -> frozenset[str]:
        self._expires = {k: exp for k, exp in self._expires.items() if exp > now}
        return frozenset(self._expires)


class NoticeQueue:
    """Transient admin notices that expire after a fixed time."""

    def __init__(self, ttl: timedelta = DEFAULT_NOTICE_TTL) -> None:
        self._ttl = ttl
        self._notices: list[Notice] = []

    def push(
        self, message: str, now: datetime, *, level: Literal["info", "error"] = "info"
    ) -> Notice:
        notice = Notice(message=message, level=level, created_at=now, expires_at=now + self._ttl)
        self._notices = [*self._notices, notice][-_MAX_NOTICES:]
        return notice

    def active(self, now: datetime) -> list[Notice]:
        self._notices = [n for n in self._notices if n.expires_at > now]
        return list(self._notices)


def new_listings_message(count: int) -> str:
    noun = "listing" if count == 1 else "listings"
    return f"{count} new {noun} arrived"


def listing_stats(listings: Sequence[ListingRecord]) -> dict[str, int]:
    """Headline counts shown above the listings table."""
    statuses = [(item.status or "").lower() for item in listings]
    return {
        "total": len(listings),
        "published": statuses.count(ListingStatus.PUBLISHED),
        "in_review": statuses.count(ListingStatus.IN_REVIEW),
        "draft": statuses.count(ListingStatus.DRAFT),
    }
