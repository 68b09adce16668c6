"""Tests for sorting, filtering, highlights and notices."""

from collections.abc import Callable
from datetime import datetime, timedelta

import pytest

from listing_sync.models import ListingRecord, MetricRecord, SortDirection, SortKey
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

MakeListing = Callable[..., ListingRecord]


class TestSortState:
    def test_cycles_through_three_states(self) -> None:
        state = SortState()

        state.cycle(SortKey.PRICE)
        assert (state.key, state.direction) == (SortKey.PRICE, SortDirection.ASC)
        state.cycle(SortKey.PRICE)
        assert (state.key, state.direction) == (SortKey.PRICE, SortDirection.DESC)
        state.cycle(SortKey.PRICE)
        assert (state.key, state.direction) == (None, SortDirection.NONE)

    def test_switching_key_restarts_at_ascending(self) -> None:
        state = SortState(key=SortKey.PRICE, direction=SortDirection.DESC)

        state.cycle(SortKey.VIEWS)

        assert (state.key, state.direction) == (SortKey.VIEWS, SortDirection.ASC)


class TestSortListings:
    @pytest.fixture
    def listings(self, make_listing: MakeListing) -> list[ListingRecord]:
        return [
            make_listing("a", price=5000),
            make_listing("b"),
            make_listing("c", price=3000),
            make_listing("d", price=8000),
        ]

    def test_unsorted_keeps_given_order(self, listings: list[ListingRecord]) -> None:
        result = sort_listings(listings, SortState(), {})
        assert [item.id for item in result] == ["a", "b", "c", "d"]

    def test_ascending_with_missing_values_last(self, listings: list[ListingRecord]) -> None:
        state = SortState(key=SortKey.PRICE, direction=SortDirection.ASC)
        result = sort_listings(listings, state, {})
        assert [item.id for item in result] == ["c", "a", "d", "b"]

    def test_descending_with_missing_values_last(self, listings: list[ListingRecord]) -> None:
        state = SortState(key=SortKey.PRICE, direction=SortDirection.DESC)
        result = sort_listings(listings, state, {})
        assert [item.id for item in result] == ["d", "a", "c", "b"]

    def test_views_use_fetched_metrics(self, make_listing: MakeListing) -> None:
        listings = [make_listing("a", views=100), make_listing("b", views=1)]
        metrics = {"a": MetricRecord(views=2), "b": MetricRecord(views=50)}
        state = SortState(key=SortKey.VIEWS, direction=SortDirection.DESC)

        result = sort_listings(listings, state, metrics)

        assert [item.id for item in result] == ["b", "a"]

    def test_updated_at(self, make_listing: MakeListing) -> None:
        listings = [
            make_listing("new", updatedAt="2024-01-05T00:00:00Z"),
            make_listing("old", updatedAt="2024-01-01T00:00:00Z"),
        ]
        state = SortState(key=SortKey.UPDATED_AT, direction=SortDirection.ASC)

        assert [item.id for item in sort_listings(listings, state, {})] == ["old", "new"]


class TestDerivedViewCount:
    def test_falls_back_to_embedded_views(self, make_listing: MakeListing) -> None:
        assert derived_view_count(make_listing("a", views=12), {}) == 12
        assert derived_view_count(make_listing("a"), {}) == 0


class TestListingQuery:
    @pytest.fixture
    def listings(self, make_listing: MakeListing) -> list[ListingRecord]:
        return [
            make_listing(
                "a",
                title="Cozy Bedsitter",
                status="published",
                location={"estate": "Amalemba"},
                landlord={"_id": "l1", "name": "Jane Wanjiku"},
            ),
            make_listing("b", title="Hostel room", status="draft", location="Lurambi"),
        ]

    @pytest.mark.parametrize(
        ("text", "expected"),
        [
            ("bedsitter", ["a"]),
            ("  LURAMBI ", ["b"]),
            ("wanjiku", ["a"]),
            ("", ["a", "b"]),
            ("nowhere", []),
        ],
    )
    def test_text_search(
        self, listings: list[ListingRecord], text: str, expected: list[str]
    ) -> None:
        result = ListingQuery(text=text).apply(listings)
        assert [item.id for item in result] == expected

    def test_status_filter(self, listings: list[ListingRecord]) -> None:
        assert [item.id for item in ListingQuery(status="Draft").apply(listings)] == ["b"]

    def test_status_all_means_no_filter(self, listings: list[ListingRecord]) -> None:
        query = ListingQuery(status="all")
        assert query.status is None
        assert len(query.apply(listings)) == 2


class TestHighlightSet:
    def test_expires_after_dwell(self, now: datetime) -> None:
        highlights = HighlightSet(timedelta(seconds=4))
        highlights.add(["a"], now)

        assert highlights.active(now + timedelta(seconds=3)) == {"a"}
        assert highlights.active(now + timedelta(seconds=4)) == frozenset()

    def test_discard(self, now: datetime) -> None:
        highlights = HighlightSet()
        highlights.add(["a", "b"], now)
        highlights.discard("a")
        highlights.discard("missing")

        assert highlights.active(now) == {"b"}


class TestNoticeQueue:
    def test_notices_expire(self, now: datetime) -> None:
        notices = NoticeQueue(timedelta(seconds=5))
        notices.push("Listing deleted", now)
        notices.push("Failed to delete listing", now + timedelta(seconds=2), level="error")

        active = notices.active(now + timedelta(seconds=6))

        assert [(n.message, n.level) for n in active] == [("Failed to delete listing", "error")]

    def test_queue_is_bounded(self, now: datetime) -> None:
        notices = NoticeQueue()
        for i in range(30):
            notices.push(f"notice {i}", now)

        active = notices.active(now)

        assert len(active) == 20
        assert active[-1].message == "notice 29"


class TestMessagesAndStats:
    def test_new_listings_message(self) -> None:
        assert new_listings_message(1) == "1 new listing arrived"
        assert new_listings_message(3) == "3 new listings arrived"

    def test_listing_stats(self, make_listing: MakeListing) -> None:
        listings = [
            make_listing("a", status="published"),
            make_listing("b", status="Published"),
            make_listing("c", status="in_review"),
            make_listing("d", status="draft"),
            make_listing("e"),
        ]

        assert listing_stats(listings) == {
            "total": 5,
            "published": 2,
            "in_review": 1,
            "draft": 1,
        }
