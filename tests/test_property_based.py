"""Property-based tests using Hypothesis.

Tests invariants of the core algorithms: reconciliation, delta recording,
retention pruning, series bucketing and count extraction.
"""

from datetime import UTC, datetime, timedelta

from hypothesis import given
from hypothesis import strategies as st

from listing_sync.metrics import (
    HistoryLog,
    Observation,
    build_daily,
    build_hourly_24h,
    extract_count,
    record,
)
from listing_sync.models import HistoryEvent, ListingRecord, MetricRecord
from listing_sync.sync import reconcile

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

listing_ids = st.sampled_from([f"id-{i}" for i in range(12)])

prices = st.none() | st.integers(min_value=500, max_value=100_000)

instants = st.datetimes(
    min_value=datetime(2023, 1, 1),
    max_value=datetime(2025, 1, 1),
    timezones=st.just(UTC),
)


@st.composite
def listing_records(
    draw: st.DrawFn, listing_id: st.SearchStrategy[str] = listing_ids
) -> ListingRecord:
    return ListingRecord.model_validate(
        {
            "_id": draw(listing_id),
            "price": draw(prices),
            "createdAt": draw(st.none() | instants),
        }
    )


def unique_listings(max_size: int = 8) -> st.SearchStrategy[list[ListingRecord]]:
    return st.lists(listing_records(), max_size=max_size, unique_by=lambda item: item.id)


snapshots = st.lists(listing_records(), max_size=10)

counters = st.integers(min_value=0, max_value=10_000)

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.floats() | st.text(max_size=5),
    lambda children: st.lists(children, max_size=4)
    | st.dictionaries(st.text(max_size=10), children, max_size=4),
    max_leaves=10,
)


# ---------------------------------------------------------------------------
# reconcile
# ---------------------------------------------------------------------------


class TestReconcileProperties:
    @given(unique_listings(), snapshots)
    def test_known_order_is_preserved(
        self, previous: list[ListingRecord], incoming: list[ListingRecord]
    ) -> None:
        result = reconcile(previous, incoming)
        prefix = [item.id for item in result.merged[: len(previous)]]
        assert prefix == [item.id for item in previous]

    @given(unique_listings(), snapshots)
    def test_merged_ids_are_unique_union(
        self, previous: list[ListingRecord], incoming: list[ListingRecord]
    ) -> None:
        result = reconcile(previous, incoming)
        merged_ids = [item.id for item in result.merged]
        assert len(merged_ids) == len(set(merged_ids))
        assert set(merged_ids) == {item.id for item in previous} | {item.id for item in incoming}

    @given(unique_listings(), snapshots)
    def test_reapplying_snapshot_adds_nothing(
        self, previous: list[ListingRecord], incoming: list[ListingRecord]
    ) -> None:
        first = reconcile(previous, incoming)
        second = reconcile(first.merged, incoming)
        assert second.added == []
        assert second.merged == first.merged

    @given(unique_listings(), snapshots)
    def test_added_and_missing_are_disjoint_from_held(
        self, previous: list[ListingRecord], incoming: list[ListingRecord]
    ) -> None:
        result = reconcile(previous, incoming)
        previous_ids = {item.id for item in previous}
        incoming_ids = {item.id for item in incoming}
        assert not {item.id for item in result.added} & previous_ids
        assert set(result.missing) == previous_ids - incoming_ids
        if result.added:
            assert result.changed


# ---------------------------------------------------------------------------
# record / HistoryLog
# ---------------------------------------------------------------------------


class TestHistoryProperties:
    @given(
        st.dictionaries(listing_ids, st.tuples(counters, counters), max_size=6),
        st.dictionaries(listing_ids, st.tuples(counters, counters), max_size=6),
    )
    def test_events_only_for_new_or_increased(
        self,
        previous: dict[str, tuple[int, int]],
        current: dict[str, tuple[int, int]],
    ) -> None:
        now = datetime(2024, 1, 1, tzinfo=UTC)
        events = record(
            {k: Observation(views, reviews) for k, (views, reviews) in previous.items()},
            {k: MetricRecord(views=views) for k, (views, _) in current.items()},
            {k: reviews for k, (_, reviews) in current.items()},
            now,
        )
        for event in events:
            prior = previous.get(event.listing_id)
            if prior is None:
                assert (event.delta_views, event.delta_reviews) == (0, 0)
            else:
                assert event.delta_views == max(0, event.views - prior[0])
                assert event.delta_views > 0 or event.delta_reviews > 0

    @given(st.lists(instants, max_size=20), instants)
    def test_prune_keeps_only_retained_and_is_idempotent(
        self, stamps: list[datetime], now: datetime
    ) -> None:
        log = HistoryLog(
            [
                HistoryEvent(timestamp=ts, listing_id="a", views=0, landlord_views=0, reviews=0)
                for ts in stamps
            ],
            retention=timedelta(days=7),
        )
        log.prune(now)
        kept = log.events
        assert all(e.timestamp >= now - timedelta(days=7) for e in kept)
        assert log.prune(now) == 0
        assert log.events == kept


# ---------------------------------------------------------------------------
# series
# ---------------------------------------------------------------------------


class TestSeriesProperties:
    @given(unique_listings(max_size=12))
    def test_daily_cumulative_is_monotonic_and_conserves_counts(
        self, listings: list[ListingRecord]
    ) -> None:
        points = build_daily(listings, [], [])
        cumulative = [p.listing_cumulative for p in points]
        assert cumulative == sorted(cumulative)
        assert sum(p.listing_daily for p in points) == sum(
            1 for item in listings if item.timestamp is not None
        )
        assert [p.label for p in points] == sorted({p.label for p in points})

    @given(unique_listings(), instants)
    def test_hourly_always_has_24_points(
        self, listings: list[ListingRecord], now: datetime
    ) -> None:
        points = build_hourly_24h(listings, [], [], now)
        assert len(points) == 24
        assert points[-1].label == f"{now:%H}:00"


# ---------------------------------------------------------------------------
# extract_count
# ---------------------------------------------------------------------------


class TestExtractCountProperties:
    @given(json_values)
    def test_never_negative(self, payload: object) -> None:
        assert extract_count(payload) >= 0

    @given(st.lists(st.integers(), max_size=30))
    def test_list_payload_is_its_length(self, payload: list[int]) -> None:
        assert extract_count(payload) == len(payload)
