"""Merge a freshly fetched snapshot into the held, ordered listing collection."""

from collections.abc import Sequence

from listing_sync.models import ListingRecord, ReconcileResult


def reconcile(
    previous: Sequence[ListingRecord], incoming: Sequence[ListingRecord]
) -> ReconcileResult:
    """Merge ``incoming`` into ``previous`` without reordering known listings.

    Known listings are replaced in place by their incoming version (whole
    record, no field merge). Listings missing from ``incoming`` are kept as
    they were: one snapshot without a record is not a deletion. New listings
    are appended in snapshot order.

    ``changed`` is true only when something new arrived or the snapshot size
    differs from the held collection. Callers skip all downstream work when
    it is false.

    If a snapshot repeats an id, its last occurrence wins.
    """
    known_ids = {item.id for item in previous}
    latest: dict[str, ListingRecord] = {}
    added_ids: list[str] = []

    for item in incoming:
        if item.id not in known_ids and item.id not in latest:
            added_ids.append(item.id)
        latest[item.id] = item

    merged = [latest.get(item.id, item) for item in previous]
    missing = [item.id for item in previous if item.id not in latest]
    added = [latest[listing_id] for listing_id in added_ids]
    merged.extend(added)

    return ReconcileResult(
        merged=merged,
        added=added,
        changed=bool(added) or len(incoming) != len(previous),
        missing=missing,
    )
