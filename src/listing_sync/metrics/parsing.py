"""Normalization of landlord references and heterogeneous count payloads.

The view-count endpoints have answered in several shapes over time: a bare
number, a list of view documents, or an object carrying the count under one
of a few names, sometimes one level down. ``extract_count`` tries a fixed,
ordered list of rules and returns the first match.
"""

import math
from collections.abc import Callable
from typing import Any, Final

from listing_sync.models import EmbeddedLandlord, LandlordRef

CountRule = Callable[[Any], int | None]

_COUNT_FIELDS: Final = ("count", "totalViews", "total")
_NESTED_COUNT_FIELDS: Final = ("count", "totalViews")


def resolve_landlord_id(ref: LandlordRef) -> str | None:
    """Return the landlord id behind a listing's landlord reference, if any."""
    match ref:
        case str() if ref.strip():
            return ref.strip()
        case EmbeddedLandlord(id=str() as landlord_id) if landlord_id.strip():
            return landlord_id.strip()
        case _:
            return None


def _as_count(value: Any) -> int | None:
    """Interpret a JSON scalar as a non-negative count, or None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float) and math.isfinite(value):
        return max(0, math.floor(value))
    return None


def _direct_number(payload: Any) -> int | None:
    return _as_count(payload)


def _array_length(payload: Any) -> int | None:
    return len(payload) if isinstance(payload, list) else None


def _field_rule(name: str) -> CountRule:
    def rule(payload: Any) -> int | None:
        if isinstance(payload, dict):
            return _as_count(payload.get(name))
        return None

    rule.__name__ = f"field_{name}"
    return rule


def _nested_object(payload: Any) -> int | None:
    """Look one level down: the first nested object with a usable count wins."""
    if not isinstance(payload, dict):
        return None
    for value in payload.values():
        if not isinstance(value, dict):
            continue
        for name in _NESTED_COUNT_FIELDS:
            count = _as_count(value.get(name))
            if count is not None:
                return count
        items = value.get("items")
        if isinstance(items, list):
            return len(items)
    return None


COUNT_RULES: Final[tuple[CountRule, ...]] = (
    _direct_number,
    _array_length,
    *(_field_rule(name) for name in _COUNT_FIELDS),
    _nested_object,
)


def extract_count(payload: Any) -> int:
    """Extract a view count from any recognized payload shape, defaulting to 0."""
    for rule in COUNT_RULES:
        count = rule(payload)
        if count is not None:
            return count
    return 0
