"""Pydantic models for listings, reviews, metrics and chart series."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, Final, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce a backend timestamp into an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings (with or without ``Z``) and epoch
    milliseconds. Anything unparseable becomes None rather than an error,
    since a bad date on one record should not reject the whole snapshot.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        try:
            return datetime.fromtimestamp(value / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip())
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
    return None


def _coerce_id(value: Any) -> Any:
    """Document stores hand out string ids; tolerate numeric ones."""
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    return value


class ListingStatus(StrEnum):
    """Lifecycle states used by the admin listings page."""

    DRAFT = "draft"
    IN_REVIEW = "in_review"
    PUBLISHED = "published"
    PAUSED = "paused"
    ARCHIVED = "archived"


class EmbeddedLandlord(BaseModel):
    """A landlord object embedded (populated) inside a listing."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    name: str | None = None
    phone: str | None = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _coerce_id(v)


# A listing's owner arrives as a bare id, a populated object, or not at all.
LandlordRef = str | EmbeddedLandlord | None


class Location(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow")

    estate: str | None = None


class ListingRecord(BaseModel):
    """A property listing as returned by the backend.

    Only the fields the engine reads are declared; everything else the
    backend sends is kept as extra data so that reconciliation replaces a
    record with exactly what the backend returned.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str = Field(validation_alias=AliasChoices("_id", "id"))
    title: str | None = None
    price: float | None = Field(
        default=None, validation_alias=AliasChoices("price", "rent", "pricePerMonth")
    )
    type: str | None = None
    status: str | None = None
    created_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("createdAt", "created_at")
    )
    updated_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("updatedAt", "updated_at")
    )
    location: Location | None = None
    views: int | None = Field(default=None, ge=0)
    landlord: LandlordRef = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        return _coerce_id(v)

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> datetime | None:
        return parse_timestamp(v)

    @field_validator("location", mode="before")
    @classmethod
    def coerce_location(cls, v: Any) -> Any:
        if isinstance(v, str):
            return {"estate": v}
        return v

    @field_validator("landlord", mode="before")
    @classmethod
    def coerce_landlord(cls, v: Any) -> Any:
        return _coerce_id(v)

    @property
    def estate(self) -> str | None:
        return self.location.estate if self.location else None

    @property
    def landlord_name(self) -> str | None:
        if isinstance(self.landlord, EmbeddedLandlord):
            return self.landlord.name
        return None

    @property
    def timestamp(self) -> datetime | None:
        """Creation time, falling back to the last update for legacy records."""
        return self.created_at or self.updated_at


class Review(BaseModel):
    """A tenant review attached to a listing."""

    model_config = ConfigDict(frozen=True, extra="allow")

    id: str | None = Field(default=None, validation_alias=AliasChoices("_id", "id"))
    listing_id: str | None = Field(
        default=None, validation_alias=AliasChoices("listingId", "houseId", "listing_id")
    )
    rating: float | None = None
    created_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("createdAt", "created_at")
    )

    @field_validator("id", "listing_id", mode="before")
    @classmethod
    def coerce_ids(cls, v: Any) -> Any:
        return _coerce_id(v)

    @field_validator("created_at", mode="before")
    @classmethod
    def coerce_timestamp(cls, v: Any) -> datetime | None:
        return parse_timestamp(v)


class MetricRecord(BaseModel):
    """Engagement counters for one listing. Always derivable, never authoritative."""

    model_config = ConfigDict(frozen=True)

    views: int = Field(default=0, ge=0)
    landlord_views: int = Field(default=0, ge=0)


ZERO_METRICS: Final = MetricRecord()


class HistoryEvent(BaseModel):
    """One observation of a listing's counters, with deltas against the previous one."""

    model_config = ConfigDict(frozen=True)

    timestamp: datetime
    listing_id: str
    views: int = Field(ge=0)
    landlord_views: int = Field(ge=0)
    reviews: int = Field(ge=0)
    delta_views: int = Field(default=0, ge=0)
    delta_reviews: int = Field(default=0, ge=0)


class TimePoint(BaseModel):
    """One chart bucket (a calendar day or a clock hour)."""

    model_config = ConfigDict(frozen=True)

    label: str
    listing_daily: int = 0
    review_daily: int = 0
    listing_cumulative: int = 0
    review_cumulative: int = 0
    views_delta: int = 0
    views_cumulative: int = 0


class Notice(BaseModel):
    """A transient, auto-expiring message for the admin."""

    model_config = ConfigDict(frozen=True)

    message: str
    level: Literal["info", "error"] = "info"
    created_at: datetime
    expires_at: datetime


class SeriesRange(StrEnum):
    """Time ranges selectable on the trend charts."""

    LAST_24H = "24h"
    LAST_7D = "7d"
    LAST_30D = "30d"
    ALL = "all"

    @property
    def days(self) -> int | None:
        """Length of a daily range in days (None for ``all`` and the hourly view)."""
        return _RANGE_DAYS.get(self.value)


_RANGE_DAYS: Final[dict[str, int]] = {"7d": 7, "30d": 30}


class SortKey(StrEnum):
    PRICE = "price"
    UPDATED_AT = "updated_at"
    VIEWS = "views"


class SortDirection(StrEnum):
    NONE = "none"
    ASC = "asc"
    DESC = "desc"


@dataclass
class ReconcileResult:
    """Outcome of merging one snapshot into the held collection."""

    merged: list[ListingRecord] = field(default_factory=list)
    added: list[ListingRecord] = field(default_factory=list)
    changed: bool = False
    # Held ids the snapshot did not contain. Kept in ``merged`` regardless.
    missing: list[str] = field(default_factory=list)
