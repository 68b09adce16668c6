"""Engagement metrics: retrieval, delta history and chart series."""

from listing_sync.metrics.aggregator import MetricsAggregator, MetricsFetch
from listing_sync.metrics.history import HistoryLog, Observation, record, review_counts
from listing_sync.metrics.parsing import extract_count, resolve_landlord_id
from listing_sync.metrics.series import build_daily, build_hourly_24h, build_range

__all__ = [
    "HistoryLog",
    "MetricsAggregator",
    "MetricsFetch",
    "Observation",
    "build_daily",
    "build_hourly_24h",
    "build_range",
    "extract_count",
    "record",
    "resolve_landlord_id",
    "review_counts",
]
