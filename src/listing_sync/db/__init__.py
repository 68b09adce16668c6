"""Database storage for the metric history."""

from listing_sync.db.history_store import HistoryStore

__all__ = ["HistoryStore"]
