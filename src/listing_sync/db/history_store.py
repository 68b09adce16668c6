"""SQLite persistence for the metric history event log."""

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import aiosqlite

from listing_sync.logging import get_logger
from listing_sync.models import HistoryEvent

logger = get_logger(__name__)


def _to_db_time(ts: datetime) -> str:
    # Fixed width (UTC offset, microseconds always present) so lexical order
    # matches chronological order
    return ts.astimezone(UTC).isoformat(timespec="microseconds")


class HistoryStore:
    """SQLite-backed storage for history events, so charts survive a restart."""

    def __init__(self, db_path: str) -> None:
        """Initialize storage with database path.

        Args:
            db_path: Path to SQLite database file, or ":memory:" for in-memory.
        """
        self.db_path = db_path
        self._conn: aiosqlite.Connection | None = None
        self._ensure_directory()

    def _ensure_directory(self) -> None:
        """Ensure the directory for the database exists."""
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create the database connection."""
        if self._conn is None:
            self._conn = await aiosqlite.connect(self.db_path)
            self._conn.row_factory = aiosqlite.Row
            await self._conn.execute("PRAGMA journal_mode=WAL")
            await self._conn.execute("PRAGMA busy_timeout=5000")
            await self._conn.execute("PRAGMA synchronous=NORMAL")
        return self._conn

    async def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def initialize(self) -> None:
        """Initialize the database schema."""
        conn = await self._get_connection()
        await conn.execute("""
            CREATE TABLE IF NOT EXISTS history_events (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp TEXT NOT NULL,
                listing_id TEXT NOT NULL,
                views INTEGER NOT NULL,
                landlord_views INTEGER NOT NULL,
                reviews INTEGER NOT NULL,
                delta_views INTEGER NOT NULL DEFAULT 0,
                delta_reviews INTEGER NOT NULL DEFAULT 0
            )
        """)
        await conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_history_timestamp
            ON history_events(timestamp)
        """)
        await conn.commit()

    async def append(self, events: Sequence[HistoryEvent]) -> None:
        """Persist events in append order, all or nothing."""
        if not events:
            return
        conn = await self._get_connection()
        try:
            await conn.executemany(
                """
                INSERT INTO history_events (
                    timestamp, listing_id, views, landlord_views, reviews,
                    delta_views, delta_reviews
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        _to_db_time(e.timestamp),
                        e.listing_id,
                        e.views,
                        e.landlord_views,
                        e.reviews,
                        e.delta_views,
                        e.delta_reviews,
                    )
                    for e in events
                ],
            )
            await conn.commit()
        except aiosqlite.Error:
            await conn.rollback()
            raise

    async def load_since(self, cutoff: datetime) -> list[HistoryEvent]:
        """Load events at or after ``cutoff``, in the order they were appended."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            """
            SELECT timestamp, listing_id, views, landlord_views, reviews,
                   delta_views, delta_reviews
            FROM history_events
            WHERE timestamp >= ?
            ORDER BY id
            """,
            (_to_db_time(cutoff),),
        )
        rows = await cursor.fetchall()
        return [
            HistoryEvent(
                timestamp=datetime.fromisoformat(row["timestamp"]),
                listing_id=row["listing_id"],
                views=row["views"],
                landlord_views=row["landlord_views"],
                reviews=row["reviews"],
                delta_views=row["delta_views"],
                delta_reviews=row["delta_reviews"],
            )
            for row in rows
        ]

    async def prune(self, cutoff: datetime) -> int:
        """Delete events older than ``cutoff``. Returns the number deleted."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            "DELETE FROM history_events WHERE timestamp < ?",
            (_to_db_time(cutoff),),
        )
        await conn.commit()
        if cursor.rowcount:
            logger.debug("history_store_pruned", deleted=cursor.rowcount)
        return cursor.rowcount
