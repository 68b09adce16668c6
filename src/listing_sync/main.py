"""Command-line entry point for the listing sync engine."""

import argparse
import asyncio
import logging
import sys

from listing_sync.client import BackendClient
from listing_sync.config import Settings
from listing_sync.db import HistoryStore
from listing_sync.engine import SyncEngine
from listing_sync.logging import configure_logging, get_logger
from listing_sync.models import SeriesRange

logger = get_logger(__name__)


async def run_once(settings: Settings, *, series_range: SeriesRange) -> None:
    """Run a single sync cycle and print the resulting state.

    History is loaded from and saved to the configured store, so repeated
    runs build up the view-delta series.

    Args:
        settings: Application settings.
        series_range: Chart range to print.
    """
    client = BackendClient(settings)
    store = HistoryStore(settings.history_db_path) if settings.history_db_path else None
    engine = SyncEngine(client, settings, store=store)

    try:
        if store is not None:
            await store.initialize()
            await engine.load_history()
        await engine.cycle()
        engine.change_range(series_range)
        snapshot = engine.snapshot()
    finally:
        await client.close()
        if store is not None:
            await store.close()

    print(f"\n{'=' * 60}")
    print(f"Synced {len(snapshot.listings)} listings")
    print(f"{'=' * 60}\n")

    for row in snapshot.listings:
        listing = row.listing
        print(f"[{listing.status or '-'}] {listing.title or listing.id}")
        print(f"  Estate: {listing.estate or '-'} | Price: {listing.price or 0:,.0f}")
        print(
            f"  Views: {row.metrics.views} | Landlord views: {row.metrics.landlord_views}"
        )
        print()

    print(f"Series ({snapshot.series_range}):")
    for point in snapshot.series:
        print(
            f"  {point.label}  listings +{point.listing_daily} ({point.listing_cumulative})"
            f"  reviews +{point.review_daily} ({point.review_cumulative})"
            f"  views +{point.views_delta} ({point.views_cumulative})"
        )


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Listing Sync - live listing reconciliation and engagement trends"
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Start the web API with the background poller",
    )
    parser.add_argument(
        "--no-poll",
        action="store_true",
        help="With --serve: start the web API only, without polling",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run one sync cycle and print listings, metrics and series",
    )
    parser.add_argument(
        "--range",
        dest="series_range",
        choices=[r.value for r in SeriesRange],
        default=SeriesRange.LAST_7D.value,
        help="Chart range printed by --once",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging for troubleshooting",
    )
    args = parser.parse_args()

    try:
        settings = Settings()
    except Exception as e:
        print(f"Error: Failed to load settings. {e}")
        print("Settings are read from LISTING_SYNC_* environment variables or .env")
        sys.exit(1)

    configure_logging(
        json_output=settings.json_logs,
        level=logging.DEBUG if args.debug else logging.INFO,
    )
    logger.info(
        "starting_listing_sync",
        api_base_url=settings.api_base_url,
        poll_interval_seconds=settings.poll_interval_seconds,
        serve=args.serve,
        once=args.once,
    )

    if args.serve:
        import uvicorn

        from listing_sync.web.app import create_app

        app = create_app(settings, run_poller=not args.no_poll)
        uvicorn.run(app, host=settings.web_host, port=settings.web_port, log_level="info")
    elif args.once:
        asyncio.run(run_once(settings, series_range=SeriesRange(args.series_range)))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
