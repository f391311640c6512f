"""Operator commands for dump ingestion, destination stats, alert sweeps and cache warming.

Usage examples:

  # Import a downloaded hotel content dump
  python -m hotelhub.cli ingest hotel_info partner_feed_en.json.zst --language en

  # Import only the first 5000 POI records (for testing)
  python -m hotelhub.cli ingest poi poi_dump_en.jsonl.zst --limit 5000

  # Fetch the current reviews dump from the supplier and import it
  python -m hotelhub.cli refresh-dump reviews --language en

  # Recompute per-city hotel counts
  python -m hotelhub.cli city-stats

  # Check that popular destinations load for a holiday week
  python -m hotelhub.cli warm-cache Mecca Medina --checkin 2027-03-20 --checkout 2027-03-27
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date

from hotelhub.config import settings
from hotelhub.database import async_session_factory
from hotelhub.services.dump_ingestor import DumpIngestor, DumpSource
from hotelhub.services.dump_records import TRANSFORMS, transform_for

logger = logging.getLogger("hotelhub.cli")


async def _ingest(args) -> dict:
    ingestor = DumpIngestor(async_session_factory, batch_size=args.batch_size)
    stats = await ingestor.ingest(DumpSource(args.path), transform_for(args.kind), language=args.language, limit=args.limit)
    return stats.as_dict()


async def _refresh_dump(args) -> dict:
    from hotelhub.services.supplier_client import RateHawkClient

    supplier = RateHawkClient()
    try:
        ingestor = DumpIngestor(async_session_factory)
        stats = await ingestor.refresh(supplier, args.kind, language=args.language)
        return stats.as_dict()
    finally:
        await supplier.close()


async def _city_stats(_args) -> dict:
    from hotelhub.services.cache_service import cache_service
    from hotelhub.services.content_store import content_store

    async with async_session_factory() as db:
        cities = await content_store.refresh_city_stats(db)
    try:
        cleared = await cache_service.clear_destination_overviews()
    finally:
        await cache_service.close()
    return {"cities": cities, "cached_overviews_cleared": cleared}


async def _scan_alerts(_args) -> dict:
    from fastapi import FastAPI

    from hotelhub.main import init_services

    app = FastAPI()
    init_services(app)
    try:
        stats = await app.state.price_alert_scanner.sweep()
    finally:
        await app.state.supplier.close()
    return {
        "total": stats.total,
        "checked": stats.checked,
        "notified": stats.notified,
        "deactivated": stats.deactivated,
        "errors": stats.errors,
    }


async def _warm_cache(args) -> dict:
    from fastapi import FastAPI

    from hotelhub.main import init_services

    app = FastAPI()
    init_services(app)
    try:
        stats = await app.state.cache_warmer.warm_all(args.destinations or None, args.checkin, args.checkout)
    finally:
        await app.state.supplier.close()
    return stats.as_dict()


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="hotelhub", description="HotelHub operator commands")
    sub = ap.add_subparsers(dest="command", required=True)

    ingest = sub.add_parser("ingest", help="Import a dump file (.zst, .gz or plain JSONL)")
    ingest.add_argument("kind", choices=sorted(TRANSFORMS))
    ingest.add_argument("path", help="Path to the dump file")
    ingest.add_argument("--language", default=settings.supplier_language)
    ingest.add_argument("--limit", type=int, help="Max records to process")
    ingest.add_argument("--batch-size", type=int, default=settings.dump_batch_size)
    ingest.set_defaults(handler=_ingest)

    refresh = sub.add_parser("refresh-dump", help="Download the supplier's current dump and import it")
    refresh.add_argument("kind", choices=sorted(TRANSFORMS))
    refresh.add_argument("--language", default=settings.supplier_language)
    refresh.set_defaults(handler=_refresh_dump)

    stats = sub.add_parser("city-stats", help="Recompute per-city hotel counts")
    stats.set_defaults(handler=_city_stats)

    scan = sub.add_parser("scan-alerts", help="Run one price alert sweep")
    scan.set_defaults(handler=_scan_alerts)

    warm = sub.add_parser("warm-cache", help="Run one search cache warm-up pass and report which destinations load")
    warm.add_argument("destinations", nargs="*", help="Destinations (default: WARM_DESTINATIONS)")
    warm.add_argument("--checkin", type=date.fromisoformat)
    warm.add_argument("--checkout", type=date.fromisoformat)
    warm.set_defaults(handler=_warm_cache)
    return ap


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    args = build_parser().parse_args(argv)
    result = asyncio.run(args.handler(args))
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
