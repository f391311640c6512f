import logging
import os
from datetime import datetime, timedelta
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotelhub.config import settings


def _configure_logging() -> None:
    """Console plus a rotating file under backend/logs (or $LOG_DIR)."""
    log_dir = Path(os.environ.get("LOG_DIR") or Path(__file__).resolve().parent.parent / "logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    level = getattr(logging, os.environ.get("LOG_LEVEL", "INFO").upper(), logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(),
            RotatingFileHandler(
                log_dir / "hotelhub.log",
                maxBytes=20 * 1024 * 1024,
                backupCount=3,
                encoding="utf-8",
            ),
        ],
    )
    for noisy in ("httpcore", "httpx", "uvicorn.access", "apscheduler", "aiosqlite"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


_configure_logging()

from hotelhub.database import async_session_factory
from hotelhub.exceptions.custom import CurrencyMismatchError, HotelNotFoundError, RetryableSearchError, SupplierError
from hotelhub.exceptions.handlers import (
    currency_mismatch_error_handler,
    hotel_not_found_error_handler,
    retryable_search_error_handler,
    supplier_error_handler,
)
from hotelhub.routers import hotels, price_alerts
from hotelhub.services.batch_cache import BatchCache
from hotelhub.services.cache_service import cache_service
from hotelhub.services.cache_warmer import CacheWarmer
from hotelhub.services.content_enricher import ContentEnricher
from hotelhub.services.content_store import content_store
from hotelhub.services.dump_ingestor import DumpIngestor
from hotelhub.services.dump_records import TRANSFORMS
from hotelhub.services.margin_engine import MarginRuleRepository
from hotelhub.services.price_alert_scanner import PriceAlertScanner
from hotelhub.services.search_service import HotelSearchService
from hotelhub.services.supplier_client import RateHawkClient, SupplierClient

logger = logging.getLogger(__name__)


def init_services(
    app: FastAPI,
    session_factory: async_sessionmaker[AsyncSession] = async_session_factory,
    supplier: SupplierClient | None = None,
    batch_cache: BatchCache | None = None,
) -> None:
    """Build the service graph on app.state."""
    supplier = supplier or RateHawkClient()
    batch_cache = batch_cache or BatchCache(
        ttl=settings.search_cache_ttl,
        stale_ttl=settings.search_cache_stale_ttl,
        max_entries=settings.search_cache_max_entries,
        wait_timeout=settings.search_wait_timeout,
    )
    margin_rules = MarginRuleRepository(session_factory, ttl=settings.margin_rules_cache_ttl)
    search_service = HotelSearchService(
        supplier=supplier,
        enricher=ContentEnricher(session_factory),
        margin_rules=margin_rules,
        cache=batch_cache,
        batch_size=settings.search_batch_size,
        page_size=settings.search_page_size,
    )

    app.state.session_factory = session_factory
    app.state.supplier = supplier
    app.state.batch_cache = batch_cache
    app.state.margin_rules = margin_rules
    app.state.search_service = search_service
    app.state.cache_service = cache_service
    app.state.dump_ingestor = DumpIngestor(session_factory, batch_size=settings.dump_batch_size)
    app.state.price_alert_scanner = PriceAlertScanner(session_factory, search_service)
    app.state.cache_warmer = CacheWarmer(search_service)


async def refresh_city_stats(app: FastAPI) -> int:
    async with app.state.session_factory() as db:
        count = await content_store.refresh_city_stats(db)
    cleared = await app.state.cache_service.clear_destination_overviews()
    logger.info(f"City stats: {count} cities aggregated, {cleared} cached overviews cleared")
    return count


async def refresh_dumps(app: FastAPI) -> None:
    """Weekly pull of every dump kind per configured language, then city stats."""
    if not settings.dump_refresh_enabled:
        return
    for language in settings.dump_language_list:
        for kind in TRANSFORMS:
            try:
                stats = await app.state.dump_ingestor.refresh(app.state.supplier, kind, language)
            except SupplierError as e:
                logger.error(f"Dump refresh {kind}/{language} failed: {e.message}")
                continue
            logger.info(f"Dump refresh {kind}/{language}: {stats.as_dict()}")
    await refresh_city_stats(app)


async def sweep_price_alerts(app: FastAPI) -> None:
    stats = await app.state.price_alert_scanner.sweep()
    if stats.notified:
        logger.info(f"Price alerts: {stats.notified} drops notified")


async def purge_batch_cache(app: FastAPI) -> None:
    app.state.batch_cache.purge_expired()


async def warm_popular_destinations(app: FastAPI) -> dict:
    stats = await app.state.cache_warmer.warm_all()
    return stats.as_dict()


def build_scheduler(app: FastAPI) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        sweep_price_alerts, IntervalTrigger(hours=settings.price_alert_check_interval_hours),
        args=[app], id="price_alert_sweep", max_instances=1, coalesce=True,
    )
    scheduler.add_job(
        refresh_dumps, CronTrigger(day_of_week="sun", hour=3, minute=0),
        args=[app], id="dump_refresh", max_instances=1,
    )
    scheduler.add_job(refresh_city_stats, CronTrigger(hour=4, minute=30), args=[app], id="city_stats")
    scheduler.add_job(purge_batch_cache, IntervalTrigger(minutes=15), args=[app], id="batch_cache_purge")
    if settings.warm_enabled:
        scheduler.add_job(
            warm_popular_destinations, IntervalTrigger(hours=settings.warm_interval_hours),
            args=[app], id="cache_warm", max_instances=1, coalesce=True,
            next_run_time=datetime.now() + timedelta(seconds=30),
        )
    return scheduler


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not hasattr(app.state, "search_service"):
        init_services(app)

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = build_scheduler(app)
        scheduler.start()
        logger.info(f"Background scheduler started with {len(scheduler.get_jobs())} jobs")

    yield

    if scheduler:
        scheduler.shutdown(wait=False)
        logger.info("Background scheduler stopped")
    await app.state.supplier.close()
    await app.state.cache_service.close()


app = FastAPI(
    title="HotelHub",
    description="Hotel inventory aggregation and search cache",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["*"],
)

app.add_exception_handler(RetryableSearchError, retryable_search_error_handler)
app.add_exception_handler(SupplierError, supplier_error_handler)
app.add_exception_handler(CurrencyMismatchError, currency_mismatch_error_handler)
app.add_exception_handler(HotelNotFoundError, hotel_not_found_error_handler)

app.include_router(hotels.router, prefix="/api/hotels", tags=["hotels"])
app.include_router(price_alerts.router, prefix="/api", tags=["price-alerts"])


@app.get("/api/health")
async def health():
    return {"status": "ok", "service": "hotelhub", "supplier_mock": getattr(app.state.supplier, "is_mock", False)}
