"""Dump ingestor — streams compressed JSONL dumps into the content store in bounded batches."""

import asyncio
import gzip
import io
import itertools
import json
import logging
from collections.abc import Iterator
from dataclasses import asdict, dataclass
from pathlib import Path
from urllib.parse import urlparse

import httpx
import zstandard
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hotelhub.config import settings
from hotelhub.exceptions.custom import SupplierError
from hotelhub.services.dump_records import RecordTransform, transform_for
from hotelhub.services.supplier_client import SupplierClient

logger = logging.getLogger(__name__)

MAX_LOGGED_ERRORS = 10
PROGRESS_EVERY = 10_000


class DumpSource:
    """A dump file on disk; each call to lines() restarts from the beginning."""

    def __init__(self, path: Path | str):
        self.path = Path(path)

    @property
    def compression(self) -> str:
        suffix = self.path.suffix.lower()
        if suffix == ".zst":
            return "zstd"
        if suffix == ".gz":
            return "gzip"
        return "none"

    def lines(self) -> Iterator[bytes]:
        """Raw lines; decoding is left to the caller so one bad byte costs one record."""
        if self.compression == "zstd":
            with open(self.path, "rb") as fh:
                dctx = zstandard.ZstdDecompressor(max_window_size=2**31)
                with dctx.stream_reader(fh) as reader:
                    yield from io.BufferedReader(reader)
        elif self.compression == "gzip":
            with gzip.open(self.path, "rb") as fh:
                yield from fh
        else:
            with open(self.path, "rb") as fh:
                yield from fh


@dataclass
class IngestStats:
    processed: int = 0
    imported: int = 0
    skipped: int = 0
    errored: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def _take(lines: Iterator[bytes], count: int) -> list[bytes]:
    return list(itertools.islice(lines, count))


class DumpIngestor:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], batch_size: int | None = None):
        self._session_factory = session_factory
        self._batch_size = batch_size or settings.dump_batch_size

    async def ingest(
        self,
        source: DumpSource,
        transform: RecordTransform,
        language: str = "en",
        limit: int | None = None,
    ) -> IngestStats:
        """decompress -> split lines -> parse -> transform -> batch -> upsert.

        Reading and decompression run on a worker thread one chunk at a time,
        so memory stays bounded by the batch size.
        """
        stats = IngestStats()
        batch: list[dict] = []
        lines = source.lines()
        logger.info(f"Ingesting {transform.kind} dump {source.path} ({source.compression})")

        try:
            while True:
                chunk = await asyncio.to_thread(_take, lines, self._batch_size)
                if not chunk:
                    break
                for line in chunk:
                    line = line.strip()
                    if not line:
                        continue
                    if limit is not None and stats.processed >= limit:
                        break
                    stats.processed += 1
                    try:
                        row = transform.parse(json.loads(line.decode("utf-8")), language)
                    except (ValueError, TypeError, KeyError, AttributeError, ArithmeticError) as e:
                        stats.errored += 1
                        if stats.errored <= MAX_LOGGED_ERRORS:
                            logger.warning(f"Skipping bad {transform.kind} record #{stats.processed}: {e}")
                        continue
                    if row is None:
                        stats.skipped += 1
                        continue
                    batch.append(row)
                    if len(batch) >= self._batch_size:
                        await self._flush(batch, transform, stats)
                        batch = []
                    if stats.processed % PROGRESS_EVERY == 0:
                        logger.info(f"{transform.kind}: processed {stats.processed} records")
                if limit is not None and stats.processed >= limit:
                    break
            if batch:
                await self._flush(batch, transform, stats)
        finally:
            await asyncio.to_thread(lines.close)

        logger.info(
            f"{transform.kind} dump done: {stats.processed} processed, {stats.imported} imported, "
            f"{stats.skipped} skipped, {stats.errored} errors"
        )
        return stats

    async def _flush(self, batch: list[dict], transform: RecordTransform, stats: IngestStats) -> None:
        try:
            async with self._session_factory() as db:
                await transform.upsert(db, batch)
            stats.imported += len(batch)
        except SQLAlchemyError as e:
            stats.errored += len(batch)
            logger.error(f"Failed to write {len(batch)} {transform.kind} records: {e}")

    async def refresh(
        self,
        supplier: SupplierClient,
        kind: str,
        language: str = "en",
        download_dir: Path | str | None = None,
    ) -> IngestStats:
        """Fetch the current dump URL, download it and ingest it."""
        transform = transform_for(kind)
        info = await supplier.bulk_dump(kind, language)
        filename = Path(urlparse(info.url).path).name or f"{kind}_{language}.jsonl.zst"
        path = await download_dump(info.url, Path(download_dir or settings.dump_download_dir) / filename)
        return await self.ingest(DumpSource(path), transform, language=language)


async def download_dump(url: str, dest: Path, client: httpx.AsyncClient | None = None) -> Path:
    """Stream a dump to disk; the file only appears once complete."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    partial = dest.with_name(dest.name + ".part")
    owns_client = client is None
    client = client or httpx.AsyncClient(timeout=httpx.Timeout(300.0), follow_redirects=True)
    written = 0
    try:
        async with client.stream("GET", url) as resp:
            resp.raise_for_status()
            with open(partial, "wb") as fh:
                async for chunk in resp.aiter_bytes(1024 * 1024):
                    fh.write(chunk)
                    written += len(chunk)
        partial.replace(dest)
    except httpx.HTTPError as e:
        partial.unlink(missing_ok=True)
        raise SupplierError(f"Dump download failed: {e}", retryable=True) from e
    finally:
        if owns_client:
            await client.aclose()

    logger.info(f"Downloaded {written / 1024 / 1024:.1f} MB to {dest}")
    return dest
