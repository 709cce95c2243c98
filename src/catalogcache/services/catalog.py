"""Catalog orchestration: keep chunked caches current and answer searches from them.

ensure_cache: validity check → download raw source → build chunks (stale fallback on failure)
fetch_index:  memoized, single-flight per catalog type
search:       index filter → limit → load only the chunks holding the page
"""

from __future__ import annotations

import asyncio
import logging
from collections import defaultdict

from catalogcache.catalogs import CATALOG_FIELDS, CatalogSource, catalog_sources
from catalogcache.config import AppConfig
from catalogcache.exceptions import CancellationError, CatalogCacheError
from catalogcache.infra.remote_fetcher import RemoteFetcher
from catalogcache.models import (
    CacheIndex,
    CacheMetadata,
    CacheStatus,
    ClearReport,
    DownloadProgress,
    IndexEntry,
    ProgressCallback,
)
from catalogcache.services.cache_dir import CacheDirectory
from catalogcache.services.chunk_writer import ChunkWriter
from catalogcache.services.reader import load_index, load_items_from_chunks
from catalogcache.services.search import SearchResult, SearchResults, apply_limit, filter_entries
from catalogcache.services.validity import check_cache_status, read_metadata
from catalogcache.utils import raise_if_cancelled

logger = logging.getLogger(__name__)


class CatalogService:
    """Formula/cask 캐시 관리의 단일 진입점. 타입별 빌드는 한 번에 하나만 실행된다."""

    def __init__(
        self,
        config: AppConfig,
        fetcher: RemoteFetcher,
        cache_dir: CacheDirectory | None = None,
        writer: ChunkWriter | None = None,
    ) -> None:
        self._fetcher = fetcher
        self._dirs = cache_dir or CacheDirectory(config.support_dir)
        self._writer = writer or ChunkWriter(
            fetcher,
            chunk_size=config.chunk_size,
            allowed_keys=CATALOG_FIELDS,
            progress_interval=config.progress_interval,
        )
        self._sources = catalog_sources(config)
        self._indexes: dict[str, CacheIndex] = {}
        self._in_flight: dict[str, asyncio.Task] = {}
        self._build_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @property
    def types(self) -> list[str]:
        return list(self._sources)

    def source(self, cache_type: str) -> CatalogSource:
        try:
            return self._sources[cache_type]
        except KeyError:
            raise ValueError(f"Unknown catalog type: {cache_type}") from None

    # ── Cache lifecycle ──

    async def describe(
        self, cache_type: str, cancel: asyncio.Event | None = None
    ) -> tuple[CacheStatus, CacheMetadata | None]:
        """(status, meta) 반환. CLI status 출력용."""
        source = self.source(cache_type)
        layout = self._dirs.layout(cache_type)
        status = await check_cache_status(
            layout, source.url, self._fetcher, cancel, self._writer.schema_version
        )
        return status, await read_metadata(layout)

    async def ensure_cache(
        self,
        cache_type: str,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
        *,
        force: bool = False,
    ) -> CacheStatus:
        """캐시가 FRESH가 아니면 다운로드 후 재빌드. 재빌드 전 상태를 반환.

        A failed rebuild falls back to whatever complete cache is still on disk;
        cancellation always propagates.
        """
        source = self.source(cache_type)
        layout = self._dirs.layout(cache_type)

        async with self._build_locks[cache_type]:
            if force:
                status = CacheStatus.STALE
            else:
                status = await check_cache_status(
                    layout, source.url, self._fetcher, cancel, self._writer.schema_version
                )
                if status is CacheStatus.FRESH:
                    return status

            source_path = self._dirs.source_path(cache_type)
            try:
                self._dirs.initialize()
                if force:
                    source_path.unlink(missing_ok=True)
                logger.info("Rebuilding %s cache (status=%s)", cache_type, status.value)
                await self._fetcher.download_to_file(source.url, source_path, on_progress, cancel)
                await self._writer.build(
                    source_path, source.url, layout, source.extractor, on_progress, cancel
                )
            except CancellationError:
                raise
            except (CatalogCacheError, OSError) as e:
                if on_progress is not None:
                    on_progress(_failure(source.url, e))
                if self._dirs.has_index(layout):
                    logger.warning(
                        "Chunked cache rebuild failed, using stale cache: type=%s error=%s",
                        cache_type,
                        e,
                    )
                    return status
                raise

            self._indexes.pop(cache_type, None)
            return status

    def clear(self) -> ClearReport:
        report = self._dirs.clear_all()
        self._indexes.clear()
        return report

    # ── Reads ──

    async def fetch_index(
        self,
        cache_type: str,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> CacheIndex:
        """메모리 index 반환. 없으면 캐시 보장 후 로드하며, 동시 호출은 한 작업을 공유한다."""
        cached = self._indexes.get(cache_type)
        if cached is not None:
            return cached

        in_flight = self._in_flight.get(cache_type)
        if in_flight is not None:
            logger.info("Waiting for in-flight %s index load", cache_type)
            try:
                index = await asyncio.shield(in_flight)
            except CancellationError:
                # the owner cancelled; retry with our own signal if it is still live
                if cancel is not None and cancel.is_set():
                    raise
                return await self.fetch_index(cache_type, on_progress, cancel)
            raise_if_cancelled(cancel)
            return index

        task = asyncio.create_task(self._load_index(cache_type, on_progress, cancel))
        self._in_flight[cache_type] = task
        task.add_done_callback(lambda t: self._forget(cache_type, t))
        return await asyncio.shield(task)

    async def fetch_items(self, cache_type: str, entries: list[IndexEntry]) -> list:
        return await load_items_from_chunks(self._dirs.layout(cache_type), entries)

    async def search(
        self,
        text: str,
        limit: int | None = None,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> SearchResults:
        """Formula/cask 동시 검색. limit은 chunk 로딩 전에 적용된다."""
        logger.info("Searching: query=%r limit=%s", text, limit)
        formula_index, cask_index = await asyncio.gather(
            self.fetch_index("formula", on_progress, cancel),
            self.fetch_index("cask", on_progress, cancel),
        )
        raise_if_cancelled(cancel)

        formula_matches = filter_entries(
            formula_index.entries, text, match_aliases=self.source("formula").search_aliases
        )
        cask_matches = filter_entries(
            cask_index.entries, text, match_aliases=self.source("cask").search_aliases
        )

        formulae, casks = await asyncio.gather(
            self.fetch_items("formula", apply_limit(formula_matches, limit)),
            self.fetch_items("cask", apply_limit(cask_matches, limit)),
        )
        raise_if_cancelled(cancel)

        results = SearchResults(
            formulae=SearchResult(items=formulae, total=len(formula_matches)),
            casks=SearchResult(items=casks, total=len(cask_matches)),
        )
        logger.info(
            "Search completed: query=%r formulae=%d/%d casks=%d/%d",
            text,
            len(formulae),
            results.formulae.total,
            len(casks),
            results.casks.total,
        )
        return results

    # ── Internal ──

    async def _load_index(
        self,
        cache_type: str,
        on_progress: ProgressCallback | None,
        cancel: asyncio.Event | None,
    ) -> CacheIndex:
        await self.ensure_cache(cache_type, on_progress, cancel)
        index = await load_index(self._dirs.layout(cache_type))
        self._indexes[cache_type] = index
        return index

    def _forget(self, cache_type: str, task: asyncio.Task) -> None:
        if self._in_flight.get(cache_type) is task:
            del self._in_flight[cache_type]
        if not task.cancelled() and task.exception() is not None:
            logger.debug("%s index load failed: %s", cache_type, task.exception())


def _failure(url: str, error: Exception) -> DownloadProgress:
    return DownloadProgress(
        url=url,
        bytes_downloaded=0,
        total_bytes=0,
        percent=-1,
        complete=False,
        error=True,
        error_message=str(error),
    )
