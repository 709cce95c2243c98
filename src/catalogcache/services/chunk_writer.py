"""Streaming chunked-cache builder.

Source JSON array → chunk-NNNN.json files (CHUNK_SIZE records each) + index.json + meta.json.

Peak memory stays around one chunk of records regardless of catalog size:
the source is pull-parsed with ijson, object keys outside the allow-list are
skipped event by event before anything is materialized, and every full chunk is
handed to a background write task.
"""

import asyncio
import json
import logging
import time
from collections.abc import AsyncIterator, Callable, Collection
from contextlib import aclosing
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiofiles
import ijson

from catalogcache.exceptions import (
    CacheWriteError,
    CancellationError,
    NetworkError,
    ParseError,
)
from catalogcache.infra.remote_fetcher import RemoteFetcher
from catalogcache.models import (
    CacheLayout,
    CacheMetadata,
    DownloadProgress,
    IndexEntry,
    ProgressCallback,
    index_entry_to_dict,
    metadata_to_dict,
)
from catalogcache.services.cache_dir import remove_layout, reset_layout
from catalogcache.utils import now_ms, raise_if_cancelled

logger = logging.getLogger(__name__)

CHUNK_SIZE = 500
CACHE_SCHEMA_VERSION = 1
PROGRESS_INTERVAL = 0.1

IndexExtractor = Callable[[Any, int, int], IndexEntry]

_OPEN_EVENTS = ("start_map", "start_array")
_CLOSE_EVENTS = ("end_map", "end_array")


async def iter_source_items(
    source_path: Path,
    allowed_keys: Collection[str] | None = None,
    cancel: asyncio.Event | None = None,
) -> AsyncIterator[Any]:
    """Yield the elements of a top-level JSON array in document order.

    For object elements only keys in ``allowed_keys`` are built; the values of
    other keys are consumed as parser events and dropped. ``None`` keeps every key.
    The cancellation event is checked before each element.
    """
    async with aiofiles.open(source_path, "rb") as f:
        depth = 0
        builder: ijson.ObjectBuilder | None = None
        skipping = False

        async for _prefix, event, value in ijson.parse_async(f, use_float=True):
            if depth == 0:
                if event != "start_array":
                    raise ValueError(f"Expected a top-level JSON array, got '{event}'")
                depth = 1
                continue

            if event in _OPEN_EVENTS:
                if depth == 1:
                    raise_if_cancelled(cancel)
                    builder = ijson.ObjectBuilder()
                    skipping = False
                depth += 1
                if not skipping:
                    builder.event(event, value)
            elif event in _CLOSE_EVENTS:
                depth -= 1
                if depth == 0:
                    continue
                if depth == 1:
                    builder.event(event, value)
                    yield builder.value
                    builder = None
                elif not skipping:
                    builder.event(event, value)
            elif depth == 1:
                # scalar element of the top-level array
                raise_if_cancelled(cancel)
                yield value
            elif event == "map_key" and depth == 2:
                skipping = allowed_keys is not None and value not in allowed_keys
                if not skipping:
                    builder.event(event, value)
            elif not skipping:
                builder.event(event, value)


async def write_json(path: Path, data: Any) -> None:
    payload = json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    async with aiofiles.open(path, "w", encoding="utf-8") as f:
        await f.write(payload)


@dataclass
class _BuildState:
    entries: list[IndexEntry] = field(default_factory=list)
    current: list[Any] = field(default_factory=list)
    chunk_number: int = 0
    total_items: int = 0
    writes: list[asyncio.Task] = field(default_factory=list)


class ChunkWriter:
    """Builds one chunked cache directory from a downloaded source file."""

    def __init__(
        self,
        fetcher: RemoteFetcher,
        *,
        chunk_size: int = CHUNK_SIZE,
        allowed_keys: Collection[str] | None = None,
        progress_interval: float = PROGRESS_INTERVAL,
        schema_version: int = CACHE_SCHEMA_VERSION,
    ) -> None:
        self._fetcher = fetcher
        self._chunk_size = chunk_size
        self._allowed_keys = frozenset(allowed_keys) if allowed_keys is not None else None
        self._progress_interval = progress_interval
        self._schema_version = schema_version

    @property
    def schema_version(self) -> int:
        return self._schema_version

    async def build(
        self,
        source_path: Path,
        source_url: str,
        layout: CacheLayout,
        extractor: IndexExtractor,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> CacheMetadata:
        """소스 파일을 스트리밍하며 chunk/index/meta 기록. 실패 시 디렉토리 전체 삭제."""
        raise_if_cancelled(cancel)

        started = time.monotonic()
        logger.info("Building chunked cache: type=%s source=%s", layout.type, source_path)
        reset_layout(layout)

        state = _BuildState()
        try:
            last_modified = await self._resolve_source_timestamp(source_url, cancel)
            await self._consume(source_path, source_url, layout, extractor, state, on_progress, cancel)
            meta = await self._finalize(state, layout, source_url, last_modified)
        except asyncio.CancelledError:
            await self._discard(state, layout)
            raise
        except CancellationError:
            await self._discard(state, layout)
            logger.info("Chunked cache build aborted: type=%s", layout.type)
            raise
        except Exception as e:
            await self._discard(state, layout)
            logger.error("Failed to build chunked cache: type=%s error=%s", layout.type, e)
            raise

        logger.info(
            "Chunked cache built: type=%s items=%d chunks=%d (%.1fs)",
            layout.type,
            meta.total_items,
            meta.chunk_count,
            time.monotonic() - started,
        )
        if on_progress is not None:
            on_progress(self._progress(source_url, state, complete=True))
        return meta

    # ── Internal ──

    async def _resolve_source_timestamp(self, source_url: str, cancel: asyncio.Event | None) -> int:
        try:
            remote = await self._fetcher.check_remote_timestamp(source_url, cancel)
        except NetworkError as e:
            logger.debug("Last-Modified lookup failed for %s, using build time: %s", source_url, e)
            remote = None
        return remote or now_ms()

    async def _consume(
        self,
        source_path: Path,
        source_url: str,
        layout: CacheLayout,
        extractor: IndexExtractor,
        state: _BuildState,
        on_progress: ProgressCallback | None,
        cancel: asyncio.Event | None,
    ) -> None:
        last_report = time.monotonic()
        try:
            async with aclosing(iter_source_items(source_path, self._allowed_keys, cancel)) as items:
                async for item in items:
                    entry = extractor(item, state.chunk_number, len(state.current))
                    state.entries.append(entry)
                    state.current.append(item)
                    state.total_items += 1

                    if len(state.current) >= self._chunk_size:
                        self._flush_in_background(state, layout)

                    if on_progress is not None:
                        now = time.monotonic()
                        if now - last_report >= self._progress_interval:
                            last_report = now
                            on_progress(self._progress(source_url, state, complete=False))
        except CancellationError:
            raise
        except Exception as e:
            raise ParseError(f"Failed to build {layout.type} cache: {e}") from e

    def _flush_in_background(self, state: _BuildState, layout: CacheLayout) -> None:
        chunk, number = state.current, state.chunk_number
        state.current = []
        state.chunk_number += 1
        state.writes.append(asyncio.create_task(write_json(layout.chunk_path(number), chunk)))

    async def _finalize(
        self,
        state: _BuildState,
        layout: CacheLayout,
        source_url: str,
        last_modified: int,
    ) -> CacheMetadata:
        try:
            await asyncio.gather(*state.writes)

            if state.current:
                await write_json(layout.chunk_path(state.chunk_number), state.current)
                state.chunk_number += 1
                state.current = []

            await write_json(layout.index_path, [index_entry_to_dict(e) for e in state.entries])

            meta = CacheMetadata(
                version=self._schema_version,
                source_url=source_url,
                last_modified=last_modified,
                created_at=now_ms(),
                total_items=state.total_items,
                chunk_size=self._chunk_size,
                chunk_count=state.chunk_number,
                type=layout.type,
            )
            # meta.json last: its presence marks a complete build.
            await write_json(layout.meta_path, metadata_to_dict(meta))
        except OSError as e:
            raise CacheWriteError(f"Failed to write {layout.type} cache: {e}") from e
        return meta

    async def _discard(self, state: _BuildState, layout: CacheLayout) -> None:
        """Settle in-flight chunk writes, then remove the whole directory."""
        await asyncio.gather(*state.writes, return_exceptions=True)
        remove_layout(layout)

    @staticmethod
    def _progress(source_url: str, state: _BuildState, *, complete: bool) -> DownloadProgress:
        return DownloadProgress(
            url=source_url,
            bytes_downloaded=0,
            total_bytes=0,
            percent=100 if complete else -1,
            complete=complete,
            phase="processing",
            items_processed=state.total_items,
            total_items=state.total_items if complete else None,
        )
