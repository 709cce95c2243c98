"""Index-first reads: load index.json + meta.json, then only the chunk files a query needs."""

import asyncio
import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

import aiofiles

from catalogcache.exceptions import CacheLoadError
from catalogcache.models import (
    CacheIndex,
    CacheLayout,
    IndexEntry,
    index_entry_from_dict,
    metadata_from_dict,
)

logger = logging.getLogger(__name__)


async def read_json(path: Path) -> Any:
    async with aiofiles.open(path, encoding="utf-8") as f:
        return json.loads(await f.read())


async def load_index(layout: CacheLayout) -> CacheIndex:
    """index.json + meta.json 병렬 로드. 누락/손상은 CacheLoadError.

    Callers are expected to have checked validity first; a failure here is a hard error.
    """
    try:
        raw_entries, raw_meta = await asyncio.gather(
            read_json(layout.index_path), read_json(layout.meta_path)
        )
        if not isinstance(raw_entries, list):
            raise ValueError("index.json is not a JSON array")
        entries = [index_entry_from_dict(d) for d in raw_entries]
        meta = metadata_from_dict(raw_meta)
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise CacheLoadError(f"Failed to load {layout.type} index: {e}") from e

    logger.info("Loaded chunked index: type=%s entries=%d", layout.type, len(entries))
    return CacheIndex(entries=entries, meta=meta)


async def load_chunks(layout: CacheLayout, chunk_numbers: Iterable[int]) -> dict[int, list]:
    """요청된 chunk 파일만 병렬로 읽는다. 빈 입력이면 I/O 없이 {}."""
    numbers = sorted(set(chunk_numbers))
    if not numbers:
        return {}

    async def _load(number: int) -> list:
        data = await read_json(layout.chunk_path(number))
        if not isinstance(data, list):
            raise ValueError(f"chunk {number} is not a JSON array")
        return data

    try:
        results = await asyncio.gather(*(_load(n) for n in numbers))
    except (OSError, ValueError) as e:
        raise CacheLoadError(f"Failed to load {layout.type} chunks: {e}") from e

    chunks = dict(zip(numbers, results))
    logger.debug(
        "Loaded chunks: type=%s chunks=%d items=%d",
        layout.type,
        len(chunks),
        sum(len(items) for items in chunks.values()),
    )
    return chunks


async def load_items_from_chunks(layout: CacheLayout, entries: list[IndexEntry]) -> list:
    """IndexEntry 순서대로 전체 레코드 복원. 각 chunk는 한 번만 읽는다.

    Entries pointing outside their chunk are skipped, so the result can be shorter
    than ``entries``.
    """
    if not entries:
        return []

    chunks = await load_chunks(layout, {e.chunk_number for e in entries})

    items: list = []
    skipped = 0
    for entry in entries:
        chunk = chunks.get(entry.chunk_number)
        if chunk is None or not 0 <= entry.index_in_chunk < len(chunk):
            skipped += 1
            continue
        items.append(chunk[entry.index_in_chunk])

    if skipped:
        logger.warning(
            "Skipped %d index entries with out-of-range chunk pointers: type=%s",
            skipped,
            layout.type,
        )
    return items
