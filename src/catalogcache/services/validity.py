"""Cache freshness check against the remote Last-Modified header."""

import asyncio
import logging

from catalogcache.exceptions import NetworkError
from catalogcache.infra.remote_fetcher import RemoteFetcher
from catalogcache.models import CacheLayout, CacheMetadata, CacheStatus, metadata_from_dict
from catalogcache.services.chunk_writer import CACHE_SCHEMA_VERSION
from catalogcache.services.reader import read_json
from catalogcache.utils import now_ms, raise_if_cancelled

logger = logging.getLogger(__name__)


async def read_metadata(layout: CacheLayout) -> CacheMetadata | None:
    """meta.json 로드. 없거나 손상되었으면 None (첫 실행에서는 정상)."""
    try:
        return metadata_from_dict(await read_json(layout.meta_path))
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.debug("No usable meta.json for %s: %s", layout.type, e)
        return None


async def check_cache_status(
    layout: CacheLayout,
    remote_url: str,
    fetcher: RemoteFetcher,
    cancel: asyncio.Event | None = None,
    expected_version: int = CACHE_SCHEMA_VERSION,
) -> CacheStatus:
    """MISSING: meta 없음/손상, STALE: 버전 불일치 또는 원격이 더 최신, FRESH: 그대로 사용 가능.

    Only CancellationError propagates; every other failure maps to a status.
    """
    raise_if_cancelled(cancel)

    meta = await read_metadata(layout)
    if meta is None:
        logger.info("Chunked cache not found or invalid: type=%s", layout.type)
        return CacheStatus.MISSING

    if meta.version != expected_version:
        logger.info(
            "Chunked cache version mismatch: type=%s cache=%s current=%s",
            layout.type,
            meta.version,
            expected_version,
        )
        return CacheStatus.STALE

    try:
        remote_ts = await fetcher.check_remote_timestamp(remote_url, cancel)
    except NetworkError as e:
        logger.info("Could not confirm freshness of %s cache: %s", layout.type, e)
        return CacheStatus.STALE

    if remote_ts is not None and remote_ts > meta.last_modified:
        logger.info(
            "Chunked cache outdated: type=%s cache=%d remote=%d",
            layout.type,
            meta.last_modified,
            remote_ts,
        )
        return CacheStatus.STALE

    logger.info(
        "Chunked cache valid: type=%s items=%d age=%.0fs",
        layout.type,
        meta.total_items,
        (now_ms() - meta.created_at) / 1000,
    )
    return CacheStatus.FRESH


async def is_cache_valid(
    layout: CacheLayout,
    remote_url: str,
    fetcher: RemoteFetcher,
    cancel: asyncio.Event | None = None,
    expected_version: int = CACHE_SCHEMA_VERSION,
) -> bool:
    status = await check_cache_status(layout, remote_url, fetcher, cancel, expected_version)
    return status is CacheStatus.FRESH
