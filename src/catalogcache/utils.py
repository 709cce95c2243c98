"""Time and cancellation helpers shared by the fetcher and the cache services."""

import asyncio
import time
from datetime import timezone
from email.utils import parsedate_to_datetime

from catalogcache.exceptions import CancellationError


def now_ms() -> int:
    return int(time.time() * 1000)


def parse_http_date(value: str | None) -> int | None:
    """'Wed, 21 Oct 2015 07:28:00 GMT' → epoch ms. 없거나 파싱 실패 시 None."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp() * 1000)


def raise_if_cancelled(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise CancellationError()


def percent_of(done: int, total: int) -> int:
    """진행률(0-100). total을 모르면 -1."""
    if total <= 0:
        return -1
    return min(round(done / total * 100), 100)
