"""Async HTTP client for remote catalog sources: HEAD freshness checks and streamed downloads."""

import asyncio
import logging
import time
from pathlib import Path

import aiofiles
import httpx

from catalogcache.exceptions import CancellationError, CatalogCacheError, NetworkError
from catalogcache.models import DownloadProgress, ProgressCallback
from catalogcache.utils import now_ms, parse_http_date, percent_of, raise_if_cancelled

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30.0
PROGRESS_INTERVAL = 0.1


class RemoteFetcher:
    """Conditional HTTP retrieval of catalog JSON documents.

    Bodies are streamed straight to disk; nothing here holds a full payload in memory.
    Every public method accepts an optional ``asyncio.Event`` used as a cooperative
    cancellation signal.
    """

    def __init__(
        self,
        *,
        timeout: float = REQUEST_TIMEOUT,
        progress_interval: float = PROGRESS_INTERVAL,
    ) -> None:
        self._client = httpx.AsyncClient(follow_redirects=True, timeout=timeout)
        self._progress_interval = progress_interval

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()

    # ── Public API ──

    async def check_remote_timestamp(
        self, url: str, cancel: asyncio.Event | None = None
    ) -> int | None:
        """HEAD 요청으로 Last-Modified(epoch ms) 조회. 헤더가 없으면 None."""
        request = self._client.build_request("HEAD", url)
        try:
            response = await self._send(request, cancel)
        except httpx.HTTPError as e:
            raise NetworkError(f"HEAD {url} failed: {e}", url=url) from e

        if not response.is_success:
            raise NetworkError(
                f"HTTP {response.status_code}: {response.reason_phrase}",
                url=url,
                status_code=response.status_code,
            )

        last_modified = parse_http_date(response.headers.get("last-modified"))
        logger.debug("HEAD %s → %d, last-modified=%s", url, response.status_code, last_modified)
        return last_modified

    async def download_to_file(
        self,
        url: str,
        dest: Path,
        on_progress: ProgressCallback | None = None,
        cancel: asyncio.Event | None = None,
    ) -> int:
        """Download ``url`` into ``dest`` unless the local copy is already current.

        Returns the remote Last-Modified timestamp (epoch ms), falling back to the
        current time when the header is absent. A partially written ``dest`` is
        removed before any error propagates.
        """
        raise_if_cancelled(cancel)

        cached = await self._check_local_copy(url, dest, cancel)
        if cached is not None:
            return cached

        started = time.monotonic()
        logger.info("Starting download: %s", url)

        request = self._client.build_request("GET", url, headers={"Accept-Encoding": "identity"})
        try:
            response = await self._send(request, cancel, stream=True)
        except httpx.HTTPError as e:
            raise NetworkError(f"GET {url} failed: {e}", url=url) from e

        try:
            if not response.is_success:
                raise NetworkError(
                    f"HTTP {response.status_code}: {response.reason_phrase}",
                    url=url,
                    status_code=response.status_code,
                )
            total_bytes = _content_length(response)
            downloaded = await self._stream_to_file(
                response, dest, url, total_bytes, on_progress, cancel
            )
        finally:
            await response.aclose()

        logger.info(
            "Downloaded %s → %s (%d bytes, %.1fs)",
            url,
            dest,
            downloaded,
            time.monotonic() - started,
        )
        return parse_http_date(response.headers.get("last-modified")) or now_ms()

    # ── Internal ──

    async def _check_local_copy(
        self, url: str, dest: Path, cancel: asyncio.Event | None
    ) -> int | None:
        """로컬 파일이 원격보다 최신이면 기준 timestamp 반환, 아니면 None."""
        try:
            stat = dest.stat()
        except FileNotFoundError:
            logger.debug("Cache miss for download: %s", dest)
            return None
        if stat.st_size == 0:
            return None

        try:
            remote_ts = await self.check_remote_timestamp(url, cancel)
        except NetworkError as e:
            # Unreachable remote: keep serving the local copy.
            logger.debug("Freshness check failed for %s, keeping local copy: %s", url, e)
            remote_ts = 0

        if remote_ts is None:
            return None

        mtime_ms = int(stat.st_mtime * 1000)
        if remote_ts <= mtime_ms:
            logger.info(
                "Using cached file (up to date): %s, age %.0fs",
                dest,
                (now_ms() - mtime_ms) / 1000,
            )
            return remote_ts or mtime_ms
        return None

    async def _send(
        self,
        request: httpx.Request,
        cancel: asyncio.Event | None,
        *,
        stream: bool = False,
    ) -> httpx.Response:
        """Send a request, racing it against the cancellation event."""
        raise_if_cancelled(cancel)
        if cancel is None:
            return await self._client.send(request, stream=stream)

        sending = asyncio.ensure_future(self._client.send(request, stream=stream))
        waiter = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({sending, waiter}, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            sending.cancel()
            raise
        finally:
            waiter.cancel()

        if not sending.done():
            sending.cancel()
            await asyncio.gather(sending, return_exceptions=True)
            raise CancellationError()
        return sending.result()

    async def _stream_to_file(
        self,
        response: httpx.Response,
        dest: Path,
        url: str,
        total_bytes: int,
        on_progress: ProgressCallback | None,
        cancel: asyncio.Event | None,
    ) -> int:
        downloaded = 0
        last_report = time.monotonic()

        def report(percent: int, complete: bool) -> None:
            if on_progress is not None:
                on_progress(
                    DownloadProgress(
                        url=url,
                        bytes_downloaded=downloaded,
                        total_bytes=total_bytes,
                        percent=percent,
                        complete=complete,
                        phase="downloading",
                    )
                )

        report(0, False)
        dest.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with aiofiles.open(dest, "wb") as f:
                async for chunk in response.aiter_bytes():
                    raise_if_cancelled(cancel)
                    await f.write(chunk)
                    downloaded += len(chunk)

                    now = time.monotonic()
                    finished = total_bytes > 0 and downloaded >= total_bytes
                    if finished or now - last_report >= self._progress_interval:
                        last_report = now
                        report(percent_of(downloaded, total_bytes), False)
        except httpx.HTTPError as e:
            _remove_partial(dest)
            raise NetworkError(f"Download of {url} interrupted: {e}", url=url) from e
        except (CatalogCacheError, OSError, asyncio.CancelledError):
            _remove_partial(dest)
            raise

        report(100, True)
        return downloaded


def _content_length(response: httpx.Response) -> int:
    try:
        return int(response.headers.get("content-length", 0))
    except ValueError:
        return 0


def _remove_partial(dest: Path) -> None:
    try:
        dest.unlink(missing_ok=True)
    except OSError as e:
        logger.debug("Failed to remove partial download %s: %s", dest, e)
