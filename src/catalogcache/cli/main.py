"""catalog-cache CLI (Typer 기반)."""

import asyncio
import logging

import typer

from catalogcache.config import AppConfig
from catalogcache.exceptions import CancellationError, CatalogCacheError
from catalogcache.infra.remote_fetcher import RemoteFetcher
from catalogcache.logging_config import setup_file_logging, setup_logging
from catalogcache.models import CacheStatus, DownloadProgress
from catalogcache.services.catalog import CatalogService
from catalogcache.services.search import SearchResult

logger = logging.getLogger(__name__)
_file_logger = logging.getLogger("catalogcache.cli.output")

app = typer.Typer(help="Chunked cache for Homebrew formula/cask catalogs")

ALL_TYPES = "all"


def _echo(msg: str = "", err: bool = False) -> None:
    """Echo to terminal AND log to file."""
    typer.echo(msg, err=err)
    if msg:
        level = logging.ERROR if err else logging.INFO
        _file_logger.log(level, msg)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable DEBUG logging"),
) -> None:
    """Chunked cache for Homebrew formula/cask catalogs."""
    level = logging.DEBUG if verbose else logging.INFO
    setup_logging(level)
    config = _get_config()
    setup_file_logging(config.log_dir, keep=config.log_files_kept)


def _get_config() -> AppConfig:
    return AppConfig()


def _get_cache_dir(config: AppConfig):
    from catalogcache.services.cache_dir import CacheDirectory

    return CacheDirectory(config.support_dir)


def _handle_error(e: CatalogCacheError) -> None:
    _echo(f"Error: {e}", err=True)
    raise typer.Exit(code=1)


class _ProgressPrinter:
    """진행 상황 콜백. 10% 단위 또는 단계 완료 시에만 출력."""

    def __init__(self) -> None:
        self._last: dict[tuple[str, str | None], int] = {}

    def __call__(self, progress: DownloadProgress) -> None:
        if progress.error:
            _echo(f"Failed {progress.url}: {progress.error_message}", err=True)
            return
        key = (progress.url, progress.phase)
        if progress.phase == "processing":
            if progress.complete:
                _echo(f"Processed {progress.total_items:,} items from {progress.url}")
            return

        step = progress.percent // 10 if progress.percent >= 0 else -1
        if not progress.complete and self._last.get(key) == step:
            return
        self._last[key] = step
        if progress.complete:
            _echo(f"Downloaded {progress.url} ({progress.bytes_downloaded:,} bytes)")
        elif progress.percent >= 0:
            _echo(f"Downloading {progress.url}: {progress.percent}%")


def _run(work):
    """Run ``work(service)`` inside a fresh event loop with a shared fetcher."""
    config = _get_config()

    async def runner():
        async with RemoteFetcher(
            timeout=config.request_timeout, progress_interval=config.progress_interval
        ) as fetcher:
            return await work(CatalogService(config, fetcher))

    try:
        return asyncio.run(runner())
    except (CancellationError, KeyboardInterrupt):
        _echo("Cancelled", err=True)
        raise typer.Exit(code=130)
    except CatalogCacheError as e:
        _handle_error(e)


def _resolve_types(cache_type: str) -> list[str]:
    if cache_type == ALL_TYPES:
        return ["formula", "cask"]
    if cache_type not in ("formula", "cask"):
        _echo(f"Error: unknown catalog type '{cache_type}' (formula, cask, all)", err=True)
        raise typer.Exit(code=1)
    return [cache_type]


@app.command()
def build(
    cache_type: str = typer.Argument(ALL_TYPES, help="formula, cask or all"),
    force: bool = typer.Option(False, "--force", "-f", help="Re-download and rebuild"),
) -> None:
    """Download catalogs and rebuild chunked caches that are stale or missing."""
    types = _resolve_types(cache_type)
    printer = _ProgressPrinter()

    async def work(service: CatalogService):
        return [
            (t, await service.ensure_cache(t, on_progress=printer, force=force)) for t in types
        ]

    for t, previous in _run(work):
        if previous is CacheStatus.FRESH:
            _echo(f"{t}: up to date")
        else:
            _echo(f"{t}: rebuilt (was {previous.value})")


@app.command()
def status() -> None:
    """Show FRESH / STALE / MISSING per catalog."""

    async def work(service: CatalogService):
        return [(t, *(await service.describe(t))) for t in service.types]

    for t, cache_status, meta in _run(work):
        line = f"{t}: {cache_status.value}"
        if meta is not None:
            line += f" ({meta.total_items:,} items, {meta.chunk_count} chunks, schema v{meta.version})"
        _echo(line)


def _print_results(label: str, result: SearchResult, key: str) -> None:
    _echo(f"{label}: {len(result.items)} of {result.total}")
    for item in result.items:
        desc = item.get("desc") or ""
        _echo(f"  {item.get(key)}  {desc}".rstrip())


@app.command()
def search(
    text: str = typer.Argument("", help="Substring to match (name, description, aliases)"),
    limit: int = typer.Option(20, "--limit", "-n", help="Max results per catalog (0 = no limit)"),
) -> None:
    """Search formulae and casks using the chunked caches."""
    printer = _ProgressPrinter()

    async def work(service: CatalogService):
        return await service.search(text, limit=limit or None, on_progress=printer)

    results = _run(work)
    _print_results("Formulae", results.formulae, "name")
    _print_results("Casks", results.casks, "token")


@app.command()
def clear() -> None:
    """Delete legacy cache files and every chunked cache directory."""
    report = _get_cache_dir(_get_config()).clear_all()
    if not report.existing and not report.removed:
        _echo("Nothing to clear")
        return
    for name in report.existing:
        _echo(f"  {name}: {report.sizes[name]:,} bytes")
    _echo(f"Cleared {len(report.removed)} entries ({report.total_bytes:,} bytes of legacy files)")
