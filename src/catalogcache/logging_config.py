"""Logging configuration for catalog-cache."""

import logging
import sys
from datetime import datetime
from pathlib import Path

_configured = False

LOGGER_NAME = "catalogcache"
NOISY_LOGGERS = ("httpx", "httpcore", "hpack")

LOG_FILES_KEPT = 20

_LINE_FORMAT = "%(asctime)s %(levelname)-5s [%(name)s] %(message)s"


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging for the catalogcache package.

    - Output to stderr (keeps typer.echo stdout clean)
    - Format: HH:MM:SS LEVEL [module.name] message
    - Silences noisy third-party loggers to WARNING
    - Idempotent: safe to call multiple times
    """
    global _configured
    if _configured:
        return
    _configured = True

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(_LINE_FORMAT, datefmt="%H:%M:%S"))

    root = logging.getLogger(LOGGER_NAME)
    root.setLevel(level)
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_file_logging(log_dir: Path, keep: int = LOG_FILES_KEPT) -> logging.FileHandler:
    """Add a file handler that captures DEBUG-level logs.

    Creates {log_dir}/catalog-YYYYMMDD_HHMMSS.log and prunes older run logs so that
    at most ``keep`` remain. Returns the handler for cleanup.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_path = log_dir / f"catalog-{timestamp}.log"
    prune_log_files(log_dir, keep - 1, exclude=log_path)

    handler = logging.FileHandler(log_path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_LINE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root = logging.getLogger(LOGGER_NAME)
    root.addHandler(handler)
    return handler


def prune_log_files(log_dir: Path, keep: int, exclude: Path | None = None) -> list[Path]:
    """Delete all but the newest ``keep`` catalog-*.log files. 삭제 실패는 무시."""
    # timestamped names sort chronologically
    logs = sorted(p for p in log_dir.glob("catalog-*.log") if p != exclude)
    stale = logs[: max(len(logs) - keep, 0)]
    removed = []
    for path in stale:
        try:
            path.unlink()
        except OSError:
            continue
        removed.append(path)
    return removed


def reset_logging() -> None:
    """Reset logging state. For testing only."""
    global _configured
    _configured = False
    root = logging.getLogger(LOGGER_NAME)
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()
    root.setLevel(logging.WARNING)
