"""Support directory lifecycle: per-type cache directories and bulk clear."""

import logging
import shutil
from pathlib import Path

from catalogcache.models import CacheLayout, ClearReport

logger = logging.getLogger(__name__)

CACHE_TYPES = ("formula", "cask")
LEGACY_CACHE_FILES = ("formula.json", "cask.json", "installedv2.json")


def reset_layout(layout: CacheLayout) -> None:
    """Delete and recreate a type directory. Builds are never incremental."""
    remove_layout(layout)
    layout.base_dir.mkdir(parents=True, exist_ok=True)


def remove_layout(layout: CacheLayout) -> None:
    """Best-effort removal of a type directory; cleanup errors are swallowed."""
    shutil.rmtree(layout.base_dir, ignore_errors=True)


class CacheDirectory:
    """Owns the support directory tree.

    Storage layout:
        {support_dir}/formula.json, cask.json, installedv2.json   (legacy / raw source)
        {support_dir}/{type}/meta.json, index.json, chunk-NNNN.json
    """

    def __init__(self, support_dir: Path) -> None:
        self._root = support_dir

    def initialize(self) -> Path:
        """Support 디렉토리 생성. 실패 시 OSError를 그대로 전파."""
        self._root.mkdir(parents=True, exist_ok=True)
        return self._root

    def layout(self, cache_type: str) -> CacheLayout:
        return CacheLayout(base_dir=self._root / cache_type, type=cache_type)

    def source_path(self, cache_type: str) -> Path:
        """다운로드한 원본 JSON 경로. (예: support/formula.json)"""
        return self._root / f"{cache_type}.json"

    def has_index(self, layout: CacheLayout) -> bool:
        """index.json + meta.json 둘 다 존재하는지. (stale fallback 판단용)"""
        return layout.index_path.is_file() and layout.meta_path.is_file()

    def clear_all(self) -> ClearReport:
        """Remove legacy flat files and every chunked type directory.

        Each deletion is independent; a missing file or directory is not an error.
        """
        report = ClearReport()
        for name in LEGACY_CACHE_FILES:
            path = self._root / name
            try:
                size = path.stat().st_size
            except OSError:
                continue
            report.existing.append(name)
            report.sizes[name] = size

        if report.existing:
            logger.info(
                "Clearing cache files: %s (%d bytes)", ", ".join(report.existing), report.total_bytes
            )
        else:
            logger.info("No cache files to clear")

        for name in LEGACY_CACHE_FILES:
            try:
                (self._root / name).unlink(missing_ok=True)
            except OSError as e:
                logger.debug("Failed to remove %s: %s", name, e)
                continue
            if name in report.existing:
                report.removed.append(name)

        for cache_type in CACHE_TYPES:
            base_dir = self._root / cache_type
            existed = base_dir.exists()
            shutil.rmtree(base_dir, ignore_errors=True)
            if existed and not base_dir.exists():
                report.removed.append(f"{cache_type}/")

        logger.info("Cache clear completed: %d entries removed", len(report.removed))
        return report
