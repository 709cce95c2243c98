"""테스트 데이터 헬퍼."""

import json
from email.utils import formatdate
from pathlib import Path

FORMULA_URL = "https://formulae.example.com/api/formula.json"
CASK_URL = "https://formulae.example.com/api/cask.json"


def http_date(epoch_ms: int) -> str:
    """epoch ms → RFC 1123 Last-Modified 값. (초 단위로 절삭됨)"""
    return formatdate(epoch_ms / 1000, usegmt=True)


def make_formula(i: int, **overrides) -> dict:
    formula = {
        "name": f"formula-{i:05d}",
        "tap": "homebrew/core",
        "desc": f"Tool number {i} for testing",
        "homepage": f"https://example.com/{i}",
        "versions": {"stable": f"1.{i}.0", "head": None, "bottle": True},
        "aliases": [f"Alias-{i}"] if i % 3 == 0 else [],
        "dependencies": [],
        "bottle": {"stable": {"files": {"arm64_sonoma": {"sha256": "0" * 64}}}},
        "urls": {"stable": {"url": f"https://example.com/{i}.tar.gz"}},
    }
    formula.update(overrides)
    return formula


def make_cask(i: int, **overrides) -> dict:
    cask = {
        "token": f"cask-{i:05d}",
        "name": [f"Cask App {i}"],
        "desc": f"Desktop application {i}",
        "homepage": f"https://apps.example.com/{i}",
        "version": f"2.{i}",
        "auto_updates": False,
        "artifacts": [{"app": [f"Cask App {i}.app"]}],
    }
    cask.update(overrides)
    return cask


def write_catalog(path: Path, items: list) -> Path:
    path.write_text(json.dumps(items), encoding="utf-8")
    return path
