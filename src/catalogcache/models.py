"""캐시 구성요소 간 데이터 교환을 위한 데이터 모델 및 직렬화 유틸리티."""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── 디스크 레이아웃 ──


@dataclass(frozen=True)
class CacheLayout:
    """타입별 캐시 디렉토리 경로 모음. (예: support/formula/)"""

    base_dir: Path
    type: str  # "formula" | "cask"

    @property
    def index_path(self) -> Path:
        return self.base_dir / "index.json"

    @property
    def meta_path(self) -> Path:
        return self.base_dir / "meta.json"

    def chunk_path(self, chunk_number: int) -> Path:
        """chunk_number=3 → {base_dir}/chunk-0003.json"""
        return self.base_dir / f"chunk-{chunk_number:04d}.json"


# ── Index / Meta 모델 ──


@dataclass
class IndexEntry:
    """검색용 경량 레코드. (chunk_number, index_in_chunk)로 전체 레코드를 가리킨다."""

    id: str  # formula name | cask token
    search_key: str  # lowercased id
    chunk_number: int
    index_in_chunk: int
    description: str | None = None  # lowercased, ≤100 chars
    aliases: list[str] | None = None  # lowercased


@dataclass
class CacheMetadata:
    """meta.json. 빌드의 마지막 단계에서 기록되므로 완료 마커 역할도 한다."""

    version: int
    source_url: str
    last_modified: int  # epoch ms (remote Last-Modified)
    created_at: int  # epoch ms
    total_items: int
    chunk_size: int
    chunk_count: int
    type: str


@dataclass
class CacheIndex:
    """메모리에 올린 index + meta. 호출 시점의 snapshot이며 재빌드 시 자동 갱신되지 않는다."""

    entries: list[IndexEntry]
    meta: CacheMetadata


class CacheStatus(str, Enum):
    FRESH = "fresh"
    STALE = "stale"
    MISSING = "missing"


# ── 진행 상황 ──


@dataclass(frozen=True)
class DownloadProgress:
    """다운로드/빌드 진행 이벤트. UI 계층과의 유일한 결합 지점."""

    url: str
    bytes_downloaded: int
    total_bytes: int  # Content-Length, 0 if unknown
    percent: int  # 0-100, -1 if unknown
    complete: bool
    phase: str | None = None  # "downloading" | "processing"
    items_processed: int | None = None
    total_items: int | None = None
    error: bool = False
    error_message: str | None = None


ProgressCallback = Callable[[DownloadProgress], None]


@dataclass
class ClearReport:
    """clear_all() 진단 결과."""

    existing: list[str] = field(default_factory=list)
    sizes: dict[str, int] = field(default_factory=dict)
    removed: list[str] = field(default_factory=list)

    @property
    def total_bytes(self) -> int:
        return sum(self.sizes.values())


# ── 직렬화 헬퍼 ──


def index_entry_to_dict(entry: IndexEntry) -> dict[str, Any]:
    """IndexEntry → compact dict. index.json은 전부 메모리에 올라가므로 키를 짧게 유지."""
    d: dict[str, Any] = {"id": entry.id, "n": entry.search_key}
    if entry.description is not None:
        d["d"] = entry.description
    if entry.aliases is not None:
        d["a"] = entry.aliases
    d["c"] = entry.chunk_number
    d["i"] = entry.index_in_chunk
    return d


def index_entry_from_dict(d: dict) -> IndexEntry:
    """compact dict → IndexEntry 복원."""
    return IndexEntry(
        id=d["id"],
        search_key=d["n"],
        chunk_number=d["c"],
        index_in_chunk=d["i"],
        description=d.get("d"),
        aliases=d.get("a"),
    )


def metadata_to_dict(meta: CacheMetadata) -> dict[str, Any]:
    """CacheMetadata → meta.json dict (camelCase)."""
    return {
        "version": meta.version,
        "sourceUrl": meta.source_url,
        "lastModified": meta.last_modified,
        "createdAt": meta.created_at,
        "totalItems": meta.total_items,
        "chunkSize": meta.chunk_size,
        "chunkCount": meta.chunk_count,
        "type": meta.type,
    }


class _MetadataFile(BaseModel):
    """meta.json 스키마. 타입이 맞지 않으면 ValidationError (ValueError 하위 클래스)."""

    model_config = ConfigDict(strict=True, extra="ignore")

    version: int
    source_url: str = Field(alias="sourceUrl")
    last_modified: int = Field(alias="lastModified")
    created_at: int = Field(alias="createdAt")
    total_items: int = Field(alias="totalItems", ge=0)
    chunk_size: int = Field(alias="chunkSize", gt=0)
    chunk_count: int = Field(alias="chunkCount", ge=0)
    type: str


def metadata_from_dict(d: Any) -> CacheMetadata:
    """meta.json dict → CacheMetadata 복원. 누락/타입 불일치는 ValidationError."""
    return CacheMetadata(**_MetadataFile.model_validate(d).model_dump())
