from pathlib import Path

import pytest
from pydantic import ValidationError

from catalogcache.models import (
    CacheLayout,
    CacheMetadata,
    CacheStatus,
    ClearReport,
    IndexEntry,
    index_entry_from_dict,
    index_entry_to_dict,
    metadata_from_dict,
    metadata_to_dict,
)


def _meta(**overrides) -> CacheMetadata:
    base = dict(
        version=1,
        source_url="https://formulae.brew.sh/api/formula.json",
        last_modified=1_700_000_000_000,
        created_at=1_700_000_100_000,
        total_items=1201,
        chunk_size=500,
        chunk_count=3,
        type="formula",
    )
    base.update(overrides)
    return CacheMetadata(**base)


class TestCacheLayout:
    def test_paths(self):
        layout = CacheLayout(base_dir=Path("/s/formula"), type="formula")
        assert layout.index_path == Path("/s/formula/index.json")
        assert layout.meta_path == Path("/s/formula/meta.json")

    def test_chunk_path_is_zero_padded(self):
        layout = CacheLayout(base_dir=Path("/s/cask"), type="cask")
        assert layout.chunk_path(0) == Path("/s/cask/chunk-0000.json")
        assert layout.chunk_path(3) == Path("/s/cask/chunk-0003.json")
        assert layout.chunk_path(12345) == Path("/s/cask/chunk-12345.json")


class TestIndexEntrySerialization:
    def test_compact_keys(self):
        entry = IndexEntry(
            id="Wget",
            search_key="wget",
            chunk_number=2,
            index_in_chunk=17,
            description="internet file retriever",
            aliases=["wget2"],
        )
        assert index_entry_to_dict(entry) == {
            "id": "Wget",
            "n": "wget",
            "d": "internet file retriever",
            "a": ["wget2"],
            "c": 2,
            "i": 17,
        }

    def test_optional_fields_omitted(self):
        """description/aliases가 없으면 키 자체를 생략."""
        entry = IndexEntry(id="jq", search_key="jq", chunk_number=0, index_in_chunk=0)
        d = index_entry_to_dict(entry)
        assert "d" not in d
        assert "a" not in d

    def test_from_dict_without_optionals(self):
        entry = index_entry_from_dict({"id": "jq", "n": "jq", "c": 1, "i": 4})
        assert entry == IndexEntry(id="jq", search_key="jq", chunk_number=1, index_in_chunk=4)


class TestMetadataSerialization:
    def test_camel_case_keys(self):
        d = metadata_to_dict(_meta())
        assert d == {
            "version": 1,
            "sourceUrl": "https://formulae.brew.sh/api/formula.json",
            "lastModified": 1_700_000_000_000,
            "createdAt": 1_700_000_100_000,
            "totalItems": 1201,
            "chunkSize": 500,
            "chunkCount": 3,
            "type": "formula",
        }

    def test_from_dict(self):
        meta = _meta(type="cask", chunk_count=1)
        assert metadata_from_dict(metadata_to_dict(meta)) == meta

    @pytest.mark.parametrize(
        "key, value",
        [("lastModified", "garbage"), ("chunkSize", 0), ("totalItems", -1), ("type", None)],
    )
    def test_from_dict_rejects_bad_values(self, key, value):
        d = metadata_to_dict(_meta())
        d[key] = value
        with pytest.raises(ValidationError):
            metadata_from_dict(d)

    def test_from_dict_rejects_non_object(self):
        with pytest.raises(ValidationError):
            metadata_from_dict([1, 2])


class TestCacheStatus:
    def test_values(self):
        assert CacheStatus.FRESH.value == "fresh"
        assert CacheStatus.STALE.value == "stale"
        assert CacheStatus.MISSING.value == "missing"

    def test_from_value(self):
        assert CacheStatus("missing") is CacheStatus.MISSING


class TestClearReport:
    def test_total_bytes(self):
        report = ClearReport(existing=["formula.json", "cask.json"], sizes={"formula.json": 10, "cask.json": 5})
        assert report.total_bytes == 15

    def test_empty(self):
        assert ClearReport().total_bytes == 0
