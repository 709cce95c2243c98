from catalogcache.services.cache_dir import (
    CACHE_TYPES,
    LEGACY_CACHE_FILES,
    CacheDirectory,
    remove_layout,
    reset_layout,
)


def _populate_type_dir(root, cache_type):
    base = root / cache_type
    base.mkdir(parents=True)
    (base / "meta.json").write_text("{}")
    (base / "index.json").write_text("[]")
    (base / "chunk-0000.json").write_text("[]")
    return base


class TestCacheDirectory:
    def test_initialize_creates_root(self, tmp_path):
        root = tmp_path / "a" / "b" / "support"
        dirs = CacheDirectory(root)
        assert dirs.initialize() == root
        assert root.is_dir()

    def test_initialize_is_idempotent(self, support_dir):
        dirs = CacheDirectory(support_dir)
        dirs.initialize()
        dirs.initialize()
        assert support_dir.is_dir()

    def test_layout_and_source_path(self, support_dir):
        dirs = CacheDirectory(support_dir)
        layout = dirs.layout("cask")
        assert layout.base_dir == support_dir / "cask"
        assert layout.type == "cask"
        assert dirs.source_path("formula") == support_dir / "formula.json"

    def test_has_index_requires_both_files(self, support_dir):
        dirs = CacheDirectory(support_dir)
        layout = dirs.layout("formula")
        assert not dirs.has_index(layout)

        _populate_type_dir(support_dir, "formula")
        assert dirs.has_index(layout)

        layout.meta_path.unlink()
        assert not dirs.has_index(layout)


class TestLayoutReset:
    def test_reset_wipes_previous_contents(self, support_dir):
        base = _populate_type_dir(support_dir, "formula")
        layout = CacheDirectory(support_dir).layout("formula")

        reset_layout(layout)

        assert base.is_dir()
        assert list(base.iterdir()) == []

    def test_remove_missing_dir_is_noop(self, support_dir):
        layout = CacheDirectory(support_dir).layout("cask")
        remove_layout(layout)
        assert not layout.base_dir.exists()


class TestClearAll:
    def test_removes_legacy_files_and_type_dirs(self, support_dir):
        (support_dir / "formula.json").write_bytes(b"x" * 100)
        (support_dir / "installedv2.json").write_bytes(b"y" * 20)
        for cache_type in CACHE_TYPES:
            _populate_type_dir(support_dir, cache_type)

        report = CacheDirectory(support_dir).clear_all()

        assert report.existing == ["formula.json", "installedv2.json"]
        assert report.sizes == {"formula.json": 100, "installedv2.json": 20}
        assert report.total_bytes == 120
        assert report.removed == ["formula.json", "installedv2.json", "formula/", "cask/"]
        for name in LEGACY_CACHE_FILES:
            assert not (support_dir / name).exists()
        assert not (support_dir / "formula").exists()
        assert not (support_dir / "cask").exists()

    def test_nothing_to_clear(self, support_dir):
        report = CacheDirectory(support_dir).clear_all()
        assert report.existing == []
        assert report.removed == []

    def test_missing_root(self, tmp_path):
        report = CacheDirectory(tmp_path / "never-created").clear_all()
        assert report.removed == []

    def test_keeps_unrelated_files(self, support_dir):
        (support_dir / ".log").mkdir()
        (support_dir / "notes.txt").write_text("keep me")
        _populate_type_dir(support_dir, "cask")

        report = CacheDirectory(support_dir).clear_all()

        assert report.removed == ["cask/"]
        assert (support_dir / "notes.txt").exists()
        assert (support_dir / ".log").is_dir()
