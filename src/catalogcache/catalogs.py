"""Homebrew catalog definitions: remote sources, field allow-list and index extractors."""

from dataclasses import dataclass

from catalogcache.config import AppConfig
from catalogcache.models import IndexEntry
from catalogcache.services.chunk_writer import IndexExtractor

DESCRIPTION_MAX_CHARS = 100

# Top-level record keys kept in chunk files; everything else is dropped while parsing.
CATALOG_FIELDS = frozenset(
    {
        "name",
        "tap",
        "desc",
        "homepage",
        "versions",
        "outdated",
        "caveats",
        "token",
        "version",
        "installed",
        "auto_updates",
        "depends_on",
        "conflicts_with",
        "license",
        "aliases",
        "dependencies",
        "build_dependencies",
        "keg_only",
        "linked_key",
        "pinned",
    }
)


def _description(item: dict) -> str | None:
    desc = item.get("desc")
    if not desc:
        return None
    return desc.lower()[:DESCRIPTION_MAX_CHARS]


def _lowered(values) -> list[str] | None:
    if not values:
        return None
    return [v.lower() for v in values]


def extract_formula_index(item: dict, chunk_number: int, index_in_chunk: int) -> IndexEntry:
    """Formula → IndexEntry. id는 name, aliases는 formula alias 목록."""
    name = item["name"]
    return IndexEntry(
        id=name,
        search_key=name.lower(),
        chunk_number=chunk_number,
        index_in_chunk=index_in_chunk,
        description=_description(item),
        aliases=_lowered(item.get("aliases")),
    )


def extract_cask_index(item: dict, chunk_number: int, index_in_chunk: int) -> IndexEntry:
    """Cask → IndexEntry. id는 token, aliases 자리에 표시 이름(name 배열)을 넣는다."""
    token = item["token"]
    return IndexEntry(
        id=token,
        search_key=token.lower(),
        chunk_number=chunk_number,
        index_in_chunk=index_in_chunk,
        description=_description(item),
        aliases=_lowered(item.get("name")),
    )


@dataclass(frozen=True)
class CatalogSource:
    type: str
    url: str
    extractor: IndexExtractor
    # casks are matched on token/description only
    search_aliases: bool = True


def formula_source(config: AppConfig) -> CatalogSource:
    return CatalogSource("formula", config.formula_url, extract_formula_index)


def cask_source(config: AppConfig) -> CatalogSource:
    return CatalogSource("cask", config.cask_url, extract_cask_index, search_aliases=False)


def catalog_sources(config: AppConfig) -> dict[str, CatalogSource]:
    """type → CatalogSource. CLI와 CatalogService가 공유."""
    return {s.type: s for s in (formula_source(config), cask_source(config))}
