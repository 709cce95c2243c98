"""In-memory search over index entries. Full records are loaded only for the final page."""

from dataclasses import dataclass, field

from catalogcache.models import IndexEntry


@dataclass
class SearchResult:
    """한 카탈로그의 검색 결과. total은 limit 적용 전 매칭 수."""

    items: list = field(default_factory=list)
    total: int = 0

    @property
    def truncated(self) -> bool:
        return len(self.items) < self.total


@dataclass
class SearchResults:
    formulae: SearchResult
    casks: SearchResult


def matches(entry: IndexEntry, target: str, *, match_aliases: bool = True) -> bool:
    """target은 이미 lowercase라고 가정."""
    if target in entry.search_key:
        return True
    if entry.description and target in entry.description:
        return True
    if match_aliases and entry.aliases:
        return any(target in alias for alias in entry.aliases)
    return False


def rank_key(entry: IndexEntry, target: str) -> tuple[int, str]:
    """Exact id match first, then prefix matches, then everything else; ties alphabetical."""
    key = entry.search_key
    if key == target:
        tier = 0
    elif key.startswith(target):
        tier = 1
    else:
        tier = 2
    return tier, key


def filter_entries(
    entries: list[IndexEntry], text: str, *, match_aliases: bool = True
) -> list[IndexEntry]:
    """Case-insensitive substring match on name, description and aliases.

    Empty text returns every entry sorted by id.
    """
    target = text.strip().lower()
    if not target:
        return sorted(entries, key=lambda e: e.id.lower())

    matched = [e for e in entries if matches(e, target, match_aliases=match_aliases)]
    matched.sort(key=lambda e: rank_key(e, target))
    return matched


def apply_limit(entries: list[IndexEntry], limit: int | None) -> list[IndexEntry]:
    """chunk 로딩 전에 잘라야 필요한 chunk 수가 줄어든다."""
    if limit is None or limit <= 0:
        return entries
    return entries[:limit]
