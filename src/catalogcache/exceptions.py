"""catalog-cache 예외 계층.

계층 구조:
    CatalogCacheError
    ├── NetworkError        (RemoteFetcher: HTTP 실패, status_code/url 포함)
    ├── ParseError          (ChunkWriter: 스트리밍 JSON 파싱 실패)
    ├── CancellationError   (취소 신호, 모든 계층에서 그대로 재전파)
    ├── CacheWriteError     (ChunkWriter: 빌드 마무리 단계의 디스크 쓰기 실패)
    └── CacheLoadError      (Reader: index/meta/chunk 누락 또는 손상)
"""


class CatalogCacheError(Exception):
    """catalog-cache의 모든 예외의 기반 클래스."""


class NetworkError(CatalogCacheError):
    """Non-2xx 응답 또는 transport 실패. 자동 retry 하지 않는다."""

    step = "download"

    def __init__(self, message: str, *, url: str, status_code: int | None = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ParseError(CatalogCacheError):
    """Chunk 빌드 중 소스 JSON 파싱 실패. 원인 예외는 __cause__ 에 보존."""

    step = "build"


class CancellationError(CatalogCacheError):
    """사용자/호출자가 취소 신호를 보냄. 에러 알림 없이 조용히 처리해야 한다."""

    step = "cancelled"

    def __init__(self, message: str = "Cancelled"):
        super().__init__(message)


class CacheWriteError(CatalogCacheError):
    """index/meta/chunk 파일 쓰기 실패."""

    step = "build"


class CacheLoadError(CatalogCacheError):
    """검증된 캐시를 읽는 중 파일 누락 또는 JSON 손상. 호출자 precondition 위반."""

    step = "load"
