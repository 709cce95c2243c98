from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppConfig(BaseSettings):
    """애플리케이션 전체 설정. .env 파일 또는 환경변수에서 로드."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # 원격 카탈로그
    formula_url: str = "https://formulae.brew.sh/api/formula.json"
    cask_url: str = "https://formulae.brew.sh/api/cask.json"

    # 파일 경로
    support_dir: Path = Field(
        default=Path("data/support"),
        validation_alias=AliasChoices("support_dir", "catalog_support_dir"),
    )

    # 캐시 빌드
    chunk_size: int = Field(default=500, gt=0)

    # HTTP
    request_timeout: float = 30.0

    # Minimum seconds between two progress callbacks of the same phase.
    # Start and completion events are always delivered.
    progress_interval: float = 0.1

    # 실행마다 support_dir/.log 에 남기는 로그 파일 최대 개수
    log_files_kept: int = Field(default=20, gt=0)

    # ── 파생 경로 ──

    @property
    def log_dir(self) -> Path:
        return self.support_dir / ".log"
