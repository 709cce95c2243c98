from pathlib import Path

import pytest
import respx

from catalogcache.config import AppConfig

from tests.helpers import CASK_URL, FORMULA_URL


@pytest.fixture(autouse=True)
def _use_test_env(monkeypatch):
    """모든 테스트에서 .env 대신 .env.test를 사용하도록 강제."""
    monkeypatch.setattr(
        AppConfig, "model_config", {**AppConfig.model_config, "env_file": ".env.test"}
    )


@pytest.fixture
def support_dir(tmp_path: Path) -> Path:
    """테스트용 격리된 support 디렉토리."""
    path = tmp_path / "support"
    path.mkdir()
    return path


@pytest.fixture
def test_config(support_dir: Path) -> AppConfig:
    """테스트용 AppConfig. 실제 .env 파일 불필요."""
    return AppConfig(
        support_dir=support_dir,
        formula_url=FORMULA_URL,
        cask_url=CASK_URL,
        progress_interval=0.0,
    )


@pytest.fixture
def router():
    """respx router. 정의했지만 호출되지 않은 route는 실패로 보지 않는다."""
    with respx.mock(assert_all_called=False) as mock:
        yield mock
