import pytest
import structlog

from twist_cli.auth import TOKEN_ENV
from twist_cli.config import CONFIG_ENV
from twist_cli.errors import PRIVATE_CHANNELS_ENV


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    # setenv (rather than delenv) so values exported by the CLI get rolled back.
    monkeypatch.setenv(PRIVATE_CHANNELS_ENV, "0")
    monkeypatch.setenv(TOKEN_ENV, "")
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "config.toml"))
    monkeypatch.delenv("TWIST_DEBUG", raising=False)
    yield
    structlog.reset_defaults()
