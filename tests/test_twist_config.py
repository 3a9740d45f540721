from pathlib import Path

import pytest

from twist_cli.auth import TOKEN_ENV, get_api_token, save_api_token
from twist_cli.client import DEFAULT_BASE_URL
from twist_cli.config import (
    CONFIG_ENV,
    CliConfig,
    ConfigError,
    load_settings,
    read_config,
    resolve_config_path,
    update_config,
)


def test_from_config_valid() -> None:
    cfg = {
        "token": " abc ",
        "current_workspace": 42,
        "base_url": "https://api.example.com/api/v3/",
    }
    settings = CliConfig.from_config(cfg, config_path=Path("/tmp/x"))
    assert settings.token == "abc"
    assert settings.current_workspace == 42
    assert settings.base_url == "https://api.example.com/api/v3"


def test_from_config_defaults() -> None:
    settings = CliConfig.from_config({}, config_path=Path("/tmp/x"))
    assert settings == CliConfig()
    assert settings.base_url == DEFAULT_BASE_URL


@pytest.mark.parametrize(
    ("cfg", "message"),
    [
        ({"token": ""}, "token"),
        ({"token": 5}, "token"),
        ({"current_workspace": "12"}, "current_workspace"),
        ({"current_workspace": True}, "current_workspace"),
        ({"base_url": " "}, "base_url"),
        ({"extra": 1}, "unknown keys: extra"),
    ],
)
def test_from_config_invalid(cfg, message) -> None:
    with pytest.raises(ConfigError, match=message):
        CliConfig.from_config(cfg, config_path=Path("/tmp/x"))


def test_resolve_config_path_env(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv(CONFIG_ENV, str(tmp_path / "other.toml"))
    assert resolve_config_path() == tmp_path / "other.toml"


def test_load_settings_missing_file(tmp_path) -> None:
    assert load_settings(tmp_path / "missing.toml") == CliConfig()


def test_read_config_malformed(tmp_path) -> None:
    path = tmp_path / "config.toml"
    path.write_text("token = ", encoding="utf-8")
    with pytest.raises(ConfigError, match="Malformed TOML"):
        read_config(path)
    with pytest.raises(ConfigError):
        load_settings(path)


def test_update_config_roundtrip(tmp_path) -> None:
    path = tmp_path / "nested" / "config.toml"
    update_config(path, token="abc")
    update_config(path, current_workspace=7)
    assert read_config(path) == {"token": "abc", "current_workspace": 7}

    settings = update_config(path, current_workspace=None)
    assert settings.current_workspace is None
    assert read_config(path) == {"token": "abc"}


def test_get_api_token_prefers_env(monkeypatch, tmp_path) -> None:
    path = tmp_path / "config.toml"
    save_api_token("  from-config\n", path)
    assert get_api_token(path) == "from-config"

    monkeypatch.setenv(TOKEN_ENV, "from-env")
    assert get_api_token(path) == "from-env"


def test_get_api_token_missing(tmp_path) -> None:
    with pytest.raises(ConfigError, match=TOKEN_ENV):
        get_api_token(tmp_path / "config.toml")


def test_save_api_token_rejects_blank(tmp_path) -> None:
    with pytest.raises(ConfigError):
        save_api_token("   ", tmp_path / "config.toml")
