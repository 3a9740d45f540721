from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomli_w

from .client import DEFAULT_BASE_URL
from .logging import get_logger

logger = get_logger(__name__)

CONFIG_ENV = "TWIST_CONFIG"
HOME_CONFIG_PATH = Path.home() / ".config" / "twist-cli" / "config.toml"


class ConfigError(RuntimeError):
    pass


def resolve_config_path() -> Path:
    override = os.environ.get(CONFIG_ENV)
    if override:
        return Path(override).expanduser()
    return HOME_CONFIG_PATH


@dataclass(frozen=True, slots=True)
class CliConfig:
    token: str | None = None
    current_workspace: int | None = None
    base_url: str = DEFAULT_BASE_URL

    @classmethod
    def from_config(cls, config: object, *, config_path: Path) -> "CliConfig":
        if config is None:
            return cls()
        if isinstance(config, CliConfig):
            return config
        if not isinstance(config, dict):
            raise ConfigError(f"Invalid config in {config_path}; expected a table.")

        allowed_keys = {"token", "current_workspace", "base_url"}
        unknown_keys = set(config) - allowed_keys
        if unknown_keys:
            unknown = ", ".join(sorted(unknown_keys))
            raise ConfigError(
                f"Invalid config in {config_path}; unknown keys: {unknown}."
            )

        token = config.get("token")
        if token is not None and (not isinstance(token, str) or not token.strip()):
            raise ConfigError(
                f"Invalid `token` in {config_path}; expected a non-empty string."
            )

        current_workspace = config.get("current_workspace")
        if current_workspace is not None and (
            isinstance(current_workspace, bool) or not isinstance(current_workspace, int)
        ):
            raise ConfigError(
                f"Invalid `current_workspace` in {config_path}; expected an integer."
            )

        base_url = config.get("base_url", DEFAULT_BASE_URL)
        if not isinstance(base_url, str) or not base_url.strip():
            raise ConfigError(
                f"Invalid `base_url` in {config_path}; expected a non-empty string."
            )

        return cls(
            token=token.strip() if token else None,
            current_workspace=current_workspace,
            base_url=base_url.strip().rstrip("/"),
        )


def read_config(config_path: Path) -> dict[str, Any]:
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ConfigError(f"Missing config file {config_path}.") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read config file {config_path}: {exc}") from exc
    try:
        return tomllib.loads(raw)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Malformed TOML in {config_path}: {exc}") from exc


def write_config(config: dict[str, Any], config_path: Path) -> None:
    config_path.parent.mkdir(parents=True, exist_ok=True)
    data = tomli_w.dumps(config)
    tmp_path = config_path.with_suffix(f"{config_path.suffix}.tmp")
    tmp_path.write_text(data, encoding="utf-8")
    os.replace(tmp_path, config_path)
    logger.debug("config.saved", path=str(config_path))


def load_settings(config_path: Path | None = None) -> CliConfig:
    config_path = config_path or resolve_config_path()
    try:
        config = read_config(config_path)
    except ConfigError:
        if config_path.exists():
            raise
        return CliConfig()
    return CliConfig.from_config(config, config_path=config_path)


def update_config(config_path: Path | None = None, **changes: Any) -> CliConfig:
    config_path = config_path or resolve_config_path()
    try:
        config = read_config(config_path)
    except ConfigError:
        if config_path.exists():
            raise
        config = {}
    for key, value in changes.items():
        if value is None:
            config.pop(key, None)
        else:
            config[key] = value
    settings = CliConfig.from_config(config, config_path=config_path)
    write_config(config, config_path)
    return settings
