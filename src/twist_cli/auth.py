from __future__ import annotations

import os
from pathlib import Path

from .config import ConfigError, load_settings, resolve_config_path, update_config

TOKEN_ENV = "TWIST_API_TOKEN"


def get_api_token(config_path: Path | None = None) -> str:
    token = os.environ.get(TOKEN_ENV)
    if token:
        return token
    config_path = config_path or resolve_config_path()
    settings = load_settings(config_path)
    if settings.token:
        return settings.token
    raise ConfigError(
        f"No API token found. Set {TOKEN_ENV} or add `token` to {config_path}"
    )


def save_api_token(token: str, config_path: Path | None = None) -> Path:
    token = token.strip()
    if not token:
        raise ConfigError("API token must not be empty.")
    config_path = config_path or resolve_config_path()
    update_config(config_path, token=token)
    return config_path
