"""Configuration loading utilities."""

from __future__ import annotations

import json
import os
from pathlib import Path

from pydantic import ValidationError

from trustgate.config.schema import Config
from trustgate.core.errors import ConfigParseError

HOME_ENV = "TRUSTGATE_HOME"


def get_data_dir() -> Path:
    """Root directory for all trustgate state (``$TRUSTGATE_HOME`` or ``~/.trustgate``)."""
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".trustgate"


def get_config_path() -> Path:
    return get_data_dir() / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """Load configuration from file, or defaults when the file does not exist.

    Raises:
        ConfigParseError: The file exists but is not a valid configuration.
    """
    path = config_path or get_config_path()
    if not path.exists():
        return Config()

    try:
        with open(path, encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigParseError(path, f"invalid JSON at line {e.lineno}: {e.msg}") from e
    except UnicodeDecodeError as e:
        raise ConfigParseError(path, f"not valid UTF-8 at byte {e.start}") from e

    try:
        return Config.model_validate(data)
    except ValidationError as e:
        raise ConfigParseError(path, str(e)) from e


def save_config(config: Config, config_path: Path | None = None) -> None:
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    data = config.model_dump(by_alias=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
