"""
Willump configuration
"""

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Mapping, Optional

import toml
import yaml

from .utils.logging_config import get_logger

logger = get_logger('config')

APP_NAME = "Willump"
CONFIG_DIR = Path.home() / ".willump"
CONFIG_FILES = ("config.yaml", "config.yml", "config.toml")

# Executor limits
DEFAULT_TIMEOUT_SECONDS = 5.0
DEFAULT_MAX_OUTPUT_BYTES = 1024 * 1024  # 1 MiB

# GUI auto-refresh in milliseconds
DEFAULT_GUI_REFRESH_MS = 5000

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# Environment variable -> settings field
ENV_OVERRIDES = {
    "WILLUMP_TIMEOUT": "timeout",
    "WILLUMP_MAX_OUTPUT_BYTES": "max_output_bytes",
    "WILLUMP_LOG_LEVEL": "log_level",
}


class ConfigError(Exception):
    """Config file or override holds an unusable value."""


@dataclass
class Settings:
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    max_output_bytes: int = DEFAULT_MAX_OUTPUT_BYTES
    log_level: str = "WARNING"
    log_to_file: bool = True
    resolve_process_names: bool = True
    gui_refresh_ms: int = DEFAULT_GUI_REFRESH_MS

    def validate(self) -> "Settings":
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.max_output_bytes <= 0:
            raise ConfigError(f"max_output_bytes must be positive, got {self.max_output_bytes}")
        if self.gui_refresh_ms < 0:
            raise ConfigError(f"gui_refresh_ms must not be negative, got {self.gui_refresh_ms}")
        self.log_level = self.log_level.upper()
        if self.log_level not in LOG_LEVELS:
            raise ConfigError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {self.log_level}")
        return self


def _coerce(name: str, value, target_type):
    """Convert a raw config/env value to the field's type."""
    try:
        if target_type is bool:
            if isinstance(value, str):
                lowered = value.strip().lower()
                if lowered in ("1", "true", "yes", "on"):
                    return True
                if lowered in ("0", "false", "no", "off"):
                    return False
                raise ValueError(value)
            return bool(value)
        if target_type is int and isinstance(value, float):
            raise ValueError(value)
        return target_type(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid value for {name}: {value!r}") from None


def read_config_file(path: Path) -> dict:
    """Load a YAML or TOML config file into a dict."""
    try:
        text = path.read_text(encoding='utf-8')
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    try:
        if path.suffix.lower() == '.toml':
            data = toml.loads(text)
        else:
            data = yaml.safe_load(text)
    except (yaml.YAMLError, toml.TomlDecodeError) as e:
        raise ConfigError(f"Cannot parse config file {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")
    return data


def find_config_file(config_dir: Path = CONFIG_DIR) -> Optional[Path]:
    for name in CONFIG_FILES:
        candidate = config_dir / name
        if candidate.is_file():
            return candidate
    return None


def load_settings(path: Optional[Path] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from defaults, then the config file, then the environment.

    Args:
        path: Explicit config file. When omitted ~/.willump/config.* is used if present.
        environ: Environment mapping, defaults to os.environ.
    """
    environ = os.environ if environ is None else environ
    types = {f.name: f.type for f in fields(Settings)}
    values: dict = {}

    config_path = Path(path) if path else find_config_file()
    if config_path is not None:
        if path and not config_path.is_file():
            raise ConfigError(f"Config file not found: {config_path}")
        for key, value in read_config_file(config_path).items():
            if key not in types:
                logger.warning(f"Ignoring unknown config key '{key}' in {config_path}")
                continue
            values[key] = _coerce(key, value, types[key])
        logger.debug(f"Loaded config from {config_path}")

    for env_name, key in ENV_OVERRIDES.items():
        if env_name in environ:
            values[key] = _coerce(env_name, environ[env_name], types[key])

    return Settings(**values).validate()
