"""Configuration loading for Stage Cache.

``load_config`` picks a YAML file (explicit path, ``CONFIG_PATH`` or
``config.yaml``), expands ``${VAR}``/``$VAR``/``~`` placeholders and
validates the result into :class:`AppConfig`. Every failure surfaces as
:class:`ConfigurationError`; a missing default file is not a failure and
yields the built-in defaults.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import ValidationError

from core.exceptions import ConfigurationError
from core.models.app_config import AppConfig

ConfigValue = dict[str, Any] | list[Any] | str | int | float | bool | None

logger = logging.getLogger("config")
# Handlers are attached by core.logger once the config is known
if not logger.handlers:
    logger.addHandler(logging.NullHandler())
logger.setLevel(logging.INFO)

DEFAULT_CONFIG_PATH = "config.yaml"
CONFIG_PATH_ENV = "CONFIG_PATH"
MAX_CONFIG_BYTES = 1024 * 1024
YAML_SUFFIXES = (".yaml", ".yml")


def _expand_string(value: str) -> str:
    """Expand one string value from the environment."""
    if value.startswith("${") and value.endswith("}"):
        # Unset tokens become "" so optional secrets validate to None
        return os.environ.get(value[2:-1], "")
    if "$" in value:
        value = os.path.expandvars(value)
    if "~" in value:
        value = str(Path(value).expanduser())
    return value


def resolve_env_vars(config: ConfigValue) -> ConfigValue:
    """Walk a parsed config and expand environment placeholders in strings.

    Args:
        config: Parsed YAML value

    Returns:
        The same structure with every string expanded

    """
    match config:
        case dict():
            return {str(key): resolve_env_vars(value) for key, value in config.items()}
        case list():
            return [resolve_env_vars(item) for item in config]
        case str():
            return _expand_string(config)
        case _:
            return config


def _check_config_file(path: str) -> Path:
    """Return the resolved path of a readable YAML file of sane size.

    Raises:
        ConfigurationError: When the file is missing, unreadable, not YAML or too large

    """
    candidate = Path(path).expanduser()
    problem: str | None = None
    if not candidate.exists():
        problem = f"Config file not found at the specified path: {path}"
    elif not candidate.is_file():
        problem = f"Config path does not point to a file: {candidate}"
    elif candidate.suffix.lower() not in YAML_SUFFIXES:
        problem = f"Config file {candidate.name} must have a .yaml or .yml extension"
    elif not os.access(candidate, os.R_OK):
        problem = f"No read permission for config file: {candidate}"
    elif candidate.stat().st_size > MAX_CONFIG_BYTES:
        problem = f"Config file {candidate} is larger than {MAX_CONFIG_BYTES} bytes"

    if problem is not None:
        logger.critical(problem)
        raise ConfigurationError(problem, path)
    return candidate.resolve()


def _parse_yaml(path: Path, config_path: str) -> dict[str, Any]:
    """Parse a config file into a mapping (an empty file is an empty mapping)."""
    logger.info("Loading config from: %s", path)
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as e:
        logger.critical("Configuration loading failed: %s", e)
        raise ConfigurationError(f"Could not read {path.name}: {e}", config_path) from e

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        msg = f"Configuration in {path.name} is not a dictionary (got {type(parsed).__name__})"
        raise ConfigurationError(msg, config_path)
    return parsed


def format_pydantic_errors(error: ValidationError) -> str:
    """One ``field.path: message`` line per validation error."""
    lines = []
    for err in error.errors():
        location = ".".join(str(part) for part in err["loc"]) or "<root>"
        if err["type"] == "missing":
            lines.append(f"{location}: Missing required field")
        else:
            lines.append(f"{location}: {err['msg']}")
    return "\n".join(lines)


def _default_config_path() -> str | None:
    """``CONFIG_PATH`` or ``config.yaml`` when that file exists."""
    candidate = os.environ.get(CONFIG_PATH_ENV, DEFAULT_CONFIG_PATH)
    if Path(candidate).is_file():
        return candidate
    logger.info("No config file at %s; using defaults", candidate)
    return None


def load_config(config_path: str | None = None) -> AppConfig:
    """Load, expand and validate the application configuration.

    Args:
        config_path: YAML file to load; None looks for ``CONFIG_PATH`` or ``config.yaml``

    Returns:
        Validated AppConfig

    Raises:
        ConfigurationError: If the file is missing, unreadable, malformed or invalid

    """
    if load_dotenv():
        logger.info(".env file found and loaded")

    path = config_path or _default_config_path()
    if path is None:
        return AppConfig()

    raw = _parse_yaml(_check_config_file(path), path)
    resolved = resolve_env_vars(raw)
    try:
        config = AppConfig.model_validate(resolved)
    except ValidationError as e:
        msg = f"Configuration validation failed:\n{format_pydantic_errors(e)}"
        logger.critical(msg)
        raise ConfigurationError(msg, path) from e

    logger.info("Configuration loaded from %s", path)
    return config
