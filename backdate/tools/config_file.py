"""Configuration file discovery, loading, merging and saving.

Files are searched in the repository directory using the names from
``Settings.config_file_names``. JSON and YAML are both accepted; a file
without a suffix (``.backdaterc``) is parsed as YAML, which also covers JSON.

Precedence when building a ``GenerationConfig``:
    settings defaults < config file < command-line overrides
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from backdate.config import get_settings
from backdate.errors import InvalidConfigError
from backdate.schemas import GenerationConfig


logger = logging.getLogger(__name__)

# Nested sections merged key by key rather than replaced
NESTED_KEYS = ("commits_per_day", "time_window")


def find_config_file(search_dir: str | Path = ".") -> Path | None:
    """Return the first config file found in ``search_dir``."""
    base = Path(search_dir)
    for name in get_settings().config_file_names:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def load_config_file(
    path: str | Path | None = None,
    search_dir: str | Path = ".",
) -> tuple[dict[str, Any], Path] | None:
    """Load raw configuration values.

    Args:
        path: Explicit config file (must exist)
        search_dir: Directory searched when no path is given

    Returns:
        (values, path) or None when no file was found

    Raises:
        InvalidConfigError: If the file is missing, unreadable or not a mapping
    """
    if path is not None:
        config_path = Path(path)
        if not config_path.is_file():
            raise InvalidConfigError(f"Config file not found: {config_path}")
    else:
        config_path = find_config_file(search_dir)
        if config_path is None:
            return None

    try:
        text = config_path.read_text(encoding="utf-8")
        if config_path.suffix == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise InvalidConfigError(f"Failed to load configuration from {config_path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidConfigError(f"Configuration in {config_path} must be a mapping")

    logger.debug(f"Loaded configuration from {config_path}")
    return data, config_path


def merge_config(*layers: dict[str, Any] | None) -> dict[str, Any]:
    """Merge value layers left to right; None values never override."""
    merged: dict[str, Any] = {}
    for layer in layers:
        if not layer:
            continue
        for key, value in layer.items():
            if value is None:
                continue
            if key in NESTED_KEYS and isinstance(value, dict):
                nested = dict(merged.get(key) or {})
                nested.update({k: v for k, v in value.items() if v is not None})
                merged[key] = nested
            else:
                merged[key] = value
    return merged


def build_generation_config(
    file_values: dict[str, Any] | None = None,
    overrides: dict[str, Any] | None = None,
) -> GenerationConfig:
    """Build a validated ``GenerationConfig`` from file values and overrides.

    Raises:
        InvalidConfigError: If required values are missing or out of bounds
    """
    settings = get_settings()
    defaults = {
        "message_template": settings.default_message_template,
        "target_path": settings.default_target_path,
    }
    merged = merge_config(defaults, file_values, overrides)

    for required, option in (("start_date", "--from"), ("end_date", "--to")):
        if required not in merged:
            raise InvalidConfigError(
                f"{required} is required. Use {option} or set it in a config file."
            )

    try:
        return GenerationConfig.model_validate(merged)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise InvalidConfigError(f"Invalid configuration: {problems}") from e


def save_config_file(config: GenerationConfig | dict[str, Any], path: str | Path) -> Path:
    """Write configuration as JSON, or YAML for .yaml/.yml paths."""
    target = Path(path).resolve()
    if isinstance(config, GenerationConfig):
        data = config.model_dump(mode="json", exclude_none=True)
    else:
        data = {k: v for k, v in config.items() if v is not None}

    if target.suffix in (".yaml", ".yml") or target.name == ".backdaterc":
        text = yaml.safe_dump(data, sort_keys=False)
    else:
        text = json.dumps(data, indent=2) + "\n"

    target.write_text(text, encoding="utf-8")
    logger.info(f"Saved configuration to {target}")
    return target


def sample_config() -> dict[str, Any]:
    """Example configuration written by ``backdate init --defaults``."""
    return {
        "start_date": "2024-01-01",
        "end_date": "2024-12-31",
        "commits_per_day": {"min": 1, "max": 5},
        "message_template": "feat: auto commit {{date}} #{{index}}",
        "target_path": get_settings().default_target_path,
        # Weekends
        "skip_weekdays": [0, 6],
        "skip_probability": 0.1,
        "time_window": {"start": "09:00", "end": "18:00"},
        "auto_push": False,
    }
