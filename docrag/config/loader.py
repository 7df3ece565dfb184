"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. ``config/config.yaml`` -- static defaults checked into the repo
  2. ``.env`` file           -- local developer overrides (not committed)
  3. Environment variables  -- set at deploy time

The YAML file groups settings into sections purely for readability::

    chunking:
      chunk_size: 1000
      chunk_overlap: 100
    retrieval:
      match_threshold: 0.7

Section names are discarded; each inner key must be a ``Settings`` field.
Top-level scalar keys are accepted too.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml

from docrag.config.settings import Settings
from docrag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_CONFIG_PATH = "config/config.yaml"


def load_yaml_config(path: str | Path = _DEFAULT_CONFIG_PATH) -> dict[str, Any]:
    """Read *path* and return its flattened ``{field: value}`` mapping.

    A missing file yields an empty mapping.

    Raises
    ------
    ConfigurationError
        If the file is not valid YAML, is not a mapping, or names a key
        that is not a ``Settings`` field.
    """
    config_path = Path(path)
    if not config_path.exists():
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(
            message=f"Invalid YAML in {config_path}: {exc}",
            provider_name="config",
        ) from exc

    if not isinstance(raw, dict):
        raise ConfigurationError(
            message=f"{config_path} must contain a mapping at the top level",
            provider_name="config",
        )

    flat = _flatten_sections(raw)
    unknown = sorted(set(flat) - set(Settings.model_fields))
    if unknown:
        raise ConfigurationError(
            message=f"Unknown configuration keys in {config_path}: {', '.join(unknown)}",
            provider_name="config",
        )
    return flat


def load_settings(path: str | Path = _DEFAULT_CONFIG_PATH, **overrides: Any) -> Settings:
    """Build the process-wide :class:`Settings` object.

    YAML values act as defaults; anything supplied through ``.env`` or the
    environment wins over YAML; explicit keyword *overrides* win over both.

    Parameters
    ----------
    path:
        Path to the YAML configuration file.
    overrides:
        Field values that take precedence over every other source.

    Returns
    -------
    Settings
        Fully resolved settings.
    """
    yaml_values = load_yaml_config(path)

    # Fields present in model_fields_set were supplied by .env / environment.
    env_settings = Settings()
    env_values = {
        name: getattr(env_settings, name) for name in env_settings.model_fields_set
    }

    merged: dict[str, Any] = {**yaml_values, **env_values, **overrides}
    settings = Settings(**merged)
    logger.debug(
        "settings_loaded",
        config_path=str(path),
        yaml_keys=len(yaml_values),
        env_keys=len(env_values),
    )
    return settings


def _flatten_sections(raw: dict[str, Any]) -> dict[str, Any]:
    """Collapse one level of section nesting into a flat mapping."""
    flat: dict[str, Any] = {}
    for key, value in raw.items():
        if isinstance(value, dict):
            flat.update(value)
        else:
            flat[key] = value
    return flat
