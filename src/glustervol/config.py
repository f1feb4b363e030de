"""
Plugin configuration loading.

Settings come from, in increasing priority: built-in defaults, an
optional YAML file, the environment (``SERVERS``, ``VOLNAME``, ``DEBUG``,
``GLUSTERVOL_ROOT``) and finally explicit overrides from the CLI.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .models import PluginConfig

logger = logging.getLogger("glustervol.config")

CONFIG_ENV = "GLUSTERVOL_CONFIG"

_ENV_FIELDS = {
    "SERVERS": "default_servers",
    "VOLNAME": "default_volname",
    "DEBUG": "debug",
    "GLUSTERVOL_ROOT": "root",
}

_TRUTHY = {"1", "t", "true", "y", "yes", "on"}


def parse_bool(value: str) -> bool:
    """Interpret an environment string as a boolean."""
    return value.strip().lower() in _TRUTHY


def _read_config_file(path: Path) -> Dict[str, Any]:
    """Load the YAML config file, or an empty dict if unusable."""
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except (yaml.YAMLError, OSError) as exc:
        logger.warning("Failed to load config %s: %s — using defaults", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Config %s is not a mapping — using defaults", path)
        return {}
    return data


def _read_environment(environ: Dict[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for env_name, field in _ENV_FIELDS.items():
        raw = environ.get(env_name)
        if raw is None:
            continue
        values[field] = parse_bool(raw) if field == "debug" else raw
    return values


def load_config(
    config_file: Optional[Path] = None,
    environ: Optional[Dict[str, str]] = None,
    **overrides: Any,
) -> PluginConfig:
    """Build the effective plugin configuration.

    Args:
        config_file: YAML file to read. Defaults to ``$GLUSTERVOL_CONFIG``
            when set.
        environ: Environment mapping (defaults to ``os.environ``).
        **overrides: Field values that win over everything else; None
            values are ignored.

    Returns:
        The resolved PluginConfig.
    """
    env = dict(os.environ if environ is None else environ)

    if config_file is None and env.get(CONFIG_ENV):
        config_file = Path(env[CONFIG_ENV])

    file_values: Dict[str, Any] = {}
    if config_file is not None:
        file_values = _read_config_file(Path(config_file).expanduser())

    try:
        base = PluginConfig(**file_values)
    except ValidationError as exc:
        logger.warning("Invalid config %s: %s — using defaults", config_file, exc)
        base = PluginConfig()

    values = base.model_dump()
    values.update(_read_environment(env))
    values.update({k: v for k, v in overrides.items() if v is not None})
    return PluginConfig(**values)
