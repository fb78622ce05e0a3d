"""
Survey Configuration

Loads settings from built-in defaults, an optional YAML file and
environment variables (highest precedence).
"""

import copy
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .exceptions import ConfigError


DEFAULT_CONFIG_PATH = Path.home() / ".mep_survey" / "config.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "analysis": {
        "api_url": "",
        "api_key": "",
        "timeout": 60,
        "mock_responses_path": None,
    },
    "store": {
        "path": str(Path.home() / ".mep_survey_store"),
    },
    "logging": {
        "level": "WARNING",
        "json": False,
    },
}

# env var -> (section, key)
ENV_OVERRIDES = {
    "MEP_SURVEY_API_URL": ("analysis", "api_url"),
    "MEP_SURVEY_API_KEY": ("analysis", "api_key"),
    "MEP_SURVEY_STORE": ("store", "path"),
    "MEP_SURVEY_LOG_LEVEL": ("logging", "level"),
}


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge overrides into base (in place)."""
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def _load_yaml(config_path: Path) -> Dict[str, Any]:
    """Load a YAML config file."""
    try:
        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError(f"Config file not found: {config_path}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in config: {e}")

    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file must contain a mapping: {config_path}")

    return loaded


def load_config(config_path: Optional[str] = None,
                environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """
    Build the effective configuration.

    Args:
        config_path: Explicit YAML file. If None, MEP_SURVEY_CONFIG or
                     ~/.mep_survey/config.yaml is used when present.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If an explicit config file is missing or invalid
    """
    environ = os.environ if environ is None else environ
    config = copy.deepcopy(DEFAULT_CONFIG)

    explicit = config_path or environ.get("MEP_SURVEY_CONFIG")
    if explicit:
        _merge(config, _load_yaml(Path(explicit).expanduser()))
    elif DEFAULT_CONFIG_PATH.exists():
        _merge(config, _load_yaml(DEFAULT_CONFIG_PATH))

    for env_var, (section, key) in ENV_OVERRIDES.items():
        if environ.get(env_var):
            config[section][key] = environ[env_var]

    return config


__all__ = ["DEFAULT_CONFIG", "load_config"]
