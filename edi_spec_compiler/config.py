"""
Configuration loading.
Reads config.yaml (path overridable through EDI_COMPILER_CONFIG) and applies
environment overrides from .env.
"""
import os
from pathlib import Path
from typing import Dict, Any, Optional

import yaml
from dotenv import load_dotenv

# Load environment variables
load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_CONFIG: Dict[str, Any] = {
    "tab_width": 3,
    "default_group_max": "10",
    "output_dir": "output",
    "log_dir": "logs",
    "log_retention_days": 10,
    "log_level": "INFO",
    "max_threads": 5,
    "sfedi_format_root": "./../../SFEDI/format",
    "ixpath_folder": None,
    "service_segments": ["UNH", "UNT", "BGM", "DTM"],
}

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Environment variable -> config key
_ENV_OVERRIDES = {
    "IXPATH_FOLDER": "ixpath_folder",
    "SFEDI_FORMAT_ROOT": "sfedi_format_root",
}


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file, falling back to defaults.

    Args:
        config_path: Explicit path; defaults to $EDI_COMPILER_CONFIG or config.yaml

    Returns:
        Merged configuration dictionary

    Raises:
        FileNotFoundError: If an explicitly requested file is missing
        ValueError: If a value has the wrong shape
    """
    explicit = config_path or os.getenv("EDI_COMPILER_CONFIG")
    config_file = Path(explicit or "config.yaml")

    config = dict(DEFAULT_CONFIG)

    if config_file.exists():
        with open(config_file, 'r', encoding='utf-8') as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_file}")
        config.update({k: v for k, v in loaded.items() if v is not None})
    elif explicit:
        raise FileNotFoundError(f"Configuration file not found: {explicit}")

    for env_name, key in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config[key] = value

    _validate(config)
    return config


def _validate(config: Dict[str, Any]) -> None:
    """Reject values the pipeline cannot work with."""
    tab_width = config.get("tab_width")
    if not isinstance(tab_width, int) or tab_width < 1:
        raise ValueError(f"tab_width must be a positive integer, got {tab_width!r}")

    # YAML turns an unquoted 10 into an int
    config["default_group_max"] = str(config["default_group_max"])
    if not config["default_group_max"]:
        raise ValueError("default_group_max must not be empty")

    level = str(config.get("log_level", "")).upper()
    if level not in LOG_LEVELS:
        raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {level!r}")
    config["log_level"] = level

    max_threads = config.get("max_threads")
    if not isinstance(max_threads, int) or max_threads < 1:
        raise ValueError(f"max_threads must be a positive integer, got {max_threads!r}")

    segments = config.get("service_segments")
    if not isinstance(segments, list):
        raise ValueError("service_segments must be a list of segment tags")
    config["service_segments"] = [str(s).upper() for s in segments]
