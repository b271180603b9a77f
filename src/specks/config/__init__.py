"""
specks config package public API.

File: src/specks/config/__init__.py

Purpose
- Export validation options, the project config type and the TOML loader.

Non-functional requirements
- Keep import-time surface small and deterministic.
"""

from specks.config.loader import ENV_PREFIX, ConfigLoadError, default_config_path, load_config
from specks.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    ConfigValidationIssue,
    SpecksConfig,
    ValidationConfig,
    ValidationLevel,
    merge_config,
    parse_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "SpecksConfig",
    "ValidationConfig",
    "ValidationLevel",
    "default_config_path",
    "load_config",
    "merge_config",
    "parse_config",
]
