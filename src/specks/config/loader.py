"""
specks — runtime config loader.

File: src/specks/config/loader.py

Purpose
- Load effective configuration from defaults, the project TOML file and
  ``SPECKS_`` environment variables.

What should be included in this file
- Precedence logic: env (SPECKS_) > file > defaults.
- TOML loading via ``tomllib``.
- Deterministic environment variable mapping and coercion.

Functional requirements
- The default ``.specks/config.toml`` is optional; an explicit path must exist.
- Every failure surfaces as ``ConfigLoadError`` with the offending path or variable.

Non-functional requirements
- Keep loading deterministic and reproducible.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

from specks.config.schema import (
    DEFAULT_CONFIG,
    ConfigValidationError,
    SpecksConfig,
    merge_config,
    parse_config,
)
from specks.constants import DEFAULT_CONFIG_FILE, SPECKS_DIR
from specks.observability import get_logger

ENV_PREFIX: Final[str] = "SPECKS_"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "no", "off"})

_logger = get_logger(__name__)


class ConfigLoadError(ValueError):
    """Raised when config cannot be read, parsed or validated."""


def _as_text(raw: str, env_name: str) -> object:
    return raw.strip()


def _as_flag(raw: str, env_name: str) -> object:
    lowered = raw.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    accepted = "/".join(sorted(_TRUTHY | _FALSY))
    raise ConfigLoadError(f"{env_name}={raw!r} is not a boolean (accepted: {accepted})")


@dataclass(frozen=True, slots=True)
class _EnvOverride:
    """One ``SPECKS_*`` variable and the ``[specks]`` key it overrides."""

    variable: str
    keys: tuple[str, ...]
    coerce: Callable[[str, str], object]

    def apply(self, environ: Mapping[str, str], target: dict[str, Any]) -> None:
        raw = environ.get(self.variable)
        if raw is None:
            return
        table = target.setdefault("specks", {})
        for key in self.keys[:-1]:
            table = table.setdefault(key, {})
        table[self.keys[-1]] = self.coerce(raw, self.variable)


_ENV_OVERRIDES: Final[tuple[_EnvOverride, ...]] = (
    _EnvOverride(f"{ENV_PREFIX}BEADS_ENABLED", ("beads", "enabled"), _as_flag),
    _EnvOverride(f"{ENV_PREFIX}SHOW_INFO", ("show_info",), _as_flag),
    _EnvOverride(f"{ENV_PREFIX}VALIDATION_LEVEL", ("validation_level",), _as_text),
)


def default_config_path(project_root: str | Path | None = None) -> Path:
    """Return ``<project_root>/.specks/config.toml`` (cwd when omitted)."""

    root = Path.cwd() if project_root is None else Path(project_root)
    return root / SPECKS_DIR / DEFAULT_CONFIG_FILE


def load_config(
    config_path: str | Path | None = None,
    *,
    project_root: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> SpecksConfig:
    """
    Load effective config with deterministic precedence: env > file > defaults.

    Without ``config_path`` the optional ``<project_root>/.specks/config.toml``
    is read; an explicit path must exist.
    """

    if config_path is None:
        path = default_config_path(project_root)
        file_payload = _read_toml(path) if path.is_file() else {}
    else:
        path = Path(config_path).expanduser()
        if not path.is_file():
            raise ConfigLoadError(f"config file not found: {path}")
        file_payload = _read_toml(path)

    env_payload: dict[str, Any] = {}
    env_map = os.environ if environ is None else environ
    for override in _ENV_OVERRIDES:
        override.apply(env_map, env_payload)

    effective = merge_config(merge_config(DEFAULT_CONFIG, file_payload), env_payload)
    try:
        config = parse_config(effective)
    except ConfigValidationError as exc:
        raise ConfigLoadError(f"{path}: {exc}") from exc

    _logger.debug(
        "speck_config_loaded",
        path=str(path),
        file_found=bool(file_payload),
        env_overrides=sorted(o.variable for o in _ENV_OVERRIDES if o.variable in env_map),
        validation_level=config.validation_level.value,
        show_info=config.show_info,
        beads_enabled=config.beads_enabled,
        validate_bead_ids=config.validate_bead_ids,
    )
    return config


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"cannot read config file {path}: {exc}") from exc


__all__ = [
    "ConfigLoadError",
    "ENV_PREFIX",
    "default_config_path",
    "load_config",
]
