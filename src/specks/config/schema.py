"""
specks — configuration schema

File: src/specks/config/schema.py

Purpose
- Typed configuration values consumed by the validator and CLI, plus strict
  validation of the raw TOML payload they are built from.

What should be included in this file
- ``ValidationLevel`` and the frozen ``ValidationConfig`` passed to ``validate``.
- ``SpecksConfig``: the effective project configuration (``[specks]`` table).
- Structured validation issues with deterministic dotted paths.

Functional requirements
- Unknown keys and wrongly typed values are rejected, never ignored.
- Level names are matched case-insensitively.

Non-functional requirements
- No I/O; the loader owns file and environment access.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Final


class ValidationLevel(StrEnum):
    """How strictly style rules are enforced."""

    LENIENT = "lenient"
    NORMAL = "normal"
    STRICT = "strict"

    @classmethod
    def parse(cls, raw: str) -> ValidationLevel:
        """Parse a level name case-insensitively; raise ``ConfigValidationError`` if unknown."""
        reader = _TableReader({"validation_level": raw}, "")
        level = reader.level("validation_level")
        if level is None:
            raise ConfigValidationError(reader.issues)
        return level


DEFAULT_CONFIG: Final[dict[str, Any]] = {
    "specks": {
        "validation_level": ValidationLevel.NORMAL.value,
        "show_info": False,
        "beads": {
            "enabled": False,
            "validate_bead_ids": True,
        },
    },
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """One rejected config value, addressed by its dotted path."""

    path: str
    message: str


class ConfigValidationError(ValueError):
    """Raised when a config payload does not match the schema."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "- unknown problem"))


@dataclass(frozen=True, slots=True)
class ValidationConfig:
    """Options for ``specks.validation.validate``."""

    level: ValidationLevel = ValidationLevel.NORMAL
    show_info: bool = False
    check_bead_ids: bool = False

    @classmethod
    def from_mapping(cls, payload: Mapping[str, object]) -> ValidationConfig:
        """
        Build from a flat mapping with ``level``/``validation_level``,
        ``show_info`` and ``check_bead_ids`` keys; missing keys keep defaults.
        """

        reader = _TableReader(payload, "")
        reader.only("level", "validation_level", "show_info", "check_bead_ids")
        level = reader.level("level" if "level" in payload else "validation_level")
        options = cls(
            level=level or ValidationLevel.NORMAL,
            show_info=reader.flag("show_info"),
            check_bead_ids=reader.flag("check_bead_ids"),
        )
        reader.raise_if_invalid()
        return options


@dataclass(frozen=True, slots=True)
class SpecksConfig:
    """Effective project configuration."""

    validation_level: ValidationLevel = ValidationLevel.NORMAL
    show_info: bool = False
    beads_enabled: bool = False
    validate_bead_ids: bool = True

    def validation_config(
        self,
        *,
        level: ValidationLevel | None = None,
        show_info: bool | None = None,
    ) -> ValidationConfig:
        """
        Return validator options, letting explicit arguments win over config.

        Bead ids are checked only when beads are enabled and
        ``validate_bead_ids`` is left on.
        """
        return ValidationConfig(
            level=level if level is not None else self.validation_level,
            show_info=show_info if show_info is not None else self.show_info,
            check_bead_ids=self.beads_enabled and self.validate_bead_ids,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "specks": {
                "validation_level": self.validation_level.value,
                "show_info": self.show_info,
                "beads": {
                    "enabled": self.beads_enabled,
                    "validate_bead_ids": self.validate_bead_ids,
                },
            }
        }


_TYPE_NAMES: Final[dict[type, str]] = {bool: "boolean", str: "string"}

# Settings that ``specks init`` writes for naming and bead sync. They are
# type-checked so that generated project files load, but nothing here uses them.
_NAMING_SETTINGS: Final[dict[str, type]] = {
    "prefix": str,
    "name_pattern": str,
}
_BEAD_SYNC_SETTINGS: Final[dict[str, type]] = {
    "bd_path": str,
    "update_title": bool,
    "update_body": bool,
    "prune_deps": bool,
    "root_issue_type": str,
    "substeps": str,
    "pull_checkbox_mode": str,
    "pull_warn_on_conflict": bool,
}


def parse_config(payload: Mapping[str, object]) -> SpecksConfig:
    """Validate a raw config payload and return the typed configuration."""

    root = _TableReader(payload, "")
    root.only("specks")

    specks = root.table("specks")
    specks.only("validation_level", "show_info", "naming", "beads")
    level = specks.level("validation_level")
    show_info = specks.flag("show_info")

    naming = specks.table("naming")
    naming.only(*_NAMING_SETTINGS)
    naming.check_types(_NAMING_SETTINGS)

    beads = specks.table("beads")
    beads.only("enabled", "validate_bead_ids", *_BEAD_SYNC_SETTINGS)
    beads_enabled = beads.flag("enabled")
    validate_bead_ids = beads.flag("validate_bead_ids", default=True)
    beads.check_types(_BEAD_SYNC_SETTINGS)

    root.raise_if_invalid()
    return SpecksConfig(
        validation_level=level or ValidationLevel.NORMAL,
        show_info=show_info,
        beads_enabled=beads_enabled,
        validate_bead_ids=validate_bead_ids,
    )


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Deep-merge ``overlay`` onto ``base`` into fresh dicts; neither input is mutated."""

    merged: dict[str, Any] = {}
    for key in sorted({*base, *overlay}):
        if key in overlay:
            value, below = overlay[key], base.get(key)
        else:
            value, below = base[key], None
        if isinstance(value, Mapping):
            merged[key] = merge_config(below if isinstance(below, Mapping) else {}, value)
        else:
            merged[key] = value
    return merged


class _TableReader:
    """
    Reads typed values out of one TOML table.

    Problems are appended to a list shared with every nested reader, so one
    ``raise_if_invalid`` on the root reports all of them in reading order.
    A missing or non-table value reads as an empty table.
    """

    __slots__ = ("_path", "_table", "issues")

    def __init__(
        self,
        table: object,
        path: str,
        issues: list[ConfigValidationIssue] | None = None,
    ) -> None:
        self._path = path
        self.issues: list[ConfigValidationIssue] = [] if issues is None else issues
        if isinstance(table, Mapping):
            self._table: Mapping[str, object] = table
        else:
            if table is not None:
                self._report("", f"expected table, got {type(table).__name__}")
            self._table = {}

    def only(self, *allowed: str) -> None:
        for key in sorted(self._table):
            if key not in allowed:
                self._report(key, "unknown field")

    def table(self, key: str) -> _TableReader:
        return _TableReader(self._table.get(key), self._where(key), self.issues)

    def flag(self, key: str, default: bool = False) -> bool:
        if key not in self._table:
            return default
        value = self._table[key]
        if isinstance(value, bool):
            return value
        self._report(key, f"expected boolean, got {type(value).__name__}")
        return default

    def check_types(self, expected: Mapping[str, type]) -> None:
        for key in sorted(expected):
            if key not in self._table:
                continue
            value = self._table[key]
            if not isinstance(value, expected[key]):
                wanted = _TYPE_NAMES.get(expected[key], expected[key].__name__)
                self._report(key, f"expected {wanted}, got {type(value).__name__}")

    def level(self, key: str) -> ValidationLevel | None:
        if key not in self._table:
            return None
        value = self._table[key]
        if isinstance(value, ValidationLevel):
            return value
        if not isinstance(value, str):
            self._report(key, f"expected string, got {type(value).__name__}")
            return None
        try:
            return ValidationLevel(value.strip().lower())
        except ValueError:
            expected = ", ".join(member.value for member in ValidationLevel)
            self._report(key, f"invalid value {value!r}; expected one of: {expected}")
            return None

    def raise_if_invalid(self) -> None:
        if self.issues:
            raise ConfigValidationError(self.issues)

    def _where(self, key: str) -> str:
        return ".".join(part for part in (self._path, key) if part)

    def _report(self, key: str, message: str) -> None:
        self.issues.append(ConfigValidationIssue(path=self._where(key), message=message))


__all__ = [
    "DEFAULT_CONFIG",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "SpecksConfig",
    "ValidationConfig",
    "ValidationLevel",
    "merge_config",
    "parse_config",
]
