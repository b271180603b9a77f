"""Stable constants shared across the parser, validator and CLI."""

from __future__ import annotations

from pathlib import PurePosixPath
from typing import Final

# Declared metadata status values.
STATUS_DRAFT: Final[str] = "draft"
STATUS_ACTIVE: Final[str] = "active"
STATUS_DONE: Final[str] = "done"
STATUS_VALUES: Final[tuple[str, ...]] = (STATUS_DRAFT, STATUS_ACTIVE, STATUS_DONE)

# Metadata table labels, in the order a well-formed speck lists them.
FIELD_OWNER: Final[str] = "Owner"
FIELD_STATUS: Final[str] = "Status"
FIELD_TARGET_BRANCH: Final[str] = "Target branch"
FIELD_TRACKING: Final[str] = "Tracking issue/PR"
FIELD_LAST_UPDATED: Final[str] = "Last updated"
FIELD_BEADS_ROOT: Final[str] = "Beads Root"
REQUIRED_METADATA_FIELDS: Final[tuple[str, ...]] = (
    FIELD_OWNER,
    FIELD_STATUS,
    FIELD_TARGET_BRANCH,
    FIELD_LAST_UPDATED,
)

# Section headings that every speck must carry.
SECTION_PLAN_METADATA: Final[str] = "Plan Metadata"
SECTION_EXECUTION_STEPS: Final[str] = "Execution Steps"
REQUIRED_SECTIONS: Final[tuple[str, ...]] = (SECTION_PLAN_METADATA, SECTION_EXECUTION_STEPS)

# Status tokens accepted on decision/question lines.
DECISION_STATUSES: Final[frozenset[str]] = frozenset({"DECIDED", "OPEN", "DEFERRED", "RESOLVED"})
OPEN_QUESTION_STATUS: Final[str] = "OPEN"

# Bead hint priority range (inclusive).
MIN_BEAD_PRIORITY: Final[int] = 1
MAX_BEAD_PRIORITY: Final[int] = 4

# Project layout.
SPECKS_DIR: Final[PurePosixPath] = PurePosixPath(".specks")
DEFAULT_CONFIG_FILE: Final[str] = "config.toml"
SPECK_FILE_PREFIX: Final[str] = "specks-"
SPECK_FILE_SUFFIX: Final[str] = ".md"

__all__ = [
    "DECISION_STATUSES",
    "DEFAULT_CONFIG_FILE",
    "FIELD_BEADS_ROOT",
    "FIELD_LAST_UPDATED",
    "FIELD_OWNER",
    "FIELD_STATUS",
    "FIELD_TARGET_BRANCH",
    "FIELD_TRACKING",
    "MAX_BEAD_PRIORITY",
    "MIN_BEAD_PRIORITY",
    "OPEN_QUESTION_STATUS",
    "REQUIRED_METADATA_FIELDS",
    "REQUIRED_SECTIONS",
    "SECTION_EXECUTION_STEPS",
    "SECTION_PLAN_METADATA",
    "SPECKS_DIR",
    "SPECK_FILE_PREFIX",
    "SPECK_FILE_SUFFIX",
    "STATUS_ACTIVE",
    "STATUS_DONE",
    "STATUS_DRAFT",
    "STATUS_VALUES",
]
