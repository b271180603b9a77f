"""Output rendering for the specks CLI.

File: src/specks/ui/render.py

Purpose
- Keep every human-readable line of CLI output behind one small writer.

What should be included in this file
- CLIRenderer with text, key/value, section, issue-group and table helpers.
- create_renderer factory bound to an output stream.

Functional requirements
- Output is plain text and identical whether or not stdout is a terminal.
- ``quiet`` renderers write nothing.

Non-functional requirements
- No dependencies beyond the standard library.
"""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING, TextIO

if TYPE_CHECKING:
    from collections.abc import Collection, Sequence

    from specks.validation.issues import Issue

_COLUMN_GAP = "  "


class CLIRenderer:
    """Writes plain-text CLI output to ``stream`` (stdout at call time by default)."""

    def __init__(self, *, stream: TextIO | None = None, quiet: bool = False) -> None:
        self.quiet = quiet
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    def text(self, line: str = "") -> None:
        if self.quiet:
            return
        self.stream.write(f"{line}\n")

    def kv(self, key: str, value: object) -> None:
        self.text(f"{key}: {value}")

    def section(self, title: str) -> None:
        """Blank line, then ``title``."""
        self.text()
        self.text(title)

    def issues(self, title: str, issues: Sequence[Issue]) -> None:
        """Print one severity group as ``Line N: message`` entries."""

        if not issues:
            return
        self.section(f"{title}:")
        for issue in issues:
            location = "" if issue.line is None else f"Line {issue.line}: "
            self.text(f"  {location}{issue.message}")

    def table(
        self,
        headers: Sequence[str],
        rows: Sequence[Sequence[object]],
        *,
        align_right: Collection[int] = (),
    ) -> None:
        """
        Print ``headers`` and ``rows`` as space-aligned columns.

        Short rows are padded with empty cells and extra cells are dropped.
        Columns listed in ``align_right`` are right-justified. Nothing is
        printed when there are no rows.
        """

        if not rows:
            return

        grid = [list(headers)] + [
            [str(row[column]) if column < len(row) else "" for column in range(len(headers))]
            for row in rows
        ]
        widths = [max(len(line[column]) for line in grid) for column in range(len(headers))]

        for line in grid:
            cells = (
                cell.rjust(width) if column in align_right else cell.ljust(width)
                for column, (cell, width) in enumerate(zip(line, widths))
            )
            self.text(_COLUMN_GAP.join(cells).rstrip())


def create_renderer(*, stream: TextIO | None = None, quiet: bool = False) -> CLIRenderer:
    return CLIRenderer(stream=stream, quiet=quiet)


__all__ = ["CLIRenderer", "create_renderer"]
