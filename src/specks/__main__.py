"""Module entrypoint for ``python -m specks``."""

from __future__ import annotations

from specks.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
