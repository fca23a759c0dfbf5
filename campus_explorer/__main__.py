"""Module entry point: python -m campus_explorer ..."""

from __future__ import annotations

from campus_explorer.cli import main


if __name__ == "__main__":
    raise SystemExit(main())
