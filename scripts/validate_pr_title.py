#!/usr/bin/env python3
"""Validate a PR title (or commit message) as a conventional commit.

Usage: validate_pr_title.py "<title>" [extra_type ...]

Runs straight from a checkout, without installing the package.
"""

from __future__ import annotations

import sys
from pathlib import Path

sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))
from pr_checks.conventional_commit import (  # noqa: E402
    DEFAULT_COMMIT_TYPES,
    ConventionalCommitError,
    verify_commit_message,
)


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print("::error::No PR title provided.")
        return 2

    title = args[0]
    allowed = (*DEFAULT_COMMIT_TYPES, *args[1:])
    try:
        verify_commit_message(title, allowed_types=allowed)
    except ConventionalCommitError as exc:
        print(f"::error::PR title does not follow conventional commit standards: {exc}")
        print("Expected format: type(scope): short description")
        print(f"Allowed types: {', '.join(allowed)}")
        print(f"Received: {title}")
        return 1

    print(f"PR title matches convention: {title}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
