"""Conventional commit parsing and verification.

Accepts the same messages as ``cog verify``: a ``type(scope)!: description``
header, an optional body separated by a blank line, and optional trailing
footers (``Token: value`` / ``Token #value`` / ``BREAKING CHANGE: value``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

DEFAULT_COMMIT_TYPES = (
    "feat",
    "fix",
    "build",
    "chore",
    "ci",
    "docs",
    "style",
    "refactor",
    "perf",
    "test",
    "revert",
)

_HEADER_RE = re.compile(
    r"^(?P<type>[A-Za-z]+)"
    r"(?:\((?P<scope>[^()\r\n]*)\))?"
    r"(?P<breaking>!)?"
    r"(?P<separator>:\s?)"
    r"(?P<description>.*)$"
)
_FOOTER_RE = re.compile(r"^(?P<token>BREAKING[ -]CHANGE|[A-Za-z][A-Za-z0-9]*(?:-[A-Za-z0-9]+)*)(?::\s|\s#)(?P<value>.+)$")
_BREAKING_TOKENS = {"BREAKING CHANGE", "BREAKING-CHANGE"}


class ConventionalCommitError(ValueError):
    """The message is not a valid conventional commit."""


@dataclass(frozen=True)
class Footer:
    token: str
    value: str


@dataclass(frozen=True)
class ConventionalCommit:
    type: str
    description: str
    scope: Optional[str] = None
    breaking: bool = False
    body: Optional[str] = None
    footers: tuple[Footer, ...] = field(default_factory=tuple)


def _parse_header(header: str) -> re.Match[str]:
    if ":" not in header:
        raise ConventionalCommitError("Missing commit type separator `:`")

    match = _HEADER_RE.match(header)
    if not match:
        commit_type = header.split(":", 1)[0].split("(", 1)[0].rstrip("!")
        if not re.fullmatch(r"[A-Za-z]+", commit_type):
            raise ConventionalCommitError(f"Invalid commit type `{commit_type}`: expected ASCII letters only")
        raise ConventionalCommitError("Malformed commit scope: expected `type(scope): description`")

    if match.group("scope") is not None and not match.group("scope").strip():
        raise ConventionalCommitError("Commit scope cannot be empty")
    description = match.group("description")
    if not description.strip():
        raise ConventionalCommitError("Missing commit description")
    if match.group("separator") != ": ":
        raise ConventionalCommitError("Expected a single space after `:`")
    if description != description.lstrip():
        raise ConventionalCommitError("Commit description cannot start with whitespace")
    return match


def _parse_footers(paragraph: str) -> Optional[tuple[Footer, ...]]:
    footers: list[Footer] = []
    for line in paragraph.splitlines():
        match = _FOOTER_RE.match(line)
        if not match:
            return None
        footers.append(Footer(token=match.group("token"), value=match.group("value").strip()))
    return tuple(footers)


def parse_commit_message(message: str) -> ConventionalCommit:
    """Parse ``message`` into its conventional commit parts.

    Raises ``ConventionalCommitError`` when the message does not conform.
    """
    text = (message or "").strip().replace("\r\n", "\n")
    if not text:
        raise ConventionalCommitError("Commit message is empty")

    header, _, rest = text.partition("\n")
    match = _parse_header(header)

    body: Optional[str] = None
    footers: tuple[Footer, ...] = ()
    if rest:
        if not rest.startswith("\n"):
            raise ConventionalCommitError("Commit body must be separated from the header by a blank line")
        paragraphs = [p.strip("\n") for p in re.split(r"\n\s*\n", rest.strip("\n"))]
        paragraphs = [p for p in paragraphs if p.strip()]
        if paragraphs:
            parsed_footers = _parse_footers(paragraphs[-1])
            if parsed_footers is not None:
                footers = parsed_footers
                paragraphs = paragraphs[:-1]
        if paragraphs:
            body = "\n\n".join(paragraphs)

    breaking = bool(match.group("breaking")) or any(f.token in _BREAKING_TOKENS for f in footers)
    scope = match.group("scope")
    return ConventionalCommit(
        type=match.group("type"),
        scope=scope.strip() if scope is not None else None,
        breaking=breaking,
        description=match.group("description").rstrip(),
        body=body,
        footers=footers,
    )


def verify_commit_message(
    message: str,
    allowed_types: Iterable[str] = DEFAULT_COMMIT_TYPES,
) -> ConventionalCommit:
    commit = parse_commit_message(message)
    allowed = tuple(allowed_types)
    if commit.type not in allowed:
        raise ConventionalCommitError(
            f"Commit type `{commit.type}` is not allowed; expected one of: {', '.join(allowed)}"
        )
    return commit
