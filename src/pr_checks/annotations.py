"""GitHub Actions workflow commands and environment files."""

from __future__ import annotations

import os
import sys
from typing import Optional, TextIO


def _escape_data(value: str) -> str:
    return value.replace("%", "%25").replace("\r", "%0D").replace("\n", "%0A")


def _escape_property(value: str) -> str:
    return _escape_data(value).replace(":", "%3A").replace(",", "%2C")


def _command(name: str, message: str, title: Optional[str], stream: Optional[TextIO]) -> None:
    props = f" title={_escape_property(title)}" if title else ""
    print(f"::{name}{props}::{_escape_data(message)}", file=stream or sys.stdout)


def error(message: str, title: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    _command("error", message, title, stream)


def warning(message: str, title: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    _command("warning", message, title, stream)


def notice(message: str, title: Optional[str] = None, stream: Optional[TextIO] = None) -> None:
    _command("notice", message, title, stream)


def _append_file_command(variable: str, name: str, value: str) -> bool:
    path = os.getenv(variable)
    if not path:
        return False
    if "\n" in value or "\r" in value:
        raise ValueError(f"{name} value must be a single line")
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(f"{name}={value}\n")
    return True


def set_env(name: str, value: str) -> bool:
    """Export ``name`` to later steps of the job. False outside Actions."""
    return _append_file_command("GITHUB_ENV", name, value)


def set_output(name: str, value: str) -> bool:
    return _append_file_command("GITHUB_OUTPUT", name, value)
