import json
import re
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError, field_validator


CheckStatus = Literal["passed", "failed", "skipped"]


class CheckResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str
    status: CheckStatus
    summary: str
    details: list[str] = []
    """Extra lines worth surfacing (label changes, offending issues, ...)."""

    @property
    def passed(self) -> bool:
        return self.status != "failed"

    @classmethod
    def ok(cls, name: str, summary: str, details: Optional[list[str]] = None) -> "CheckResult":
        return cls(name=name, status="passed", summary=summary, details=details or [])

    @classmethod
    def failure(cls, name: str, summary: str, details: Optional[list[str]] = None) -> "CheckResult":
        return cls(name=name, status="failed", summary=summary, details=details or [])

    @classmethod
    def skip(cls, name: str, summary: str) -> "CheckResult":
        return cls(name=name, status="skipped", summary=summary)


class LinkedIssue(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    repository: str
    """Repository in ``owner/name`` form."""
    number: int

    @property
    def owner(self) -> str:
        return self.repository.split("/", maxsplit=1)[0]

    @property
    def name(self) -> str:
        return self.repository.split("/", maxsplit=1)[1]

    def __str__(self) -> str:
        return f"{self.repository}#{self.number}"

    @field_validator("repository")
    @classmethod
    def validate_repository(cls, value: str) -> str:
        owner, _, name = value.partition("/")
        if not owner or not name:
            raise ValueError("repository must be in owner/name form")
        return value


class LabelRule(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    label: str
    pattern: str
    env_flag: Optional[str] = None

    @field_validator("label")
    @classmethod
    def validate_label(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("label cannot be empty")
        return value

    @field_validator("pattern")
    @classmethod
    def validate_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid pattern: {exc}") from exc
        return value

    @field_validator("env_flag")
    @classmethod
    def validate_env_flag(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", value):
            raise ValueError("env_flag must be a valid environment variable name")
        return value

    def compiled(self) -> re.Pattern[str]:
        return re.compile(self.pattern)


_LABEL_RULES = TypeAdapter(list[LabelRule])


def parse_label_rules(raw: str | list) -> list[LabelRule]:
    """Parse label rules from a JSON string or an already-decoded list."""
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError("Label rules are not valid JSON") from exc

    try:
        rules = _LABEL_RULES.validate_python(raw)
    except ValidationError as exc:
        raise ValueError(f"Label rules failed schema validation: {exc}") from exc

    if not rules:
        raise ValueError("At least one label rule is required")
    return rules
