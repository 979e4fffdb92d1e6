"""Normalise GitHub event payloads into the context the checks need.

The same payload shape arrives from two places: the ``GITHUB_EVENT_PATH``
file a GitHub Actions job sees, and the body of a webhook delivery.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict

from shared.constants import (
    MERGE_GROUP_ACTIONS,
    MERGE_GROUP_EVENT,
    PULL_REQUEST_ACTIONS,
    PULL_REQUEST_EVENTS,
)


class UnsupportedEventError(ValueError):
    """The event is not one the convention checks run for."""


class PullRequestEvent(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    event_name: str
    action: Optional[str] = None
    owner: str
    repo: str
    pr_number: Optional[int] = None
    title: Optional[str] = None
    head_sha: Optional[str] = None
    commit_message: Optional[str] = None
    installation_id: Optional[int] = None

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def is_pull_request(self) -> bool:
        return self.event_name in PULL_REQUEST_EVENTS

    @property
    def is_merge_group(self) -> bool:
        return self.event_name == MERGE_GROUP_EVENT


def _repository_parts(payload: Mapping[str, Any]) -> tuple[str, str]:
    repository = payload.get("repository") or {}
    owner = (repository.get("owner") or {}).get("login")
    name = repository.get("name")
    if (not owner or not name) and repository.get("full_name"):
        owner, _, name = str(repository["full_name"]).partition("/")
    if not owner or not name:
        raise ValueError("event payload is missing repository owner/name")
    return str(owner), str(name)


def parse_event(event_name: str, payload: Mapping[str, Any]) -> PullRequestEvent:
    if event_name not in PULL_REQUEST_EVENTS and event_name != MERGE_GROUP_EVENT:
        raise UnsupportedEventError(f"unsupported event: {event_name}")

    owner, repo = _repository_parts(payload)
    installation_id = (payload.get("installation") or {}).get("id")

    if event_name == MERGE_GROUP_EVENT:
        merge_group = payload.get("merge_group") or {}
        head_commit = merge_group.get("head_commit") or {}
        message = head_commit.get("message")
        if message is None:
            raise ValueError("merge_group payload is missing head_commit.message")
        return PullRequestEvent(
            event_name=event_name,
            action=payload.get("action"),
            owner=owner,
            repo=repo,
            head_sha=merge_group.get("head_sha") or head_commit.get("id"),
            commit_message=message,
            installation_id=installation_id,
        )

    pull_request = payload.get("pull_request") or {}
    pr_number = pull_request.get("number") or payload.get("number")
    if not pr_number:
        raise ValueError("pull_request payload is missing the PR number")
    return PullRequestEvent(
        event_name=event_name,
        action=payload.get("action"),
        owner=owner,
        repo=repo,
        pr_number=int(pr_number),
        title=pull_request.get("title") or "",
        head_sha=(pull_request.get("head") or {}).get("sha"),
        installation_id=installation_id,
    )


def is_triggering(event: PullRequestEvent) -> bool:
    if event.is_merge_group:
        return event.action in MERGE_GROUP_ACTIONS
    return event.action in PULL_REQUEST_ACTIONS


def load_actions_event(
    environ: Optional[Mapping[str, str]] = None,
    event_name: Optional[str] = None,
    event_path: Optional[str] = None,
) -> PullRequestEvent:
    """Read the event a GitHub Actions job was triggered by."""
    env = os.environ if environ is None else environ
    name = event_name or env.get("GITHUB_EVENT_NAME")
    path = event_path or env.get("GITHUB_EVENT_PATH")
    if not name or not path:
        raise ValueError("GITHUB_EVENT_NAME and GITHUB_EVENT_PATH must be set")

    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return parse_event(name, payload)
