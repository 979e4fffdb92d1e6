"""Shared constants used by the CLI and the webhook Lambda."""

from __future__ import annotations

DEFAULT_API_BASE = "https://api.github.com"
GITHUB_API_VERSION = "2022-11-28"

PULL_REQUEST_TARGET_EVENT = "pull_request_target"
PULL_REQUEST_EVENT = "pull_request"
MERGE_GROUP_EVENT = "merge_group"

PULL_REQUEST_EVENTS = frozenset({PULL_REQUEST_TARGET_EVENT, PULL_REQUEST_EVENT})

# Actions that trigger the checks, per event family
PULL_REQUEST_ACTIONS = frozenset({"opened", "edited", "reopened", "ready_for_review", "synchronize"})
MERGE_GROUP_ACTIONS = frozenset({"checks_requested"})

# closingIssuesReferences page size used by the workflow this tool replaces
DEFAULT_MAX_LINKED_ISSUES = 10

DEFAULT_STATUS_CONTEXT = "pr-checks"

# GitHub rejects commit status descriptions longer than this
MAX_STATUS_DESCRIPTION_LENGTH = 140
