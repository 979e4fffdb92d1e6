from __future__ import annotations

from typing import Iterable

from pr_checks.conventional_commit import DEFAULT_COMMIT_TYPES, ConventionalCommitError, verify_commit_message
from pr_checks.events import PullRequestEvent
from shared.logging import get_logger
from shared.schema import CheckResult

logger = get_logger("pr_checks.title_check", check="title")

CHECK_NAME = "title"


def check_title(
    event: PullRequestEvent,
    allowed_types: Iterable[str] = DEFAULT_COMMIT_TYPES,
) -> CheckResult:
    """Verify the PR title (or the merge-group head commit message)."""
    if event.is_merge_group:
        subject = "commit message"
        text = event.commit_message or ""
    else:
        subject = "PR title"
        text = event.title or ""

    log = logger.bind(event_name=event.event_name, repo=event.full_name, pr_number=event.pr_number)
    try:
        commit = verify_commit_message(text, allowed_types=allowed_types)
    except ConventionalCommitError as exc:
        log.info("conventional_commit_violation", extra={"extra": {"subject": subject, "reason": str(exc)}})
        return CheckResult.failure(
            CHECK_NAME,
            f"{subject} does not follow conventional commit standards: {exc}",
            details=[f"Received: {text.strip().splitlines()[0] if text.strip() else '(empty)'}"],
        )

    log.info("conventional_commit_verified", extra={"extra": {"subject": subject, "type": commit.type}})
    return CheckResult.ok(CHECK_NAME, f"{subject} follows conventional commit standards")
