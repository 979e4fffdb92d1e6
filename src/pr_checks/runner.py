from __future__ import annotations

from typing import Callable, Iterable, Optional

from pr_checks.config import PrChecksSettings
from pr_checks.events import PullRequestEvent
from pr_checks.labeler import sync_labels
from pr_checks.linked_issues import check_linked_issues
from pr_checks.title_check import check_title
from shared.github_client import GitHubClient
from shared.logging import get_logger
from shared.schema import CheckResult

logger = get_logger("pr_checks.runner")

CheckFn = Callable[[PullRequestEvent, Optional[GitHubClient], PrChecksSettings], CheckResult]

JOBS: dict[str, CheckFn] = {
    "title": lambda event, _gh, settings: check_title(event, allowed_types=settings.commit_types),
    "linked-issues": lambda event, gh, settings: check_linked_issues(gh, event, first=settings.max_linked_issues),
    "labels": lambda event, gh, settings: sync_labels(
        gh, event, rules=settings.label_rules, dry_run=settings.dry_run
    ),
}

# Jobs that can run without a GitHub API client
OFFLINE_JOBS = frozenset({"title"})


def needs_api(event: PullRequestEvent, jobs: Iterable[str]) -> bool:
    """True when any selected job will call the GitHub API for this event."""
    for name in jobs:
        if name in OFFLINE_JOBS:
            continue
        if name == "linked-issues" and event.is_merge_group:
            continue
        if name == "labels" and not event.is_pull_request:
            continue
        return True
    return False


def run_checks(
    event: PullRequestEvent,
    gh: Optional[GitHubClient],
    settings: PrChecksSettings,
    jobs: Optional[Iterable[str]] = None,
) -> list[CheckResult]:
    """Run the selected jobs independently; one failing job never stops the rest."""
    selected = list(jobs) if jobs is not None else list(JOBS)
    unknown = [name for name in selected if name not in JOBS]
    if unknown:
        raise ValueError(f"unknown check(s): {', '.join(unknown)}")

    log = logger.bind(event_name=event.event_name, repo=event.full_name, pr_number=event.pr_number)
    results: list[CheckResult] = []
    for name in selected:
        try:
            result = JOBS[name](event, gh, settings)
        except Exception as exc:  # noqa: BLE001
            log.exception("check_crashed", extra={"check": name})
            result = CheckResult.failure(name, f"{name} check errored: {exc}")
        log.info("check_completed", extra={"check": name, "extra": {"status": result.status}})
        results.append(result)
    return results
