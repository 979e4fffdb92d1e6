from __future__ import annotations

from typing import Iterable, Sequence

from pr_checks import annotations
from pr_checks.events import PullRequestEvent
from shared.github_client import GitHubClient
from shared.logging import get_logger
from shared.schema import CheckResult, LabelRule

logger = get_logger("pr_checks.labeler", check="labels")

CHECK_NAME = "labels"

DEFAULT_LABEL_RULES: tuple[LabelRule, ...] = (
    LabelRule(
        label="M-database-changes",
        # ".rs" is matched literally; a bare "." would accept any character there
        pattern=(
            r"(^(migrations|v2_migrations)/.*/(up|down)\.sql$"
            r"|^crates/diesel_models/src/(schema|schema_v2)\.rs$)"
        ),
        env_flag="migration_and_schema_changes",
    ),
    LabelRule(
        label="M-api-contract-changes",
        pattern=r"^api-reference/(v1/openapi_spec_v1\.json|v2/openapi_spec_v2\.json)$",
        env_flag="openapi_changes",
    ),
)


def detect_labels(paths: Iterable[str], rules: Sequence[LabelRule] = DEFAULT_LABEL_RULES) -> dict[str, bool]:
    """Map each rule's label to whether any changed path matches it."""
    path_list = list(paths)
    detected: dict[str, bool] = {}
    for rule in rules:
        pattern = rule.compiled()
        matched = any(pattern.search(path) for path in path_list)
        detected[rule.label] = detected.get(rule.label, False) or matched
    return detected


def sync_labels(
    gh: GitHubClient,
    event: PullRequestEvent,
    rules: Sequence[LabelRule] = DEFAULT_LABEL_RULES,
    dry_run: bool = False,
) -> CheckResult:
    """Add or remove each rule's label based on the PR's changed files."""
    if not event.is_pull_request or event.pr_number is None:
        return CheckResult.skip(CHECK_NAME, "Labels are only managed for pull request events")

    log = logger.bind(event_name=event.event_name, repo=event.full_name, pr_number=event.pr_number)

    paths = gh.list_pull_request_filenames(event.owner, event.repo, event.pr_number)
    detected = detect_labels(paths, rules)
    log.info("labels_detected", extra={"extra": {"files": len(paths), "detected": detected}})

    for rule in rules:
        if rule.env_flag:
            annotations.set_env(rule.env_flag, "true" if detected[rule.label] else "false")

    changes: list[str] = []
    for label, wanted in detected.items():
        if dry_run:
            changes.append(f"{'would add' if wanted else 'would remove'} {label}")
            continue
        if wanted:
            gh.add_labels(event.owner, event.repo, event.pr_number, [label])
            changes.append(f"added {label}")
        elif gh.remove_label(event.owner, event.repo, event.pr_number, label):
            changes.append(f"removed {label}")
        else:
            changes.append(f"{label} not present")

    log.info("labels_synced", extra={"extra": {"changes": changes, "dry_run": dry_run}})
    return CheckResult.ok(CHECK_NAME, "Labels synchronized with changed files", details=changes)
