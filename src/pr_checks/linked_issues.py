"""Linked-issue check.

GitHub exposes the issues a pull request will close only through GraphQL
(``closingIssuesReferences``); the REST API has no equivalent. Issue states
are then read one by one through REST.
"""

from __future__ import annotations

from pr_checks.events import PullRequestEvent
from shared.constants import DEFAULT_MAX_LINKED_ISSUES
from shared.github_client import GitHubClient
from shared.logging import get_logger
from shared.schema import CheckResult, LinkedIssue

logger = get_logger("pr_checks.linked_issues", check="linked-issues")

CHECK_NAME = "linked-issues"

LINKED_ISSUES_QUERY = """\
query ($owner: String!, $repository: String!, $prNumber: Int!, $first: Int!) {
  repository(owner: $owner, name: $repository) {
    pullRequest(number: $prNumber) {
      closingIssuesReferences(first: $first) {
        nodes {
          number
          repository {
            nameWithOwner
          }
        }
      }
    }
  }
}
"""


def _closing_issue_nodes(
    gh: GitHubClient,
    owner: str,
    repo: str,
    pr_number: int,
    first: int,
) -> list[dict]:
    data = gh.graphql(
        LINKED_ISSUES_QUERY,
        {"owner": owner, "repository": repo, "prNumber": pr_number, "first": first},
    )
    pull_request = ((data.get("repository") or {}).get("pullRequest")) or {}
    nodes = (pull_request.get("closingIssuesReferences") or {}).get("nodes") or []
    return [node for node in nodes if node]


def _node_repository(node: dict) -> str | None:
    # GraphQL nulls the repository of issues the token cannot read
    return (node.get("repository") or {}).get("nameWithOwner")


def fetch_linked_issues(
    gh: GitHubClient,
    owner: str,
    repo: str,
    pr_number: int,
    first: int = DEFAULT_MAX_LINKED_ISSUES,
) -> list[LinkedIssue]:
    """Return the linked issues whose repository is visible to the token."""
    return [
        LinkedIssue(repository=_node_repository(node), number=int(node["number"]))
        for node in _closing_issue_nodes(gh, owner, repo, pr_number, first)
        if _node_repository(node)
    ]


def check_linked_issues(
    gh: GitHubClient,
    event: PullRequestEvent,
    first: int = DEFAULT_MAX_LINKED_ISSUES,
) -> CheckResult:
    if event.is_merge_group or event.pr_number is None:
        return CheckResult.skip(CHECK_NAME, "Skipping PR linked issues check for merge queue")

    log = logger.bind(event_name=event.event_name, repo=event.full_name, pr_number=event.pr_number)

    nodes = _closing_issue_nodes(gh, event.owner, event.repo, event.pr_number, first)
    if not nodes:
        log.info("no_linked_issues")
        return CheckResult.failure(CHECK_NAME, "PR does not contain any linked issues")

    issues: list[LinkedIssue] = []
    for node in nodes:
        repository = _node_repository(node)
        if not repository:
            log.info("linked_issue_not_visible", extra={"extra": {"number": node.get("number")}})
            return CheckResult.failure(
                CHECK_NAME,
                "At least one of the linked issues is not open",
                details=[f"#{node.get('number')} is not visible to this token"],
            )
        issues.append(LinkedIssue(repository=repository, number=int(node["number"])))

    log.info("linked_issues_found", extra={"extra": {"issues": [str(issue) for issue in issues]}})

    for issue in issues:
        state = str(gh.get_issue(issue.owner, issue.name, issue.number).get("state") or "")
        if state.lower() != "open":
            log.info("linked_issue_not_open", extra={"extra": {"issue": str(issue), "state": state}})
            return CheckResult.failure(
                CHECK_NAME,
                "At least one of the linked issues is not open",
                details=[f"{issue} is {state.lower() or 'unknown'}"],
            )

    return CheckResult.ok(
        CHECK_NAME,
        "PR contains at least one linked issue",
        details=[str(issue) for issue in issues],
    )
