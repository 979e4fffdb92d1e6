"""Tests for the linked-issue check."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from pr_checks.events import PullRequestEvent
from pr_checks.linked_issues import LINKED_ISSUES_QUERY, check_linked_issues, fetch_linked_issues
from shared.github_client import GitHubGraphQLError


def _event() -> PullRequestEvent:
    return PullRequestEvent(event_name="pull_request_target", action="opened", owner="o", repo="r", pr_number=5, title="fix: x")


def _graphql_data(*issues: tuple[str, int]) -> dict:
    return {
        "repository": {
            "pullRequest": {
                "closingIssuesReferences": {
                    "nodes": [{"number": n, "repository": {"nameWithOwner": repo}} for repo, n in issues]
                }
            }
        }
    }


def _make_gh(issues: list[tuple[str, int]], states: dict[tuple[str, int], str]) -> MagicMock:
    gh = MagicMock()
    gh.graphql.return_value = _graphql_data(*issues)

    def _get_issue(owner: str, repo: str, number: int) -> dict:
        return {"number": number, "state": states[(f"{owner}/{repo}", number)]}

    gh.get_issue.side_effect = _get_issue
    return gh


def test_fetch_linked_issues_passes_variables() -> None:
    gh = _make_gh([("o/r", 1), ("other/repo", 22)], {})

    issues = fetch_linked_issues(gh, "o", "r", 5, first=10)

    assert [str(issue) for issue in issues] == ["o/r#1", "other/repo#22"]
    query, variables = gh.graphql.call_args.args
    assert query == LINKED_ISSUES_QUERY
    assert variables == {"owner": "o", "repository": "r", "prNumber": 5, "first": 10}


def test_fetch_linked_issues_handles_missing_pull_request() -> None:
    gh = MagicMock()
    gh.graphql.return_value = {"repository": {"pullRequest": None}}
    assert fetch_linked_issues(gh, "o", "r", 5) == []


def test_no_linked_issues_fails() -> None:
    gh = _make_gh([], {})

    result = check_linked_issues(gh, _event())

    assert result.status == "failed"
    assert result.summary == "PR does not contain any linked issues"
    gh.get_issue.assert_not_called()


def test_all_open_issues_pass() -> None:
    gh = _make_gh([("o/r", 1), ("other/repo", 22)], {("o/r", 1): "open", ("other/repo", 22): "OPEN"})

    result = check_linked_issues(gh, _event())

    assert result.status == "passed"
    assert result.summary == "PR contains at least one linked issue"
    assert result.details == ["o/r#1", "other/repo#22"]
    gh.get_issue.assert_any_call("other", "repo", 22)


def test_closed_issue_fails_and_stops() -> None:
    gh = _make_gh(
        [("o/r", 1), ("o/r", 2), ("o/r", 3)],
        {("o/r", 1): "open", ("o/r", 2): "closed", ("o/r", 3): "open"},
    )

    result = check_linked_issues(gh, _event())

    assert result.status == "failed"
    assert result.summary == "At least one of the linked issues is not open"
    assert result.details == ["o/r#2 is closed"]
    assert gh.get_issue.call_count == 2


def test_merge_group_is_skipped() -> None:
    gh = MagicMock()
    event = PullRequestEvent(event_name="merge_group", action="checks_requested", owner="o", repo="r", commit_message="fix: x")

    result = check_linked_issues(gh, event)

    assert result.status == "skipped"
    assert result.passed is True
    gh.graphql.assert_not_called()


def test_graphql_errors_propagate() -> None:
    gh = MagicMock()
    gh.graphql.side_effect = GitHubGraphQLError([{"message": "Could not resolve to a Repository"}])

    with pytest.raises(GitHubGraphQLError, match="Could not resolve"):
        check_linked_issues(gh, _event())


def test_issue_without_visible_repository_fails() -> None:
    gh = _make_gh([("o/r", 4)], {})
    nodes = gh.graphql.return_value["repository"]["pullRequest"]["closingIssuesReferences"]["nodes"]
    nodes.append({"number": 31, "repository": None})

    result = check_linked_issues(gh, _event())

    assert result.status == "failed"
    assert result.summary == "At least one of the linked issues is not open"
    assert result.details == ["#31 is not visible to this token"]
    gh.get_issue.assert_not_called()
    assert [issue.number for issue in fetch_linked_issues(gh, "o", "r", 5)] == [4]
