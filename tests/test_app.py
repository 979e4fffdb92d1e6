"""Tests for the webhook Lambda."""

from __future__ import annotations

import hashlib
import hmac
import json
from unittest.mock import MagicMock, patch

import pytest
import requests

import pr_checks.app as webhook_app
from pr_checks.app import lambda_handler, publish_statuses, verify_signature
from pr_checks.config import PrChecksSettings
from pr_checks.events import PullRequestEvent
from shared.schema import CheckResult

SECRET = b"topsecret"


@pytest.fixture(autouse=True)
def _cached_secret(monkeypatch) -> None:
    monkeypatch.setattr(webhook_app, "_cached_webhook_secret", SECRET)
    monkeypatch.delenv("GITHUB_ENV", raising=False)


def _settings(**overrides) -> PrChecksSettings:
    values = {"token": "tok", "webhook_secret_arn": "arn:secret"}
    values.update(overrides)
    return PrChecksSettings(**values)


def _signed_event(github_event: str, payload: dict, secret: bytes = SECRET) -> dict:
    body = json.dumps(payload)
    signature = "sha256=" + hmac.new(secret, body.encode("utf-8"), hashlib.sha256).hexdigest()
    return {
        "headers": {
            "x-github-event": github_event,
            "X-GitHub-Delivery": "delivery-1",
            "X-Hub-Signature-256": signature,
        },
        "body": body,
    }


def _pr_payload(action: str = "opened") -> dict:
    return {
        "action": action,
        "pull_request": {"number": 8, "title": "fix: typo", "head": {"sha": "headsha"}},
        "repository": {"name": "r", "owner": {"login": "o"}},
        "installation": {"id": 77},
    }


def _make_gh() -> MagicMock:
    gh = MagicMock()
    gh.graphql.return_value = {
        "repository": {
            "pullRequest": {
                "closingIssuesReferences": {"nodes": [{"number": 2, "repository": {"nameWithOwner": "o/r"}}]}
            }
        }
    }
    gh.get_issue.return_value = {"state": "closed"}
    gh.list_pull_request_filenames.return_value = ["api-reference/v1/openapi_spec_v1.json"]
    gh.remove_label.return_value = True
    return gh


def test_verify_signature_success() -> None:
    body = b'{"hello":"world"}'
    signature = "sha256=" + hmac.new(SECRET, body, hashlib.sha256).hexdigest()
    assert verify_signature(body, signature, SECRET) is True


def test_verify_signature_failure() -> None:
    assert verify_signature(b"{}", "sha256=deadbeef", SECRET) is False
    assert verify_signature(b"{}", "", SECRET) is False


def test_ignores_other_events() -> None:
    out = lambda_handler({"headers": {"X-GitHub-Event": "push"}}, None, settings=_settings())
    assert out["statusCode"] == 202


def test_missing_delivery_id() -> None:
    event = _signed_event("pull_request", _pr_payload())
    del event["headers"]["X-GitHub-Delivery"]
    assert lambda_handler(event, None, settings=_settings())["statusCode"] == 400


def test_bad_signature_rejected() -> None:
    event = _signed_event("pull_request", _pr_payload(), secret=b"wrong")
    assert lambda_handler(event, None, settings=_settings())["statusCode"] == 401


def test_non_triggering_action_ignored() -> None:
    event = _signed_event("pull_request", _pr_payload(action="closed"))
    out = lambda_handler(event, None, settings=_settings())
    assert out["statusCode"] == 202
    assert json.loads(out["body"]) == {"ignored": "action_not_supported"}


def test_runs_checks_and_publishes_statuses() -> None:
    gh = _make_gh()
    with patch("pr_checks.app.GitHubClient", return_value=gh):
        out = lambda_handler(_signed_event("pull_request", _pr_payload()), None, settings=_settings())

    assert out["statusCode"] == 200
    body = json.loads(out["body"])
    assert {r["name"]: r["status"] for r in body["results"]} == {
        "title": "passed",
        "linked-issues": "failed",
        "labels": "passed",
    }
    gh.add_labels.assert_called_once_with("o", "r", 8, ["M-api-contract-changes"])

    statuses = {c.kwargs["context"]: c.kwargs["state"] for c in gh.create_commit_status.call_args_list}
    assert statuses == {
        "pr-checks/title": "success",
        "pr-checks/linked-issues": "failure",
        "pr-checks/labels": "success",
    }
    assert gh.create_commit_status.call_args_list[0].args == ("o", "r", "headsha")


def test_dry_run_publishes_nothing() -> None:
    gh = _make_gh()
    with patch("pr_checks.app.GitHubClient", return_value=gh):
        lambda_handler(_signed_event("pull_request", _pr_payload()), None, settings=_settings(dry_run=True))

    gh.create_commit_status.assert_not_called()
    gh.add_labels.assert_not_called()


def test_status_description_truncated() -> None:
    gh = MagicMock()
    event = PullRequestEvent(event_name="pull_request", owner="o", repo="r", pr_number=1, head_sha="s")
    publish_statuses(gh, event, [CheckResult.failure("title", "x" * 200)], "ci")

    description = gh.create_commit_status.call_args.kwargs["description"]
    assert len(description) == 140
    assert description.endswith("...")


def test_token_failure_still_returns_results(monkeypatch) -> None:
    monkeypatch.setattr("shared.retry.time.sleep", lambda _: None)
    settings = _settings(token=None, app_id="123", app_private_key="pem")

    with patch("pr_checks.config.GitHubAppAuth") as auth_cls:
        auth_cls.return_value.get_installation_token.side_effect = requests.HTTPError("401 Bad credentials")
        out = lambda_handler(_signed_event("pull_request", _pr_payload()), None, settings=settings)

    assert out["statusCode"] == 200
    statuses = {r["name"]: r["status"] for r in json.loads(out["body"])["results"]}
    assert statuses == {"title": "passed", "linked-issues": "failed", "labels": "failed"}


def test_missing_credentials_still_returns_results() -> None:
    out = lambda_handler(_signed_event("pull_request", _pr_payload()), None, settings=_settings(token=None))

    assert out["statusCode"] == 200
    statuses = {r["name"]: r["status"] for r in json.loads(out["body"])["results"]}
    assert statuses == {"title": "passed", "linked-issues": "failed", "labels": "failed"}


def test_status_publish_failure_is_logged_not_raised() -> None:
    gh = _make_gh()
    gh.create_commit_status.side_effect = requests.HTTPError("403 Resource not accessible")

    with patch("pr_checks.app.GitHubClient", return_value=gh):
        out = lambda_handler(_signed_event("pull_request", _pr_payload()), None, settings=_settings())

    assert out["statusCode"] == 200
    assert len(json.loads(out["body"])["results"]) == 3
