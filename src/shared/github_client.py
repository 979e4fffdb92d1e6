from __future__ import annotations

from typing import Any, Callable, Optional
from urllib.parse import quote

import requests

from shared.constants import DEFAULT_API_BASE, GITHUB_API_VERSION
from shared.retry import RetryConfig, call_with_retry


class GitHubGraphQLError(RuntimeError):
    """Raised when a GraphQL response carries an ``errors`` array."""

    def __init__(self, errors: list[dict]) -> None:
        self.errors = errors
        messages = "; ".join(str(err.get("message") or err) for err in errors)
        super().__init__(f"GitHub GraphQL query failed: {messages}")


def _retry_after_seconds(response: requests.Response) -> Optional[float]:
    value = response.headers.get("Retry-After") if response.headers else None
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class GitHubClient:
    def __init__(
        self,
        token_provider: Callable[[], str],
        api_base: str = DEFAULT_API_BASE,
        session: Optional[requests.Session] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> None:
        self._token_provider = token_provider
        self._api_base = api_base.rstrip("/")
        self._session = session or requests.Session()
        self._retry_config = retry_config

    def _send(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self._api_base}{path}"
        base_headers = kwargs.pop("headers", {})

        def _do_request() -> requests.Response:
            headers = dict(base_headers)
            headers.update(
                {
                    "Authorization": f"token {self._token_provider()}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                }
            )
            return self._session.request(method, url, headers=headers, timeout=20, **kwargs)

        return call_with_retry(
            operation_name=f"github_{method}_{path}",
            fn=_do_request,
            is_retryable_exception=lambda exc: isinstance(exc, requests.RequestException),
            is_retryable_result=lambda r: r.status_code in {403, 429} or r.status_code >= 500,
            config=self._retry_config,
            retry_after=_retry_after_seconds,
        )

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        response = self._send(method, path, **kwargs)
        response.raise_for_status()
        return response

    def graphql(self, query: str, variables: Optional[dict[str, Any]] = None) -> dict:
        """Run a GraphQL query and return its ``data`` object."""
        response = self._request(
            "POST",
            "/graphql",
            json={"query": query, "variables": variables or {}},
        )
        body = response.json()
        if body.get("errors"):
            raise GitHubGraphQLError(body["errors"])
        return body.get("data") or {}

    def get_pull_request_files(self, owner: str, repo: str, pull_number: int) -> list[dict]:
        page = 1
        files: list[dict] = []
        while True:
            response = self._request(
                "GET",
                f"/repos/{owner}/{repo}/pulls/{pull_number}/files",
                params={"per_page": 100, "page": page},
            )
            page_data = response.json()
            if not page_data:
                break
            files.extend(page_data)
            if len(page_data) < 100:
                break
            page += 1
        return files

    def list_pull_request_filenames(self, owner: str, repo: str, pull_number: int) -> list[str]:
        return [
            str(item.get("filename"))
            for item in self.get_pull_request_files(owner, repo, pull_number)
            if item.get("filename")
        ]

    def get_issue(self, owner: str, repo: str, issue_number: int) -> dict:
        response = self._request("GET", f"/repos/{owner}/{repo}/issues/{issue_number}")
        return response.json()

    # -- labels ----------------------------------------------------------------

    def add_labels(self, owner: str, repo: str, issue_number: int, labels: list[str]) -> list[dict]:
        """Attach labels to an issue or pull request. Existing labels are kept."""
        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/issues/{issue_number}/labels",
            json={"labels": labels},
        )
        return response.json()

    def remove_label(self, owner: str, repo: str, issue_number: int, label: str) -> bool:
        """Detach a label. Returns False when the label was not attached."""
        response = self._send(
            "DELETE",
            f"/repos/{owner}/{repo}/issues/{issue_number}/labels/{quote(label, safe='')}",
        )
        if response.status_code == 404:
            return False
        response.raise_for_status()
        return True

    # -- statuses & installations ---------------------------------------------

    def create_commit_status(
        self,
        owner: str,
        repo: str,
        sha: str,
        state: str,
        context: str,
        description: str = "",
        target_url: Optional[str] = None,
    ) -> dict:
        payload: dict = {
            "state": state,
            "context": context,
            "description": description,
        }
        if target_url:
            payload["target_url"] = target_url

        response = self._request(
            "POST",
            f"/repos/{owner}/{repo}/statuses/{sha}",
            json=payload,
        )
        return response.json()
