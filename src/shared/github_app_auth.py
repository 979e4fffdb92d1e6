import json
import time
from typing import Any, Optional, Tuple

import boto3
import jwt
import requests
from botocore.client import BaseClient

from shared.constants import DEFAULT_API_BASE, GITHUB_API_VERSION
from shared.retry import call_with_retry


def _is_retryable_status(response: requests.Response) -> bool:
    return response.status_code in {403, 429} or response.status_code >= 500


class GitHubAppAuth:
    """Mint GitHub App installation tokens.

    Credentials come either directly (``app_id`` / ``private_key``, as handed
    to a CI job through its secrets) or from AWS Secrets Manager
    (``app_ids_secret_arn`` holding ``{"app_id": ..., "installation_id": ...}``
    and ``private_key_secret_arn`` holding the PEM).
    """

    def __init__(
        self,
        app_id: Optional[str] = None,
        private_key: Optional[str] = None,
        installation_id: Optional[str] = None,
        app_ids_secret_arn: Optional[str] = None,
        private_key_secret_arn: Optional[str] = None,
        api_base: str = DEFAULT_API_BASE,
        secrets_client: Optional[BaseClient] = None,
        http_session: Optional[requests.Session] = None,
    ) -> None:
        if not (app_id or app_ids_secret_arn):
            raise ValueError("GitHub App id or app ids secret ARN is required")
        if not (private_key or private_key_secret_arn):
            raise ValueError("GitHub App private key or private key secret ARN is required")

        self._app_ids_secret_arn = app_ids_secret_arn
        self._private_key_secret_arn = private_key_secret_arn
        self._api_base = api_base.rstrip("/")
        self._secrets = secrets_client
        self._session = http_session or requests.Session()
        self._cached_app_id: Optional[str] = str(app_id) if app_id else None
        self._cached_installation_id: Optional[str] = str(installation_id) if installation_id else None
        self._cached_private_key: Optional[str] = private_key
        self._owner_installations: dict[str, str] = {}

    def _secrets_client(self) -> BaseClient:
        if self._secrets is None:
            self._secrets = boto3.client("secretsmanager")
        return self._secrets

    def _read_secret_string(self, secret_arn: str) -> str:
        response = self._secrets_client().get_secret_value(SecretId=secret_arn)
        secret_string = response.get("SecretString")
        if not secret_string:
            raise ValueError(f"Secret {secret_arn} has no SecretString")
        return secret_string

    def _load_app_ids(self) -> Tuple[str, Optional[str]]:
        if self._cached_app_id and (self._cached_installation_id or not self._app_ids_secret_arn):
            return self._cached_app_id, self._cached_installation_id

        payload = json.loads(self._read_secret_string(self._app_ids_secret_arn))
        self._cached_app_id = self._cached_app_id or str(payload["app_id"])
        if payload.get("installation_id"):
            self._cached_installation_id = self._cached_installation_id or str(payload["installation_id"])
        return self._cached_app_id, self._cached_installation_id

    def _load_private_key(self) -> str:
        if self._cached_private_key:
            return self._cached_private_key

        self._cached_private_key = self._read_secret_string(self._private_key_secret_arn)
        return self._cached_private_key

    def create_app_jwt(self) -> str:
        app_id, _ = self._load_app_ids()
        now = int(time.time())
        payload = {
            "iat": now - 60,
            "exp": now + 540,
            "iss": app_id,
        }
        private_key = self._load_private_key()
        token = jwt.encode(payload, private_key, algorithm="RS256")
        return token if isinstance(token, str) else token.decode("utf-8")

    def _app_request(self, method: str, path: str, operation_name: str) -> requests.Response:
        jwt_token = self.create_app_jwt()
        url = f"{self._api_base}{path}"

        def _request() -> requests.Response:
            return self._session.request(
                method,
                url,
                headers={
                    "Authorization": f"Bearer {jwt_token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
                timeout=15,
            )

        response = call_with_retry(
            operation_name,
            _request,
            is_retryable_exception=lambda exc: isinstance(exc, requests.RequestException),
            is_retryable_result=_is_retryable_status,
        )
        response.raise_for_status()
        return response

    def find_installation_id(self, owner: str) -> str:
        """Look up the app installation for a user or organization account."""
        if owner in self._owner_installations:
            return self._owner_installations[owner]

        response = self._app_request("GET", f"/users/{owner}/installation", "github_owner_installation")
        data: dict[str, Any] = response.json()
        installation_id = data.get("id")
        if not installation_id:
            raise ValueError(f"GitHub App is not installed for {owner}")
        self._owner_installations[owner] = str(installation_id)
        return self._owner_installations[owner]

    def get_installation_token(
        self,
        installation_id_override: Optional[str] = None,
        owner: Optional[str] = None,
    ) -> str:
        _, default_installation_id = self._load_app_ids()
        installation_id = installation_id_override or default_installation_id
        if not installation_id:
            if not owner:
                raise ValueError("installation id or repository owner is required")
            installation_id = self.find_installation_id(owner)

        response = self._app_request(
            "POST",
            f"/app/installations/{installation_id}/access_tokens",
            "github_installation_token",
        )
        data = response.json()
        token = data.get("token")
        if not token:
            raise ValueError("GitHub installation token missing from response")
        return token
