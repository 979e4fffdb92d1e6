from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from pr_checks.conventional_commit import DEFAULT_COMMIT_TYPES
from pr_checks.labeler import DEFAULT_LABEL_RULES
from shared.constants import DEFAULT_API_BASE, DEFAULT_MAX_LINKED_ISSUES, DEFAULT_STATUS_CONTEXT
from shared.github_app_auth import GitHubAppAuth
from shared.schema import LabelRule, parse_label_rules


def _as_bool(value: Any, *, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in {"1", "true", "t", "yes", "y", "on"}:
            return True
        if normalized in {"0", "false", "f", "no", "n", "off", ""}:
            return False
    return default


def _positive_int(raw: Optional[str], name: str, default: int) -> int:
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 1:
        raise ValueError(f"{name} must be >= 1")
    return value


@dataclass(frozen=True)
class PrChecksSettings:
    api_base: str = DEFAULT_API_BASE
    token: Optional[str] = None
    app_id: Optional[str] = None
    app_private_key: Optional[str] = None
    app_installation_id: Optional[str] = None
    app_ids_secret_arn: Optional[str] = None
    app_private_key_secret_arn: Optional[str] = None
    webhook_secret_arn: Optional[str] = None
    commit_types: tuple[str, ...] = DEFAULT_COMMIT_TYPES
    label_rules: tuple[LabelRule, ...] = field(default_factory=lambda: DEFAULT_LABEL_RULES)
    max_linked_issues: int = DEFAULT_MAX_LINKED_ISSUES
    status_context: str = DEFAULT_STATUS_CONTEXT
    dry_run: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "PrChecksSettings":
        env = os.environ if environ is None else environ

        extra_types = [t.strip() for t in env.get("PR_CHECKS_COMMIT_TYPES", "").split(",") if t.strip()]
        commit_types = tuple(dict.fromkeys([*DEFAULT_COMMIT_TYPES, *extra_types]))

        raw_rules = env.get("PR_CHECKS_LABEL_RULES", "").strip()
        label_rules = tuple(parse_label_rules(raw_rules)) if raw_rules else DEFAULT_LABEL_RULES

        return cls(
            api_base=env.get("GITHUB_API_URL") or env.get("GITHUB_API_BASE") or DEFAULT_API_BASE,
            token=env.get("GH_TOKEN") or env.get("GITHUB_TOKEN") or None,
            app_id=env.get("PR_CHECKS_APP_ID") or None,
            app_private_key=env.get("PR_CHECKS_APP_PRIVATE_KEY") or None,
            app_installation_id=env.get("PR_CHECKS_APP_INSTALLATION_ID") or None,
            app_ids_secret_arn=env.get("GITHUB_APP_IDS_SECRET_ARN") or None,
            app_private_key_secret_arn=env.get("GITHUB_APP_PRIVATE_KEY_SECRET_ARN") or None,
            webhook_secret_arn=env.get("WEBHOOK_SECRET_ARN") or None,
            commit_types=commit_types,
            label_rules=label_rules,
            max_linked_issues=_positive_int(
                env.get("PR_CHECKS_MAX_LINKED_ISSUES"), "PR_CHECKS_MAX_LINKED_ISSUES", DEFAULT_MAX_LINKED_ISSUES
            ),
            status_context=(env.get("PR_CHECKS_STATUS_CONTEXT") or DEFAULT_STATUS_CONTEXT).strip(),
            dry_run=_as_bool(env.get("DRY_RUN"), default=False),
        )

    @property
    def has_app_credentials(self) -> bool:
        return bool(
            (self.app_id or self.app_ids_secret_arn)
            and (self.app_private_key or self.app_private_key_secret_arn)
        )

    def github_app_auth(self) -> GitHubAppAuth:
        return GitHubAppAuth(
            app_id=self.app_id,
            private_key=self.app_private_key,
            installation_id=self.app_installation_id,
            app_ids_secret_arn=self.app_ids_secret_arn,
            private_key_secret_arn=self.app_private_key_secret_arn,
            api_base=self.api_base,
        )

    def token_provider(
        self,
        owner: Optional[str] = None,
        installation_id: Optional[int] = None,
    ) -> Callable[[], str]:
        """Return a callable yielding an API token, minted once and reused.

        A GitHub App takes precedence over a static token, as app tokens carry
        the permissions the label and status calls need.
        """
        if self.has_app_credentials:
            auth = self.github_app_auth()
            cache: dict[str, str] = {}

            def _app_token() -> str:
                if "token" not in cache:
                    cache["token"] = auth.get_installation_token(
                        installation_id_override=str(installation_id) if installation_id else None,
                        owner=owner,
                    )
                return cache["token"]

            return _app_token

        if self.token:
            token = self.token
            return lambda: token

        raise ValueError("No GitHub credentials configured: set GH_TOKEN or GitHub App credentials")
