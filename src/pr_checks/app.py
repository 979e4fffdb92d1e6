"""Webhook Lambda running the convention checks.

API Gateway forwards ``pull_request`` and ``merge_group`` deliveries here.
Each check result is published as a commit status on the head SHA so branch
protection can require it.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
from typing import Any, Optional

import boto3
from botocore.client import BaseClient

from pr_checks.config import PrChecksSettings
from pr_checks.events import PullRequestEvent, is_triggering, parse_event
from pr_checks.runner import run_checks
from shared.constants import MAX_STATUS_DESCRIPTION_LENGTH, MERGE_GROUP_EVENT, PULL_REQUEST_EVENT
from shared.github_client import GitHubClient
from shared.logging import get_logger
from shared.retry import RetryConfig
from shared.schema import CheckResult

logger = get_logger("pr_checks.app")

_HANDLED_EVENTS = {PULL_REQUEST_EVENT, MERGE_GROUP_EVENT}

_cached_webhook_secret: bytes | None = None


def _get_header(headers: dict[str, str], key: str) -> str | None:
    target = key.lower()
    for k, v in (headers or {}).items():
        if k.lower() == target:
            return v
    return None


def _load_webhook_secret(secret_arn: str, secrets_client: BaseClient | None = None) -> bytes:
    global _cached_webhook_secret
    if _cached_webhook_secret is not None:
        return _cached_webhook_secret

    client = secrets_client or boto3.client("secretsmanager")
    response = client.get_secret_value(SecretId=secret_arn)
    secret = response.get("SecretString")
    if not secret:
        raise ValueError("Webhook secret must exist in SecretString")
    _cached_webhook_secret = secret.encode("utf-8")
    return _cached_webhook_secret


def verify_signature(raw_body: bytes, signature_header: str, secret: bytes) -> bool:
    if not signature_header or not signature_header.startswith("sha256="):
        return False

    expected = "sha256=" + hmac.new(secret, raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header)


def _extract_raw_body(event: dict[str, Any]) -> bytes:
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        return base64.b64decode(body)
    return body.encode("utf-8")


def _response(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {"statusCode": status_code, "body": json.dumps(body)}


def _status_description(result: CheckResult) -> str:
    text = result.summary
    if len(text) > MAX_STATUS_DESCRIPTION_LENGTH:
        text = text[: MAX_STATUS_DESCRIPTION_LENGTH - 3] + "..."
    return text


def publish_statuses(
    gh: GitHubClient,
    pr_event: PullRequestEvent,
    results: list[CheckResult],
    context_prefix: str,
) -> None:
    if not pr_event.head_sha:
        logger.warning("head_sha_missing", extra={"repo": pr_event.full_name, "pr_number": pr_event.pr_number})
        return

    for result in results:
        gh.create_commit_status(
            pr_event.owner,
            pr_event.repo,
            pr_event.head_sha,
            state="failure" if result.status == "failed" else "success",
            context=f"{context_prefix}/{result.name}",
            description=_status_description(result),
        )


def lambda_handler(event: dict[str, Any], _context: Any, settings: Optional[PrChecksSettings] = None) -> dict[str, Any]:
    cfg = settings or PrChecksSettings.from_env()
    headers = event.get("headers") or {}
    github_event = _get_header(headers, "X-GitHub-Event")
    delivery_id = _get_header(headers, "X-GitHub-Delivery")
    signature = _get_header(headers, "X-Hub-Signature-256")

    if github_event not in _HANDLED_EVENTS:
        return _response(202, {"ignored": "unsupported_event"})

    if not delivery_id:
        return _response(400, {"error": "missing_delivery_id"})

    if not cfg.webhook_secret_arn:
        raise ValueError("WEBHOOK_SECRET_ARN must be configured")

    raw_body = _extract_raw_body(event)
    secret = _load_webhook_secret(cfg.webhook_secret_arn)

    if not verify_signature(raw_body, signature or "", secret):
        logger.warning("signature_verification_failed", extra={"delivery_id": delivery_id})
        return _response(401, {"error": "invalid_signature"})

    payload = json.loads(raw_body.decode("utf-8"))
    try:
        pr_event = parse_event(github_event, payload)
    except ValueError as exc:
        logger.warning("event_parse_failed", extra={"delivery_id": delivery_id, "extra": {"error": str(exc)}})
        return _response(400, {"error": "missing_required_fields"})

    if not is_triggering(pr_event):
        return _response(202, {"ignored": "action_not_supported"})

    log = logger.bind(
        delivery_id=delivery_id,
        event_name=pr_event.event_name,
        repo=pr_event.full_name,
        pr_number=pr_event.pr_number,
    )

    gh: Optional[GitHubClient] = None
    try:
        gh = GitHubClient(
            token_provider=cfg.token_provider(owner=pr_event.owner, installation_id=pr_event.installation_id),
            api_base=cfg.api_base,
            retry_config=RetryConfig.from_env(),
        )
    except Exception:  # noqa: BLE001
        log.exception("github_client_setup_failed")

    # Without a client the API jobs crash and are reported as failed
    results = run_checks(pr_event, gh, cfg)

    if gh is not None and not cfg.dry_run:
        try:
            publish_statuses(gh, pr_event, results, cfg.status_context)
        except Exception:  # noqa: BLE001
            log.exception("status_publish_failed")

    log.info("checks_completed", extra={"extra": {r.name: r.status for r in results}})
    return _response(200, {"delivery_id": delivery_id, "results": [r.model_dump() for r in results]})
