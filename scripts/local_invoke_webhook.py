#!/usr/bin/env python3
"""Invoke the webhook Lambda locally with a signed sample delivery.

Requires GH_TOKEN (or GitHub App credentials) with access to the repository
named in the payload. DRY_RUN=true is forced so no labels or statuses change.
"""

import base64
import json
import os
import pathlib
import subprocess
import sys
from dataclasses import replace

sys.path.append("src")
import pr_checks.app as webhook_app  # noqa: E402
from pr_checks.config import PrChecksSettings  # noqa: E402


def main() -> int:
    payload_path = pathlib.Path(sys.argv[1] if len(sys.argv) > 1 else "scripts/sample_pull_request_opened.json")
    payload_bytes = payload_path.read_bytes()

    webhook_secret = os.getenv("WEBHOOK_SECRET", "local-dev-secret")
    signature = subprocess.check_output(
        [sys.executable, "scripts/generate_signature.py", webhook_secret, str(payload_path)],
        text=True,
    ).strip()

    # Skip Secrets Manager for local runs
    webhook_app._cached_webhook_secret = webhook_secret.encode("utf-8")
    settings = replace(PrChecksSettings.from_env(), webhook_secret_arn="local", dry_run=True)

    event = {
        "headers": {
            "X-GitHub-Event": "pull_request",
            "X-GitHub-Delivery": "local-delivery-123",
            "X-Hub-Signature-256": signature,
        },
        "isBase64Encoded": True,
        "body": base64.b64encode(payload_bytes).decode("utf-8"),
    }

    out = webhook_app.lambda_handler(event, None, settings=settings)
    print(json.dumps(out, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
