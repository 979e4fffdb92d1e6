#!/usr/bin/env python3
"""Print the X-Hub-Signature-256 header value for a webhook payload file."""

import hashlib
import hmac
import pathlib
import sys


def compute_signature(secret: bytes, body: bytes) -> str:
    return "sha256=" + hmac.new(secret, body, hashlib.sha256).hexdigest()


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print("Usage: generate_signature.py <webhook_secret> <payload_file>")
        return 1

    payload_file = pathlib.Path(args[1])
    print(compute_signature(args[0].encode("utf-8"), payload_file.read_bytes()))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
