"""``pr-checks`` command line entrypoint for CI runners.

    pr-checks verify "fix: typo"
    pr-checks run --job title --job labels
"""

from __future__ import annotations

import argparse
from dataclasses import replace
from typing import Optional, Sequence

from pr_checks import annotations
from pr_checks.config import PrChecksSettings
from pr_checks.conventional_commit import DEFAULT_COMMIT_TYPES, ConventionalCommitError, verify_commit_message
from pr_checks.events import UnsupportedEventError, is_triggering, load_actions_event
from pr_checks.runner import JOBS, needs_api, run_checks
from shared.github_client import GitHubClient
from shared.logging import get_logger
from shared.retry import RetryConfig
from shared.schema import CheckResult

logger = get_logger("pr_checks.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pr-checks", description="Pull request convention checks")
    sub = parser.add_subparsers(dest="command", required=True)

    verify = sub.add_parser("verify", help="Verify a message follows conventional commit standards")
    verify.add_argument("message", help="Commit message or PR title to verify")
    verify.add_argument(
        "--type",
        dest="types",
        action="append",
        default=[],
        help="Additional allowed commit type (repeatable)",
    )

    run = sub.add_parser("run", help="Run checks for the current GitHub Actions event")
    run.add_argument(
        "--job",
        dest="jobs",
        action="append",
        choices=list(JOBS),
        help="Check to run (repeatable, default: all)",
    )
    run.add_argument("--event-name", default=None, help="Overrides GITHUB_EVENT_NAME")
    run.add_argument("--event-path", default=None, help="Overrides GITHUB_EVENT_PATH")
    run.add_argument("--dry-run", action="store_true", help="Report label changes without applying them")
    return parser


def _report(result: CheckResult) -> None:
    if result.status == "failed":
        annotations.error(result.summary, title=result.name)
    else:
        print(result.summary)
    for line in result.details:
        print(f"  {line}")


def _verify(args: argparse.Namespace) -> int:
    allowed = tuple(dict.fromkeys([*DEFAULT_COMMIT_TYPES, *args.types]))
    try:
        commit = verify_commit_message(args.message, allowed_types=allowed)
    except ConventionalCommitError as exc:
        annotations.error(str(exc), title="conventional commit")
        return 1
    print(f"Valid conventional commit ({commit.type}{' with breaking change' if commit.breaking else ''})")
    return 0


def _run(args: argparse.Namespace) -> int:
    settings = PrChecksSettings.from_env()
    if args.dry_run:
        settings = replace(settings, dry_run=True)

    try:
        event = load_actions_event(event_name=args.event_name, event_path=args.event_path)
    except UnsupportedEventError as exc:
        annotations.notice(f"Nothing to check: {exc}")
        return 0

    if not is_triggering(event):
        annotations.notice(f"Nothing to check for {event.event_name} action {event.action!r}")
        return 0

    jobs = args.jobs or list(JOBS)
    gh: Optional[GitHubClient] = None
    if needs_api(event, jobs):
        gh = GitHubClient(
            token_provider=settings.token_provider(owner=event.owner, installation_id=event.installation_id),
            api_base=settings.api_base,
            retry_config=RetryConfig.from_env(),
        )

    results = run_checks(event, gh, settings, jobs=jobs)
    for result in results:
        _report(result)

    failed = [result.name for result in results if not result.passed]
    annotations.set_output("failed_checks", ",".join(failed))
    return 1 if failed else 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        if args.command == "verify":
            return _verify(args)
        return _run(args)
    except ValueError as exc:
        logger.error("configuration_error", extra={"extra": {"error": str(exc)}})
        annotations.error(str(exc))
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
