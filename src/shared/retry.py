import logging
import os
import random
import time
from dataclasses import dataclass
from typing import Callable, Optional, TypeVar


T = TypeVar("T")

_logger = logging.getLogger("shared.retry")


@dataclass
class RetryConfig:
    max_attempts: int = 5
    base_delay_seconds: float = 0.25
    max_delay_seconds: float = 10.0
    jitter_ratio: float = 0.30

    @classmethod
    def from_env(cls) -> "RetryConfig":
        raw = os.getenv("PR_CHECKS_MAX_RETRIES", "").strip()
        if not raw:
            return cls()
        try:
            attempts = int(raw)
        except ValueError as exc:
            raise ValueError("PR_CHECKS_MAX_RETRIES must be an integer") from exc
        if attempts < 1:
            raise ValueError("PR_CHECKS_MAX_RETRIES must be >= 1")
        return cls(max_attempts=attempts)


def _compute_sleep_seconds(attempt: int, config: RetryConfig) -> float:
    exponential = min(config.base_delay_seconds * (2 ** (attempt - 1)), config.max_delay_seconds)
    jitter_multiplier = 1 + random.uniform(0, config.jitter_ratio)
    return exponential * jitter_multiplier


def call_with_retry(
    operation_name: str,
    fn: Callable[[], T],
    is_retryable_exception: Callable[[Exception], bool],
    is_retryable_result: Optional[Callable[[T], bool]] = None,
    config: Optional[RetryConfig] = None,
    retry_after: Optional[Callable[[T], Optional[float]]] = None,
) -> T:
    """Run ``fn`` until it succeeds or the attempt budget is spent.

    A retryable result on the final attempt is returned as-is so the caller
    can inspect it (for example via ``raise_for_status``). ``retry_after`` may
    return a server-requested delay which replaces the computed backoff,
    capped at ``max_delay_seconds``.
    """
    cfg = config or RetryConfig()
    last_exception: Optional[Exception] = None

    for attempt in range(1, cfg.max_attempts + 1):
        try:
            result = fn()
            if is_retryable_result and is_retryable_result(result):
                if attempt == cfg.max_attempts:
                    return result
                delay = _compute_sleep_seconds(attempt, cfg)
                requested = retry_after(result) if retry_after else None
                if requested is not None:
                    delay = min(max(requested, 0.0), cfg.max_delay_seconds)
                _logger.warning(
                    "retrying_operation",
                    extra={"extra": {"operation": operation_name, "attempt": attempt, "delay": round(delay, 3)}},
                )
                time.sleep(delay)
                continue
            return result
        except Exception as exc:  # noqa: BLE001
            last_exception = exc
            if not is_retryable_exception(exc) or attempt == cfg.max_attempts:
                raise
            delay = _compute_sleep_seconds(attempt, cfg)
            _logger.warning(
                "retrying_operation_after_error",
                extra={"extra": {"operation": operation_name, "attempt": attempt, "error": str(exc)}},
            )
            time.sleep(delay)

    if last_exception:
        raise last_exception

    raise RuntimeError(f"Retry loop exhausted unexpectedly for {operation_name}")
