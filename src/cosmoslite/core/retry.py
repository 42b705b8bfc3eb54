"""Retry helpers."""

from __future__ import annotations

import random
from collections.abc import Iterable, Mapping

HTTP_TOO_MANY_REQUESTS = 429
HEADER_RETRY_AFTER_MS = "x-ms-retry-after-ms"
MAX_RETRY_AFTER_MS = 60_000


def is_throttled_status(status: int | None) -> bool:
    return status == HTTP_TOO_MANY_REQUESTS


def retry_after_ms(headers: Mapping[str, str], *, default_ms: int) -> int:
    """Server retry hint in milliseconds, ``default_ms`` when absent or garbled.

    Hints are clamped to ``MAX_RETRY_AFTER_MS``.
    """

    raw = headers.get(HEADER_RETRY_AFTER_MS)
    if raw is None:
        return default_ms
    try:
        value = int(float(raw.strip()))
    except (ValueError, OverflowError):
        return default_ms
    return min(max(0, value), MAX_RETRY_AFTER_MS)


def merge_retry_wait_ms(hints: Iterable[int]) -> int:
    """One wait covers the whole throttled subset: the longest hint wins."""

    return max(hints, default=0)


def next_backoff_seconds(
    *,
    attempt_index: int,
    max_backoff_seconds: float,
    rng: random.Random | None = None,
) -> float:
    """Exponential backoff with small jitter.

    attempt_index: 0-based retry index.
    """

    base = min(max_backoff_seconds, float(2**attempt_index))
    if base <= 0:
        return 0.0
    source = rng or random
    jitter = base * 0.1 * (source.random() * 2.0 - 1.0)
    return max(0.0, base + jitter)


def can_retry(
    *,
    attempt: int,
    max_attempts: int,
    started_at: float,
    now: float,
    total_budget_seconds: float,
) -> bool:
    if attempt >= max_attempts:
        return False
    return (now - started_at) <= total_budget_seconds


__all__ = [
    "HTTP_TOO_MANY_REQUESTS",
    "HEADER_RETRY_AFTER_MS",
    "MAX_RETRY_AFTER_MS",
    "is_throttled_status",
    "retry_after_ms",
    "merge_retry_wait_ms",
    "next_backoff_seconds",
    "can_retry",
]
