"""Async pagination driven by continuation tokens."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable

from .errors import CosmosProtocolError
from .response import ResponseRecord


async def aiterate_continuation(
    fetch_page: Callable[[str | None], Awaitable[ResponseRecord]],
    *,
    continuation: str | None = None,
    max_pages: int = 10_000,
) -> AsyncIterator[ResponseRecord]:
    """Yield pages until a record comes back without a continuation."""

    current = continuation
    seen: set[str] = set()

    for _ in range(max_pages):
        record = await fetch_page(current)
        yield record

        next_continuation = record.continuation
        if next_continuation is None:
            return
        if next_continuation in seen:
            raise CosmosProtocolError("continuation loop detected")
        seen.add(next_continuation)
        current = next_continuation

    raise CosmosProtocolError("Exceeded pagination guardrail (max_pages)")


__all__ = [
    "aiterate_continuation",
]
