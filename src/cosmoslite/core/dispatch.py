"""Dispatch of materialized requests and pairing with their descriptors."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from .requests import RequestDescriptor
from .wire import materialize

logger = logging.getLogger("cosmoslite")


class SendingTransport(Protocol):
    async def send(self, request: httpx.Request) -> httpx.Response: ...


@dataclass(slots=True, eq=False)
class OutstandingOperation:
    descriptor: RequestDescriptor
    request: httpx.Request | None
    task: "asyncio.Task[httpx.Response]"
    released: bool = False

    def release(self) -> bool:
        """Drop the wire request. Returns False if it was already released."""

        if self.released:
            return False
        self.released = True
        self.request = None
        return True


def dispatch(descriptor: RequestDescriptor, transport: SendingTransport) -> OutstandingOperation:
    """Materialize and send ``descriptor`` without waiting for the response."""

    request = materialize(descriptor)
    task = asyncio.ensure_future(transport.send(request))
    logger.debug(
        "dispatched kind=%s method=%s collection=%s",
        descriptor.kind.value,
        descriptor.method,
        descriptor.collection,
    )
    return OutstandingOperation(descriptor=descriptor, request=request, task=task)


__all__ = [
    "SendingTransport",
    "OutstandingOperation",
    "dispatch",
]
