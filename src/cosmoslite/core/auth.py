"""Token provider seam and scope helpers."""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from .errors import CosmosApiError, CosmosAuthenticationError, CosmosValidationError

logger = logging.getLogger("cosmoslite")

DEFAULT_SCOPE_SUFFIX = "/.default"


@dataclass(slots=True, frozen=True)
class AccessToken:
    token: str
    expires_on: float


class TokenProvider(Protocol):
    async def acquire_token(self, scopes: Sequence[str]) -> AccessToken: ...


class StaticTokenProvider:
    """Always hands out the same token. Useful for the emulator and tests."""

    def __init__(self, token: str, *, expires_on: float = float("inf")) -> None:
        if not token:
            raise CosmosValidationError("token must not be empty")
        self._token = AccessToken(token=token, expires_on=expires_on)

    async def acquire_token(self, scopes: Sequence[str]) -> AccessToken:
        return self._token


class CredentialTokenProvider:
    """Caching adapter over an azure-core style credential.

    The credential must expose ``get_token(*scopes)`` returning an object with
    ``token`` and ``expires_on`` attributes; both sync and async credentials
    are accepted. Tokens are cached per scope set and refreshed once they are
    within ``refresh_margin_seconds`` of expiry. Every acquisition is bounded
    by ``timeout_seconds``. With ``owns_credential`` the credential is closed
    together with the provider.
    """

    def __init__(
        self,
        credential: Any,
        *,
        refresh_margin_seconds: float = 300.0,
        timeout_seconds: float = 60.0,
        clock: Callable[[], float] | None = None,
        owns_credential: bool = False,
    ) -> None:
        self._credential = credential
        self._owns_credential = owns_credential
        self._closed = False
        self._refresh_margin_seconds = max(0.0, float(refresh_margin_seconds))
        self._timeout_seconds = timeout_seconds
        self._clock = clock or time.time
        self._cache: dict[tuple[str, ...], AccessToken] = {}
        self._lock = asyncio.Lock()

    async def acquire_token(self, scopes: Sequence[str]) -> AccessToken:
        key = tuple(scopes)
        if not key:
            raise CosmosValidationError("no scopes provided")

        cached = self._cache.get(key)
        if cached is not None and self._is_fresh(cached):
            return cached

        async with self._lock:
            cached = self._cache.get(key)
            if cached is not None and self._is_fresh(cached):
                return cached
            logger.debug("token acquire start scopes=%s", ",".join(key))
            try:
                token = await asyncio.wait_for(self._fetch(key), self._timeout_seconds)
            except asyncio.TimeoutError as exc:
                logger.error("token acquire timed out scopes=%s", ",".join(key))
                raise CosmosAuthenticationError(
                    "token acquisition timed out",
                    cause="timeout",
                ) from exc
            except CosmosApiError:
                raise
            except Exception as exc:
                logger.error(
                    "token acquire failed scopes=%s error=%s",
                    ",".join(key),
                    exc.__class__.__name__,
                )
                raise CosmosAuthenticationError(
                    "token acquisition failed",
                    cause="credential",
                ) from exc
            self._cache[key] = token
            return token

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cache.clear()
        if not self._owns_credential:
            return
        close = getattr(self._credential, "close", None)
        if close is None:
            return
        result = close()
        if inspect.isawaitable(result):
            await result
        logger.debug("credential closed")

    def _is_fresh(self, token: AccessToken) -> bool:
        return token.expires_on - self._refresh_margin_seconds > self._clock()

    async def _fetch(self, scopes: tuple[str, ...]) -> AccessToken:
        get_token = self._credential.get_token
        if inspect.iscoroutinefunction(get_token):
            result = await get_token(*scopes)
        else:
            result = await asyncio.to_thread(get_token, *scopes)
        return AccessToken(token=result.token, expires_on=float(result.expires_on))


def resource_to_scopes(resource: str) -> list[str]:
    if not resource:
        raise CosmosValidationError("no resource provided")
    if resource.endswith(DEFAULT_SCOPE_SUFFIX):
        return [resource]
    return [f"{resource.rstrip('/')}{DEFAULT_SCOPE_SUFFIX}"]


def scopes_to_resource(scopes: Sequence[str]) -> str:
    if not scopes:
        raise CosmosValidationError("no scopes provided")
    first = scopes[0]
    if first.endswith(DEFAULT_SCOPE_SUFFIX):
        return first[: -len(DEFAULT_SCOPE_SUFFIX)]
    return first


def default_scopes(endpoint: str) -> list[str]:
    return resource_to_scopes(endpoint)


__all__ = [
    "AccessToken",
    "TokenProvider",
    "StaticTokenProvider",
    "CredentialTokenProvider",
    "resource_to_scopes",
    "scopes_to_resource",
    "default_scopes",
]
