from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest

from cosmoslite.core.auth import (
    CredentialTokenProvider,
    StaticTokenProvider,
    resource_to_scopes,
    scopes_to_resource,
)
from cosmoslite.core.errors import CosmosAuthenticationError, CosmosValidationError

SCOPES = ("https://acct.documents.azure.com/.default",)


class AsyncCredential:
    def __init__(self, *, expires_on: float = 10_000.0, delay: float = 0.0, error: Exception | None = None):
        self.expires_on = expires_on
        self.delay = delay
        self.error = error
        self.calls: list[tuple[str, ...]] = []

    async def get_token(self, *scopes):
        self.calls.append(scopes)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(token=f"token-{len(self.calls)}", expires_on=self.expires_on)


class SyncCredential:
    def __init__(self):
        self.calls = 0

    def get_token(self, *scopes):
        self.calls += 1
        return SimpleNamespace(token="sync-token", expires_on=10_000)


class ClosableCredential(AsyncCredential):
    def __init__(self):
        super().__init__()
        self.closed = 0

    async def close(self):
        self.closed += 1


@pytest.mark.asyncio
async def test_token_is_cached_while_fresh():
    credential = AsyncCredential(expires_on=10_000.0)
    provider = CredentialTokenProvider(credential, refresh_margin_seconds=300, clock=lambda: 1_000.0)

    first = await provider.acquire_token(SCOPES)
    second = await provider.acquire_token(SCOPES)

    assert first.token == second.token == "token-1"
    assert credential.calls == [SCOPES]


@pytest.mark.asyncio
async def test_token_refreshed_inside_margin():
    now = [1_000.0]
    credential = AsyncCredential(expires_on=1_200.0)
    provider = CredentialTokenProvider(credential, refresh_margin_seconds=300, clock=lambda: now[0])

    await provider.acquire_token(SCOPES)
    await provider.acquire_token(SCOPES)

    assert len(credential.calls) == 2


@pytest.mark.asyncio
async def test_concurrent_acquisitions_share_one_fetch():
    credential = AsyncCredential(delay=0.01)
    provider = CredentialTokenProvider(credential, clock=lambda: 0.0)

    tokens = await asyncio.gather(*(provider.acquire_token(SCOPES) for _ in range(5)))

    assert {token.token for token in tokens} == {"token-1"}
    assert len(credential.calls) == 1


@pytest.mark.asyncio
async def test_sync_credential_is_supported():
    credential = SyncCredential()
    provider = CredentialTokenProvider(credential, clock=lambda: 0.0)
    token = await provider.acquire_token(SCOPES)
    assert token.token == "sync-token"
    assert credential.calls == 1


@pytest.mark.asyncio
async def test_acquisition_timeout_is_authentication_error():
    provider = CredentialTokenProvider(AsyncCredential(delay=1.0), timeout_seconds=0.01, clock=lambda: 0.0)
    with pytest.raises(CosmosAuthenticationError) as exc_info:
        await provider.acquire_token(SCOPES)
    assert exc_info.value.cause == "timeout"


@pytest.mark.asyncio
async def test_credential_failure_is_authentication_error():
    provider = CredentialTokenProvider(AsyncCredential(error=RuntimeError("denied")), clock=lambda: 0.0)
    with pytest.raises(CosmosAuthenticationError) as exc_info:
        await provider.acquire_token(SCOPES)
    assert exc_info.value.cause == "credential"
    assert isinstance(exc_info.value.__cause__, RuntimeError)


@pytest.mark.asyncio
async def test_empty_scopes_rejected():
    provider = CredentialTokenProvider(AsyncCredential())
    with pytest.raises(CosmosValidationError):
        await provider.acquire_token(())


@pytest.mark.asyncio
async def test_static_provider_returns_fixed_token():
    provider = StaticTokenProvider("abc")
    token = await provider.acquire_token(SCOPES)
    assert token.token == "abc"
    with pytest.raises(CosmosValidationError):
        StaticTokenProvider("")


@pytest.mark.asyncio
async def test_close_releases_owned_credential():
    credential = ClosableCredential()
    provider = CredentialTokenProvider(credential, owns_credential=True)

    await provider.close()
    await provider.close()

    assert credential.closed == 1


@pytest.mark.asyncio
async def test_close_leaves_borrowed_credential_open():
    credential = ClosableCredential()
    provider = CredentialTokenProvider(credential)

    await provider.close()

    assert credential.closed == 0


def test_resource_scope_helpers():
    assert resource_to_scopes("https://acct.documents.azure.com/") == ["https://acct.documents.azure.com/.default"]
    assert resource_to_scopes("https://x/.default") == ["https://x/.default"]
    assert scopes_to_resource(["https://x/.default"]) == "https://x"
    assert scopes_to_resource(["https://x/custom"]) == "https://x/custom"
    with pytest.raises(CosmosValidationError):
        resource_to_scopes("")
    with pytest.raises(CosmosValidationError):
        scopes_to_resource([])
