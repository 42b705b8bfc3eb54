"""Shared helpers for client bootstrap."""

from __future__ import annotations

from .config import CosmosClientConfig
from .core.errors import CosmosValidationError


def validate_client_config(config: CosmosClientConfig) -> None:
    try:
        config.validate()
    except ValueError as exc:
        raise CosmosValidationError(str(exc)) from exc


def resolve_throw_on_error(default: bool, override: bool | None) -> bool:
    if override is None:
        return default
    return override


__all__ = [
    "validate_client_config",
    "resolve_throw_on_error",
]
