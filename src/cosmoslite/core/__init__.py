"""Core transport, request and execution machinery."""

__all__: list[str] = []
