# Copyright (c) Syntropy Systems
"""Error taxonomy for mutantgen.

Setup errors (``UnknownProviderError``, ``ConfigurationError``) are raised
before a loop starts. Round errors (``ProviderError``, ``AnalysisError``,
``StorageError``) are caught by the round executor and recorded on the
failed round instead of propagating.
"""

from __future__ import annotations

from collections.abc import Iterable


class MutantGenError(Exception):
    """Base class for all mutantgen errors."""


class ProviderError(MutantGenError):
    """Test-generation capability was unreachable or misbehaved."""

    NETWORK = "network"
    AUTH = "auth"
    RATE_LIMIT = "rate-limit"
    MALFORMED_RESPONSE = "malformed-response"

    cause: str

    def __init__(self, message: str, cause: str = NETWORK) -> None:
        super().__init__(message)
        self.cause = cause


class AnalysisError(MutantGenError):
    """Mutation engine failed or timed out."""

    TIMEOUT = "timeout"
    INSTRUMENTATION = "instrumentation"
    SYNTAX = "syntax"

    cause: str

    def __init__(self, message: str, cause: str = INSTRUMENTATION) -> None:
        super().__init__(message)
        self.cause = cause


class StorageError(MutantGenError):
    """Storage I/O failure."""

    path: str | None

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigurationError(MutantGenError):
    """Invalid target score, iteration budget or provider selection."""


class UnknownProviderError(ConfigurationError):
    """Registry has no provider under the requested name."""

    name: str
    registered: list[str]

    def __init__(self, kind: str, name: str, registered: Iterable[str]) -> None:
        self.name = name
        self.registered = sorted(registered)
        available = ", ".join(self.registered) or "none"
        super().__init__(
            f"Unknown {kind} provider '{name}'. Registered providers: {available}"
        )
