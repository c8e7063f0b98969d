# Copyright (c) Syntropy Systems
"""Name-based lookup of capability providers.

Each capability kind has one process-wide ``ProviderRegistry``. Built-in
adapters are registered when this module is imported; tests and plugins may
register more before any loop starts. Registries are only read once loops
are running.
"""
from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Generic, TypeVar

from mutantgen.adapters.llm import create_azure_generator, create_openai_generator
from mutantgen.adapters.mutation import create_command_analyzer, create_stryker_analyzer
from mutantgen.adapters.storage import create_filesystem_storage, create_memory_storage
from mutantgen.capabilities import Capabilities, MutationAnalyzer, Storage, TestGenerator
from mutantgen.errors import UnknownProviderError

if TYPE_CHECKING:
    from mutantgen.config import MutantGenConfig

T = TypeVar("T")

Factory = Callable[["MutantGenConfig", logging.Logger], T]


class ProviderRegistry(Generic[T]):
    """Factories for one capability kind, keyed by lower-cased name."""

    kind: str
    _factories: dict[str, Factory[T]]
    _lock: threading.Lock

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self._factories = {}
        self._lock = threading.Lock()

    def register(self, name: str, factory: Factory[T]) -> None:
        """Register a factory. A later registration under the same name wins."""
        with self._lock:
            self._factories[name.lower()] = factory

    def create(
        self,
        name: str,
        config: MutantGenConfig,
        logger: logging.Logger | None = None,
    ) -> T:
        """Build a provider instance.

        Raises UnknownProviderError when nothing is registered under name.
        """
        with self._lock:
            factory = self._factories.get(name.lower())
            registered = list(self._factories)
        if factory is None:
            raise UnknownProviderError(self.kind, name, registered)
        provider_logger = logger or logging.getLogger(
            f"mutantgen.{self.kind}.{name.lower()}"
        )
        return factory(config, provider_logger)

    def is_supported(self, name: str) -> bool:
        """Case-insensitive membership check."""
        with self._lock:
            return name.lower() in self._factories

    def names(self) -> list[str]:
        """Registered names in sorted order."""
        with self._lock:
            return sorted(self._factories)


generators: ProviderRegistry[TestGenerator] = ProviderRegistry("generator")
analyzers: ProviderRegistry[MutationAnalyzer] = ProviderRegistry("analyzer")
storages: ProviderRegistry[Storage] = ProviderRegistry("storage")

generators.register("openai", create_openai_generator)
generators.register("azure", create_azure_generator)
analyzers.register("stryker", create_stryker_analyzer)
analyzers.register("command", create_command_analyzer)
storages.register("filesystem", create_filesystem_storage)
storages.register("memory", create_memory_storage)


def build_capabilities(config: MutantGenConfig) -> Capabilities:
    """Create a fresh set of capability instances for one loop."""
    return Capabilities(
        generator=generators.create(config.generator, config),
        analyzer=analyzers.create(config.analyzer, config),
        storage=storages.create(config.storage, config),
    )


def check_providers(config: MutantGenConfig) -> None:
    """Raise UnknownProviderError if any configured provider is missing."""
    for registry, name in (
        (generators, config.generator),
        (analyzers, config.analyzer),
        (storages, config.storage),
    ):
        if not registry.is_supported(name):
            raise UnknownProviderError(registry.kind, name, registry.names())
