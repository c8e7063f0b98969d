"""Tests for the provider registries."""

import pytest

from mutantgen.adapters import (
    CommandAnalyzer,
    FileSystemStorage,
    MemoryStorage,
    OpenAIGenerator,
    StrykerAnalyzer,
)
from mutantgen.config import MutantGenConfig
from mutantgen.errors import ConfigurationError, UnknownProviderError
from mutantgen.registry import (
    ProviderRegistry,
    analyzers,
    build_capabilities,
    check_providers,
    generators,
    storages,
)


class TestProviderRegistry:
    """Tests for a single registry."""

    def test_register_and_create(self):
        """Test that a registered factory is used by create."""
        registry = ProviderRegistry("widget")
        registry.register("Basic", lambda config, logger: ("basic", config.target_score))

        created = registry.create("basic", MutantGenConfig(target_score=70))

        assert created == ("basic", 70.0)

    def test_names_are_case_insensitive(self):
        """Test that lookups ignore case."""
        registry = ProviderRegistry("widget")
        registry.register("OpenAI", lambda config, logger: "x")

        assert registry.is_supported("openai")
        assert registry.is_supported("OPENAI")
        assert registry.names() == ["openai"]

    def test_last_registration_wins(self):
        """Test that re-registering a name replaces the factory."""
        registry = ProviderRegistry("widget")
        registry.register("thing", lambda config, logger: "first")
        registry.register("THING", lambda config, logger: "second")

        assert registry.create("thing", MutantGenConfig()) == "second"
        assert registry.names() == ["thing"]

    def test_unknown_name_lists_registered(self):
        """Test that an unknown name reports what is available."""
        registry = ProviderRegistry("widget")
        registry.register("b", lambda config, logger: "b")
        registry.register("a", lambda config, logger: "a")

        with pytest.raises(UnknownProviderError) as exc_info:
            registry.create("c", MutantGenConfig())

        assert exc_info.value.registered == ["a", "b"]
        assert "a, b" in str(exc_info.value)
        assert isinstance(exc_info.value, ConfigurationError)

    def test_names_sorted(self):
        """Test that names come back sorted."""
        registry = ProviderRegistry("widget")
        for name in ("zeta", "alpha", "mid"):
            registry.register(name, lambda config, logger: name)

        assert registry.names() == ["alpha", "mid", "zeta"]


class TestBuiltins:
    """Tests for the built-in registrations."""

    def test_builtin_names(self):
        """Test that the built-in adapters are registered."""
        assert {"openai", "azure"} <= set(generators.names())
        assert {"stryker", "command"} <= set(analyzers.names())
        assert {"filesystem", "memory"} <= set(storages.names())

    def test_build_capabilities_defaults(self):
        """Test building the default capability bundle."""
        capabilities = build_capabilities(MutantGenConfig())

        assert isinstance(capabilities.generator, OpenAIGenerator)
        assert isinstance(capabilities.analyzer, StrykerAnalyzer)
        assert isinstance(capabilities.storage, FileSystemStorage)

    def test_build_capabilities_fresh_instances(self):
        """Test that every bundle gets its own instances."""
        config = MutantGenConfig(analyzer="command", storage="memory")

        first = build_capabilities(config)
        second = build_capabilities(config)

        assert isinstance(first.analyzer, CommandAnalyzer)
        assert isinstance(first.storage, MemoryStorage)
        assert first.generator is not second.generator
        assert first.analyzer is not second.analyzer
        assert first.storage is not second.storage

    def test_unknown_configured_provider(self):
        """Test that an unknown configured provider fails at setup."""
        config = MutantGenConfig(analyzer="pitest")

        with pytest.raises(UnknownProviderError, match="pitest"):
            check_providers(config)
        with pytest.raises(UnknownProviderError):
            build_capabilities(config)

    def test_azure_requires_deployment(self):
        """Test that the azure generator needs an endpoint and deployment."""
        config = MutantGenConfig(generator="azure")

        with pytest.raises(ConfigurationError, match="azure_endpoint"):
            build_capabilities(config)
