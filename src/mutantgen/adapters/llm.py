# Copyright (c) Syntropy Systems
"""Test generators backed by OpenAI-compatible chat completion APIs."""
from __future__ import annotations

import logging
import math
import os
import re
from typing import TYPE_CHECKING, cast

import httpx
from pydantic import ValidationError

from mutantgen.errors import ConfigurationError, ProviderError
from mutantgen.models import CostEstimate, detect_language
from mutantgen.models.base import MutantGenBaseModel

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from types import TracebackType

    from typing_extensions import Self

    from mutantgen.capabilities import GenerationContext
    from mutantgen.config import LLMSettings, MutantGenConfig
    from mutantgen.models import MutantRecord

MAX_LISTED_MUTANTS = 10

_BASE_SYSTEM_PROMPT = (
    "You are an expert software testing engineer specializing in writing "
    "comprehensive unit tests."
)
_SYSTEM_PROMPTS = {
    "generate": (
        f"{_BASE_SYSTEM_PROMPT} Generate high-quality, thorough unit tests that "
        "achieve high code coverage and mutation score."
    ),
    "improve": (
        f"{_BASE_SYSTEM_PROMPT} Analyze survived mutants and generate additional "
        "or improved tests to kill them. Focus on edge cases and boundary "
        "conditions."
    ),
}

_DEFAULT_FRAMEWORKS = {
    "python": "pytest",
    "javascript": "Jest",
    "typescript": "Jest",
}

_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\n?")


class _ChatMessage(MutantGenBaseModel):
    role: str = "assistant"
    content: str


class _ChatChoice(MutantGenBaseModel):
    message: _ChatMessage


class _ChatCompletion(MutantGenBaseModel):
    choices: list[_ChatChoice]


def strip_code_fences(response: str) -> str:
    """Remove markdown code fences and surrounding whitespace."""
    return _FENCE_RE.sub("", response).strip()


def default_framework(language: str) -> str:
    """Test framework assumed for a language when none is configured."""
    return _DEFAULT_FRAMEWORKS.get(language, "the standard unit testing framework")


def build_generate_prompt(
    source_code: str,
    file_name: str,
    context: GenerationContext,
) -> str:
    """Build the user prompt for an initial generation request."""
    language = context.language or detect_language(file_name)
    framework = context.test_framework or default_framework(language)
    lines = [
        f'Generate comprehensive unit tests for the following {language} code '
        f'from file "{file_name}".',
        "",
        "Source Code:",
        f"```{language}",
        source_code,
        "```",
        "",
        "Requirements:",
        f"- Use {framework} testing framework",
        "- Include tests for all functions and methods",
        "- Cover edge cases, boundary conditions, and error handling",
        "- Use descriptive test names",
        "- Aim for high code coverage and mutation score",
    ]
    if context.existing_tests:
        lines += [
            "",
            "Existing tests:",
            f"```{language}",
            context.existing_tests,
            "```",
            "Generate additional tests that complement the existing ones.",
        ]
    if context.survived_mutants:
        lines += ["", "Mutants that survived earlier tests:"]
        lines += format_mutant_list(context.survived_mutants)
    lines += ["", "Provide only the test code without explanations."]
    return "\n".join(lines)


def format_mutant_list(mutants: Sequence[MutantRecord]) -> list[str]:
    """One line per mutant, capped at MAX_LISTED_MUTANTS."""
    lines = [
        f"{i}. {m.mutator} at line {m.location.start_line}: {m.replacement}"
        for i, m in enumerate(mutants[:MAX_LISTED_MUTANTS], start=1)
    ]
    if len(mutants) > MAX_LISTED_MUTANTS:
        lines.append(f"... and {len(mutants) - MAX_LISTED_MUTANTS} more mutants")
    return lines


def build_improve_prompt(
    source_code: str,
    existing_tests: str,
    survived_mutants: Sequence[MutantRecord],
    language: str = "javascript",
) -> str:
    """Build the user prompt for an improvement request."""
    lines = [
        "The following source code has survived mutants that need to be killed.",
        "",
        "Source Code:",
        f"```{language}",
        source_code,
        "```",
        "",
        "Existing Tests:",
        f"```{language}",
        existing_tests,
        "```",
        "",
        "Survived Mutants:",
        *format_mutant_list(survived_mutants),
        "",
        "Generate additional or improved tests to kill these survived mutants. "
        "Focus on the specific conditions and edge cases that would expose "
        "these mutations.",
        "Provide only the additional test code without explanations.",
    ]
    return "\n".join(lines)


class OpenAIGenerator:
    """TestGenerator over the OpenAI chat completions endpoint.

    One request per call, no retries. HTTP and payload failures are mapped
    onto ProviderError causes.
    """

    name: str = "openai"
    api_key_env: str = "OPENAI_API_KEY"

    settings: LLMSettings
    logger: logging.Logger
    language: str | None
    _client: httpx.Client

    def __init__(
        self,
        settings: LLMSettings,
        logger: logging.Logger | None = None,
        transport: httpx.BaseTransport | None = None,
        language: str | None = None,
    ) -> None:
        self.settings = settings
        self.logger = logger or logging.getLogger(__name__)
        # Improve prompts carry no file name; generate() sets this per loop
        self.language = language
        self._client = httpx.Client(
            timeout=settings.timeout_seconds,
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> Self:
        """Enter the generator context."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close the HTTP client on exit."""
        self.close()

    @property
    def api_key(self) -> str | None:
        """Configured key, falling back to the provider's environment variable."""
        return self.settings.api_key or os.environ.get(self.api_key_env)

    def _url(self) -> str:
        return f"{self.settings.base_url.rstrip('/')}/chat/completions"

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"Authorization": f"Bearer {api_key}"}

    def _params(self) -> dict[str, str]:
        return {}

    def _body(self, messages: list[dict[str, str]], max_tokens: int) -> dict[str, object]:
        return {
            "model": self.settings.model,
            "messages": messages,
            "temperature": self.settings.temperature,
            "max_tokens": max_tokens,
        }

    def _complete(self, messages: list[dict[str, str]], max_tokens: int | None = None) -> str:
        api_key = self.api_key
        if not api_key:
            msg = f"No API key configured for {self.name} (set llm.api_key or {self.api_key_env})"
            raise ProviderError(msg, cause=ProviderError.AUTH)

        try:
            response = self._client.post(
                self._url(),
                headers=self._headers(api_key),
                params=self._params(),
                json=self._body(messages, max_tokens or self.settings.max_tokens),
            )
            _ = response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status in (401, 403):
                cause = ProviderError.AUTH
            elif status == 429:
                cause = ProviderError.RATE_LIMIT
            else:
                cause = ProviderError.NETWORK
            msg = f"{self.name} request failed with HTTP {status}"
            raise ProviderError(msg, cause=cause) from e
        except httpx.RequestError as e:
            msg = f"{self.name} connection error: {e}"
            raise ProviderError(msg, cause=ProviderError.NETWORK) from e

        try:
            completion = _ChatCompletion.model_validate(response.json())
        except (ValidationError, ValueError) as e:
            msg = f"{self.name} returned an unexpected payload"
            raise ProviderError(msg, cause=ProviderError.MALFORMED_RESPONSE) from e
        if not completion.choices:
            msg = f"{self.name} returned no choices"
            raise ProviderError(msg, cause=ProviderError.MALFORMED_RESPONSE)
        return completion.choices[0].message.content

    def generate(
        self,
        source_code: str,
        file_name: str,
        context: GenerationContext,
    ) -> str:
        """Ask the model for an initial test file."""
        if context.test_framework is None and self.settings.test_framework:
            context = context.model_copy(
                update={"test_framework": self.settings.test_framework}
            )
        self.language = context.language or detect_language(file_name)
        self.logger.info("Generating tests for %s via %s", file_name, self.name)
        content = self._complete([
            {"role": "system", "content": _SYSTEM_PROMPTS["generate"]},
            {"role": "user", "content": build_generate_prompt(source_code, file_name, context)},
        ])
        return strip_code_fences(content)

    def improve(
        self,
        source_code: str,
        existing_tests: str,
        survived_mutants: Sequence[MutantRecord],
    ) -> str:
        """Ask the model for tests that kill the survived mutants."""
        self.logger.info(
            "Improving tests via %s (%d survived mutants)",
            self.name,
            len(survived_mutants),
        )
        prompt = build_improve_prompt(
            source_code,
            existing_tests,
            survived_mutants,
            language=self.language or "javascript",
        )
        content = self._complete([
            {"role": "system", "content": _SYSTEM_PROMPTS["improve"]},
            {"role": "user", "content": prompt},
        ])
        return strip_code_fences(content)

    def health_check(self) -> bool:
        """Send a tiny request and report whether it succeeded."""
        try:
            _ = self._complete([{"role": "user", "content": "Hello"}], max_tokens=5)
        except ProviderError as e:
            self.logger.warning("%s health check failed: %s", self.name, e)
            return False
        return True

    def _pricing_note(self) -> str | None:
        return None

    def estimate_cost(
        self,
        text: str,
        options: Mapping[str, object] | None = None,
    ) -> CostEstimate:
        """Rough estimate at four characters per token."""
        options = options or {}
        input_tokens = math.ceil(len(text) / 4)
        output_tokens = cast("int", options.get("max_tokens") or self.settings.max_tokens)
        input_cost = input_tokens / 1000 * self.settings.input_cost_per_1k
        output_cost = output_tokens / 1000 * self.settings.output_cost_per_1k
        return CostEstimate(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            input_cost=input_cost,
            output_cost=output_cost,
            total_cost=input_cost + output_cost,
            note=self._pricing_note(),
        )


class AzureOpenAIGenerator(OpenAIGenerator):
    """TestGenerator over an Azure OpenAI deployment."""

    name = "azure"
    api_key_env = "AZURE_OPENAI_API_KEY"

    def __init__(
        self,
        settings: LLMSettings,
        logger: logging.Logger | None = None,
        transport: httpx.BaseTransport | None = None,
        language: str | None = None,
    ) -> None:
        if not settings.azure_endpoint or not settings.azure_deployment:
            msg = "Azure generator requires llm.azure_endpoint and llm.azure_deployment"
            raise ConfigurationError(msg)
        super().__init__(settings, logger=logger, transport=transport, language=language)

    def _url(self) -> str:
        endpoint = cast("str", self.settings.azure_endpoint).rstrip("/")
        return (
            f"{endpoint}/openai/deployments/{self.settings.azure_deployment}"
            "/chat/completions"
        )

    def _headers(self, api_key: str) -> dict[str, str]:
        return {"api-key": api_key}

    def _params(self) -> dict[str, str]:
        return {"api-version": self.settings.azure_api_version}

    def _body(self, messages: list[dict[str, str]], max_tokens: int) -> dict[str, object]:
        # The deployment selects the model
        body = super()._body(messages, max_tokens)
        del body["model"]
        return body

    def _pricing_note(self) -> str | None:
        return "Azure pricing varies by region and deployment"


def _language_for(config: MutantGenConfig) -> str | None:
    framework = config.llm.test_framework
    if framework and framework.lower() == "pytest":
        return "python"
    return None


def create_openai_generator(
    config: MutantGenConfig,
    logger: logging.Logger,
) -> OpenAIGenerator:
    """Registry factory for the OpenAI generator."""
    return OpenAIGenerator(config.llm, logger=logger, language=_language_for(config))


def create_azure_generator(
    config: MutantGenConfig,
    logger: logging.Logger,
) -> AzureOpenAIGenerator:
    """Registry factory for the Azure OpenAI generator."""
    return AzureOpenAIGenerator(config.llm, logger=logger, language=_language_for(config))
