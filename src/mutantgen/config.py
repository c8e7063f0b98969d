# Copyright (c) Syntropy Systems
"""Configuration management for mutantgen."""
from __future__ import annotations

from pathlib import Path
from typing import cast

import yaml
from pydantic import Field, ValidationError

from mutantgen.errors import ConfigurationError
from mutantgen.models.base import MutantGenBaseModel

PROJECT_DIR_NAME = ".mutantgen"


class LLMSettings(MutantGenBaseModel):
    """Settings for the test-generation providers."""

    model: str = "gpt-4"
    # Falls back to OPENAI_API_KEY / AZURE_OPENAI_API_KEY when unset
    api_key: str | None = None
    base_url: str = "https://api.openai.com/v1"
    azure_endpoint: str | None = None
    azure_deployment: str | None = None
    azure_api_version: str = "2024-02-01"
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=1)
    timeout_seconds: float = Field(default=120.0, gt=0)
    # USD per 1k tokens, used only for estimates
    input_cost_per_1k: float = Field(default=0.03, ge=0.0)
    output_cost_per_1k: float = Field(default=0.06, ge=0.0)
    test_framework: str | None = None


class AnalysisSettings(MutantGenBaseModel):
    """Settings for the mutation-analysis providers."""

    timeout_seconds: float = Field(default=300.0, gt=0)
    # Mutator kind tags to enable; empty means all
    mutators: list[str] = Field(default_factory=list)
    # argv for the command analyzer; {source}, {test} and {report} are substituted
    command: list[str] = Field(default_factory=list)
    report_path: str = "reports/mutation/mutation.json"
    workdir: str | None = None
    kill_grace_period: float = Field(default=10.0, ge=0)
    test_runner: str = "jest"


class LoggingSettings(MutantGenBaseModel):
    """Logging output settings."""

    level: str = "INFO"
    file: str | None = None


class MutantGenConfig(MutantGenBaseModel):
    """Validated configuration, built once and shared by reference."""

    target_score: float = Field(default=80.0, gt=0.0, le=100.0)
    max_iterations: int = Field(default=5, ge=1)
    max_consecutive_failures: int = Field(default=2, ge=1)
    concurrency: int = Field(default=3, ge=1)
    output_dir: str = "tests"
    merge_improvements: bool = False

    generator: str = "openai"
    analyzer: str = "stryker"
    storage: str = "filesystem"

    llm: LLMSettings = Field(default_factory=LLMSettings)
    analysis: AnalysisSettings = Field(default_factory=AnalysisSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def from_mapping(cls, data: dict[str, object]) -> MutantGenConfig:
        """Validate a raw mapping, raising ConfigurationError on bad values."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            msg = f"Invalid configuration: {_format_validation_error(e)}"
            raise ConfigurationError(msg) from e

    def with_overrides(self, **overrides: object) -> MutantGenConfig:
        """Return a new validated config with non-None overrides applied."""
        data = self.model_dump()
        for key, value in overrides.items():
            if value is not None:
                data[key] = value
        return MutantGenConfig.from_mapping(data)


def _format_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "config"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


def find_project_dir(start_path: Path | None = None) -> Path | None:
    """Find the nearest .mutantgen directory by walking up from start_path.

    Returns None if no .mutantgen directory is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while current != current.parent:
        project_dir = current / PROJECT_DIR_NAME
        if project_dir.is_dir():
            return project_dir
        current = current.parent

    # Check root
    project_dir = current / PROJECT_DIR_NAME
    if project_dir.is_dir():
        return project_dir

    return None


def get_global_config_dir() -> Path:
    """Get the global mutantgen config directory (~/.mutantgen)."""
    return Path.home() / PROJECT_DIR_NAME


def load_config(
    project_dir: Path | None = None,
    config_path: Path | None = None,
) -> MutantGenConfig:
    """Load configuration from YAML or defaults.

    Looks for config in:
    1. Explicit config_path
    2. Provided project_dir
    3. Nearest .mutantgen directory walking up
    4. ~/.mutantgen/config.yaml
    5. Defaults
    """
    if config_path is None:
        if project_dir is not None:
            config_path = project_dir / "config.yaml"
        else:
            found_dir = find_project_dir()
            if found_dir is not None:
                config_path = found_dir / "config.yaml"
            else:
                global_config = get_global_config_dir() / "config.yaml"
                if global_config.exists():
                    config_path = global_config
    elif not config_path.exists():
        msg = f"Config file not found: {config_path}"
        raise ConfigurationError(msg)

    if config_path is None or not config_path.exists():
        return MutantGenConfig()

    try:
        with config_path.open() as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        msg = f"Could not parse {config_path}: {e}"
        raise ConfigurationError(msg) from e

    if not isinstance(data, dict):
        msg = f"Config file {config_path} must contain a mapping"
        raise ConfigurationError(msg)

    return MutantGenConfig.from_mapping(cast("dict[str, object]", data))


def get_runs_dir(project_dir: Path | None = None) -> Path:
    """Get the path to the runs directory."""
    if project_dir is None:
        project_dir = require_project_dir()
    return project_dir / "runs"


def require_project_dir() -> Path:
    """Get the project directory or raise an error if not found."""
    project_dir = find_project_dir()
    if project_dir is None:
        msg = "No .mutantgen directory found. Run 'mutantgen init' first."
        raise RuntimeError(
            msg
        )
    return project_dir
