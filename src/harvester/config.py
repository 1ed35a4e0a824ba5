"""
Configuration loading and validation for harvester.

Loads harvester.toml files and validates settings using Pydantic.
"""

import os
import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError


class ConfigurationInvalid(ValueError):
    """Raised at construction time when configuration values are invalid."""


class AdapterConfig(BaseModel):
    """Configuration for a single LLM adapter."""

    provider: Literal["anthropic", "openrouter"]
    model: str
    api_key_env: str
    use_subscription: bool = False  # For Claude: use environment credentials


class AnsweringConfig(BaseModel):
    """Live and degraded answering paths."""

    live: AdapterConfig
    fallback: AdapterConfig | None = None  # None: reuse live adapter with offline prompt


class RetryConfig(BaseModel):
    """Retry policy applied to every external-call wrapper."""

    max_attempts: int = Field(default=3, ge=1)
    backoff_multiplier: float = Field(default=1.0, ge=0.0)
    backoff_min_seconds: float = Field(default=2.0, ge=0.0)
    backoff_max_seconds: float = Field(default=10.0, ge=0.0)
    # Deadline for one provider attempt inside a client. None: derived from
    # orchestrator.per_call_timeout_seconds so live retries plus the fallback fit
    attempt_timeout_seconds: float | None = Field(default=None, gt=0.0)


class OrchestratorConfig(BaseModel):
    """Recursion and concurrency limits for a search session."""

    max_depth: int = Field(default=2, ge=0)
    max_queries_per_level: int = Field(default=3, ge=0)
    parallel: bool = True
    global_concurrency_limit: int = Field(default=8, ge=1)
    per_call_timeout_seconds: float = Field(default=120.0, gt=0.0)
    max_output_length: int = Field(default=8000, gt=0)

    model_config = {"frozen": True}

    def __init__(self, **values: Any):
        """
        Validate limits at construction.

        Raises:
            ConfigurationInvalid: If any value is out of range
        """
        try:
            super().__init__(**values)
        except ValidationError as e:
            raise ConfigurationInvalid(f"Invalid orchestrator configuration: {e}") from e

    @classmethod
    def create(cls, **values: Any) -> "OrchestratorConfig":
        """Build a validated config from keyword values."""
        return cls(**values)


class ProjectConfig(BaseModel):
    """Project metadata."""

    name: str
    entity_type: str = "organization"


class HarvesterConfig(BaseModel):
    """Complete harvester configuration."""

    project: ProjectConfig
    answering: AnsweringConfig
    extraction: AdapterConfig
    evaluation: AdapterConfig | None = None  # None: reuse extraction adapter
    orchestrator: OrchestratorConfig = Field(default_factory=OrchestratorConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)


def get_api_key(adapter: AdapterConfig) -> str | None:
    """
    Get an adapter's API key from the environment.

    Returns:
        API key, or None in subscription mode

    Raises:
        ValueError: If required API key is missing
    """
    if adapter.use_subscription:
        return None

    api_key = os.environ.get(adapter.api_key_env)
    if not api_key:
        raise ValueError(
            f"API key not found in environment: {adapter.api_key_env} "
            f"(required for {adapter.provider}:{adapter.model})"
        )
    return api_key


def load_config(config_path: Path) -> HarvesterConfig:
    """
    Load harvester configuration from TOML file.

    Args:
        config_path: Path to harvester.toml

    Returns:
        Validated HarvesterConfig

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigurationInvalid: If config is invalid
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "rb") as f:
        try:
            config_data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationInvalid(f"Invalid TOML in {config_path}: {e}") from e

    try:
        config = HarvesterConfig(**config_data)
    except ValidationError as e:
        raise ConfigurationInvalid(f"Invalid configuration: {e}") from e

    return config


def create_default_config(
    output_path: Path,
    project_name: str,
    entity_type: str = "organization",
) -> None:
    """
    Write a starter harvester.toml.

    Args:
        output_path: Where to write harvester.toml
        project_name: Project name
        entity_type: Entity type to extract by default
    """
    template = f'''[project]
name = "{project_name}"
entity_type = "{entity_type}"

[answering.live]
provider = "openrouter"
model = "perplexity/sonar"  # Search-enabled model for live answers
api_key_env = "OPENROUTER_API_KEY"

[answering.fallback]
provider = "anthropic"
model = "claude-sonnet-4-20250514"  # Answers from model knowledge when live fails
api_key_env = "ANTHROPIC_API_KEY"

[extraction]
provider = "anthropic"
model = "claude-sonnet-4-20250514"
api_key_env = "ANTHROPIC_API_KEY"

[orchestrator]
max_depth = 2  # Follow-up recursion depth (0 = single query)
max_queries_per_level = 3  # Follow-ups kept per node
parallel = true
global_concurrency_limit = 8  # Concurrent external calls across all branches
per_call_timeout_seconds = 120
max_output_length = 8000  # Characters per narrative answer

[retry]
max_attempts = 3
backoff_multiplier = 1.0
backoff_min_seconds = 2.0
backoff_max_seconds = 10.0
'''

    output_path.write_text(template, encoding="utf-8")
