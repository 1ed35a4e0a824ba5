"""
Tests for configuration loading and validation.
"""

import pytest
from pydantic import ValidationError

from harvester.config import (
    AdapterConfig,
    ConfigurationInvalid,
    OrchestratorConfig,
    create_default_config,
    get_api_key,
    load_config,
)


def test_orchestrator_defaults():
    config = OrchestratorConfig()

    assert config.max_depth == 2
    assert config.max_queries_per_level == 3
    assert config.parallel is True
    assert config.global_concurrency_limit == 8
    assert config.per_call_timeout_seconds == 120.0
    assert config.max_output_length == 8000


@pytest.mark.parametrize(
    "values",
    [
        {"max_depth": -1},
        {"max_queries_per_level": -2},
        {"global_concurrency_limit": 0},
        {"per_call_timeout_seconds": 0},
        {"max_output_length": 0},
    ],
)
def test_orchestrator_rejects_out_of_range(values):
    with pytest.raises(ConfigurationInvalid):
        OrchestratorConfig.create(**values)


@pytest.mark.parametrize(
    "values",
    [{"max_depth": -1}, {"max_queries_per_level": -1}, {"parallel": "sometimes"}],
)
def test_direct_construction_raises_configuration_invalid(values):
    with pytest.raises(ConfigurationInvalid) as exc_info:
        OrchestratorConfig(**values)

    assert isinstance(exc_info.value.__cause__, ValidationError)


def test_configuration_invalid_is_a_value_error():
    with pytest.raises(ValueError):
        OrchestratorConfig.create(max_depth=-1)


def test_orchestrator_config_is_frozen():
    config = OrchestratorConfig()

    with pytest.raises(ValidationError):
        config.max_depth = 5


def test_default_config_round_trips(tmp_path):
    path = tmp_path / "harvester.toml"
    create_default_config(path, "Battery Suppliers", entity_type="company")

    config = load_config(path)

    assert config.project.name == "Battery Suppliers"
    assert config.project.entity_type == "company"
    assert config.answering.live.provider == "openrouter"
    assert config.answering.fallback.provider == "anthropic"
    assert config.extraction.api_key_env == "ANTHROPIC_API_KEY"
    assert config.evaluation is None
    assert config.orchestrator == OrchestratorConfig()
    assert config.retry.max_attempts == 3


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.toml")


def test_load_config_invalid_toml(tmp_path):
    path = tmp_path / "harvester.toml"
    path.write_text("[project\nname = ", encoding="utf-8")

    with pytest.raises(ConfigurationInvalid, match="Invalid TOML"):
        load_config(path)


def test_load_config_invalid_limits(tmp_path):
    path = tmp_path / "harvester.toml"
    create_default_config(path, "p")
    path.write_text(
        path.read_text(encoding="utf-8").replace("max_depth = 2", "max_depth = -4"),
        encoding="utf-8",
    )

    with pytest.raises(ConfigurationInvalid):
        load_config(path)


def test_get_api_key(monkeypatch):
    adapter = AdapterConfig(provider="openrouter", model="m", api_key_env="HARVESTER_TEST_KEY")

    monkeypatch.delenv("HARVESTER_TEST_KEY", raising=False)
    with pytest.raises(ValueError, match="HARVESTER_TEST_KEY"):
        get_api_key(adapter)

    monkeypatch.setenv("HARVESTER_TEST_KEY", "sk-test")
    assert get_api_key(adapter) == "sk-test"


def test_get_api_key_subscription_mode():
    adapter = AdapterConfig(
        provider="anthropic", model="m", api_key_env="UNSET_KEY", use_subscription=True
    )

    assert get_api_key(adapter) is None
