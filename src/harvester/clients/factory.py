"""Build adapters and clients from a HarvesterConfig."""

import logging

from ..config import AdapterConfig, HarvesterConfig, RetryConfig, get_api_key
from .adapters.anthropic import AnthropicAdapter
from .adapters.openrouter import OpenRouterAdapter
from .answering import LLMAnsweringClient
from .base import RetryPolicy, exponential_backoff
from .extraction import LLMExtractionClient
from .protocol import LLMAdapter

logger = logging.getLogger(__name__)


def build_adapter(adapter_config: AdapterConfig, timeout: float = 120.0) -> LLMAdapter:
    """Instantiate the adapter named by a config entry."""
    api_key = get_api_key(adapter_config)

    if adapter_config.provider == "anthropic":
        return AnthropicAdapter(
            model=adapter_config.model,
            api_key=api_key,
            use_subscription=adapter_config.use_subscription,
            timeout=timeout,
        )
    if adapter_config.provider == "openrouter":
        if api_key is None:
            raise ValueError("OpenRouter does not support subscription auth")
        return OpenRouterAdapter(model=adapter_config.model, api_key=api_key, timeout=timeout)

    raise ValueError(f"Unsupported provider: {adapter_config.provider}")


def build_retry_policy(retry: RetryConfig) -> RetryPolicy:
    return RetryPolicy(
        max_attempts=retry.max_attempts,
        backoff=exponential_backoff(
            multiplier=retry.backoff_multiplier,
            minimum=retry.backoff_min_seconds,
            maximum=retry.backoff_max_seconds,
        ),
    )


def attempt_timeout(config: HarvesterConfig) -> float:
    """
    Deadline for one provider attempt inside a client.

    The orchestrator bounds each whole client call by per_call_timeout_seconds.
    Unless configured explicitly, every live attempt and the single fallback
    attempt get an equal share of that deadline.
    """
    if config.retry.attempt_timeout_seconds is not None:
        return config.retry.attempt_timeout_seconds
    return config.orchestrator.per_call_timeout_seconds / (config.retry.max_attempts + 1)


def build_clients(
    config: HarvesterConfig,
) -> tuple[LLMAnsweringClient, LLMExtractionClient, LLMAdapter]:
    """
    Build the answering and extraction clients plus the evaluation adapter.

    Returns:
        (answering_client, extraction_client, evaluation_adapter)
    """
    timeout = attempt_timeout(config)
    policy = build_retry_policy(config.retry)

    live = build_adapter(config.answering.live, timeout)
    fallback = (
        build_adapter(config.answering.fallback, timeout)
        if config.answering.fallback
        else None
    )
    extraction_adapter = build_adapter(config.extraction, timeout)
    evaluation_adapter = (
        build_adapter(config.evaluation, timeout) if config.evaluation else extraction_adapter
    )

    logger.info(
        f"Answering: {live.name} (fallback: {fallback.name if fallback else 'offline prompt'}), "
        f"extraction: {extraction_adapter.name}, evaluation: {evaluation_adapter.name}"
    )

    answering = LLMAnsweringClient(
        live=live, fallback=fallback, retry_policy=policy, timeout_seconds=timeout
    )
    extraction = LLMExtractionClient(
        adapter=extraction_adapter, retry_policy=policy, timeout_seconds=timeout
    )
    return answering, extraction, evaluation_adapter
