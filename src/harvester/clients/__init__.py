"""External collaborators: LLM adapters, answering and extraction clients."""

from .answering import LLMAnsweringClient
from .base import (
    AdapterAuthenticationError,
    AnsweringUnavailable,
    EvaluationDegraded,
    ExtractionDegraded,
    RetryPolicy,
    exponential_backoff,
)
from .extraction import LLMExtractionClient, validate_entity_collection
from .protocol import (
    AnsweringClient,
    CompletenessEvaluator,
    ExtractionClient,
    LLMAdapter,
    LLMResponse,
)

__all__ = [
    "AnsweringClient",
    "CompletenessEvaluator",
    "ExtractionClient",
    "LLMAdapter",
    "LLMResponse",
    "LLMAnsweringClient",
    "LLMExtractionClient",
    "validate_entity_collection",
    "RetryPolicy",
    "exponential_backoff",
    "AdapterAuthenticationError",
    "AnsweringUnavailable",
    "ExtractionDegraded",
    "EvaluationDegraded",
]
