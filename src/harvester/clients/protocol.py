"""
Protocol definitions for the external collaborators.

This module defines the interfaces the orchestrator depends on, so that
providers are passed in explicitly and tests can substitute deterministic fakes:
- LLMAdapter: single-turn completion against one model
- AnsweringClient: query -> narrative answer
- ExtractionClient: narrative text -> validated entity collection
- CompletenessEvaluator: (query, text) -> completeness judgment
"""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ..models import EntityCollection, Evaluation, RawAnswer


@dataclass
class LLMResponse:
    """Raw output of a single completion call."""

    text: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    duration_seconds: float = 0.0


@runtime_checkable
class LLMAdapter(Protocol):
    """
    Protocol for LLM adapters.

    Any provider that can turn a system + user prompt into text can back the
    answering, extraction and evaluation clients by implementing this protocol.
    """

    @property
    def name(self) -> str:
        """Human-readable adapter name (e.g., 'claude-sonnet-4-20250514')."""
        ...

    async def verify(self) -> None:
        """
        Verify that the adapter's credentials are valid.

        Raises:
            AdapterAuthenticationError: If credentials are invalid
        """
        ...

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """
        Run a single completion.

        Args:
            system_prompt: System-level instructions
            user_prompt: User request
            max_tokens: Output token limit

        Returns:
            LLMResponse with generated text and usage
        """
        ...


@runtime_checkable
class AnsweringClient(Protocol):
    """Turns a query into narrative text. Fails only with AnsweringUnavailable."""

    async def answer(self, query: str, max_output_length: int) -> RawAnswer:
        ...


@runtime_checkable
class ExtractionClient(Protocol):
    """Turns narrative text into entities. Never fails outward."""

    async def extract(self, text: str, entity_type: str) -> EntityCollection:
        ...


@runtime_checkable
class CompletenessEvaluator(Protocol):
    """Judges whether a narrative answer covers its query. Never fails outward."""

    async def evaluate(self, query: str, text: str) -> Evaluation:
        ...
