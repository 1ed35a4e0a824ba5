"""
Completeness evaluation for narrative answers.

The evaluator decides whether an answer covers its query and, if not, which
follow-up queries would close the gaps. It holds no state between calls. When
the judgment itself fails it returns a conservative fallback that asks for one
more, more detailed pass; the orchestrator depth-caps that follow-up like any other.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from ..clients.base import (
    EvaluationDegraded,
    RetryPolicy,
    call_with_timeout,
    extract_json_from_text,
)
from ..models import Evaluation

if TYPE_CHECKING:
    from ..clients.protocol import LLMAdapter

logger = logging.getLogger(__name__)

EVALUATION_SYSTEM_PROMPT = """You judge whether a research answer fully covers the question asked.

Respond with ONLY this JSON structure:
{
  "is_comprehensive": false,
  "missing_information": ["what the answer does not cover"],
  "follow_up_queries": ["self-contained search query that would fill one gap"]
}

Rules:
- Set is_comprehensive to true only if no important aspect is missing
- Each follow-up query must stand on its own without the original context
- Order follow-up queries from most to least important"""


def fallback_evaluation(query: str) -> Evaluation:
    """Conservative judgment used whenever evaluation fails."""
    return Evaluation(
        is_comprehensive=False,
        missing_information=("evaluation failed",),
        follow_up_queries=(f"{query} more detailed",),
    )


def _string_list(payload: Mapping[str, Any], key: str) -> tuple[str, ...]:
    value = payload.get(key, [])
    if value is None:
        return ()
    if not isinstance(value, list):
        raise EvaluationDegraded(f"{key} must be a list")
    items = []
    for item in value:
        if not isinstance(item, str):
            raise EvaluationDegraded(f"{key} must contain only strings")
        if item.strip():
            items.append(item.strip())
    return tuple(items)


def parse_evaluation(payload: Any) -> Evaluation:
    """
    Validate a decoded evaluation payload.

    Raises:
        EvaluationDegraded: If the payload does not match the expected shape
    """
    if not isinstance(payload, Mapping):
        raise EvaluationDegraded("payload is not an object")

    is_comprehensive = payload.get("is_comprehensive")
    if not isinstance(is_comprehensive, bool):
        raise EvaluationDegraded("is_comprehensive must be a boolean")

    return Evaluation(
        is_comprehensive=is_comprehensive,
        missing_information=_string_list(payload, "missing_information"),
        follow_up_queries=_string_list(payload, "follow_up_queries"),
    )


class LLMCompletenessEvaluator:
    """CompletenessEvaluator backed by an LLM adapter."""

    def __init__(
        self,
        adapter: LLMAdapter,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float | None = 120.0,
        max_tokens: int = 1024,
    ):
        self.adapter = adapter
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_seconds = timeout_seconds
        self.max_tokens = max_tokens

    async def _evaluate_once(self, query: str, text: str) -> Evaluation:
        response = await call_with_timeout(
            self.adapter.complete,
            self.timeout_seconds,
            system_prompt=EVALUATION_SYSTEM_PROMPT,
            user_prompt=f"## Question\n\n{query}\n\n## Answer\n\n{text}\n\n---\n\n"
            "Judge the answer. Respond with ONLY the JSON structure specified.",
            max_tokens=self.max_tokens,
        )

        payload = extract_json_from_text(response.text)
        if payload is None:
            raise EvaluationDegraded(f"no JSON object in response: {response.text[:200]}")
        return parse_evaluation(payload)

    async def evaluate(self, query: str, text: str) -> Evaluation:
        """
        Judge whether text comprehensively answers query.

        Returns:
            Evaluation from the model, or the conservative fallback on failure
        """
        try:
            return await self.retry_policy.call(self._evaluate_once, query, text)
        except Exception as e:
            logger.warning(
                f"Evaluation degraded for {query[:60]!r} ({type(e).__name__}: {e}), "
                "using fallback judgment"
            )
            return fallback_evaluation(query)
