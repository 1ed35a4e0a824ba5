"""
Answering client: turns a query into narrative text.

The live path runs under the retry policy and a per-call timeout. Any failure
there (timeout, provider error, empty response) triggers exactly one attempt on
a degraded path that answers from model knowledge alone. Callers therefore
always receive some narrative text unless both paths fail, in which case
AnsweringUnavailable is raised.
"""

import logging
import time

from ..models import RawAnswer, SourceKind
from .base import (
    AnsweringUnavailable,
    RetryPolicy,
    call_with_timeout,
)
from .protocol import LLMAdapter, LLMResponse

logger = logging.getLogger(__name__)

LIVE_SYSTEM_PROMPT = """You are a meticulous research assistant with access to current information.

Answer the user's query with a thorough narrative. Name every relevant entity
explicitly (organizations, people, products, places) and include concrete
details about each: dates, locations, figures, roles and relationships.
Cite sources inline where you can."""

FALLBACK_SYSTEM_PROMPT = """You are a research assistant working offline.

Live search is unavailable. Answer the user's query as completely as you can
from your own knowledge. Name every relevant entity explicitly and include the
concrete details you are confident about. Say so when information may be out of date."""


class LLMAnsweringClient:
    """AnsweringClient backed by a live adapter and a degraded fallback adapter."""

    def __init__(
        self,
        live: LLMAdapter,
        fallback: LLMAdapter | None = None,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float | None = 120.0,
    ):
        """
        Initialize answering client.

        Args:
            live: Adapter for the primary (search-enabled) answering path
            fallback: Adapter for the degraded path (defaults to the live adapter
                with an offline prompt)
            retry_policy: Retry policy for the live path
            timeout_seconds: Deadline for each individual call
        """
        self.live = live
        self.fallback = fallback or live
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_seconds = timeout_seconds

    async def _complete(
        self,
        adapter: LLMAdapter,
        system_prompt: str,
        query: str,
        max_tokens: int,
    ) -> LLMResponse:
        response = await call_with_timeout(
            adapter.complete,
            self.timeout_seconds,
            system_prompt=system_prompt,
            user_prompt=query,
            max_tokens=max_tokens,
        )
        if not response.text or not response.text.strip():
            raise ValueError(f"{adapter.name} returned an empty answer")
        return response

    async def answer(self, query: str, max_output_length: int = 8000) -> RawAnswer:
        """
        Answer a query, falling back to the degraded path on any live failure.

        Args:
            query: Natural-language query
            max_output_length: Character budget for the answer

        Returns:
            RawAnswer tagged LIVE or FALLBACK

        Raises:
            AnsweringUnavailable: If both paths failed
        """
        # ~4 chars per token
        max_tokens = max(1, max_output_length // 4)
        start_time = time.monotonic()

        try:
            response = await self.retry_policy.call(
                self._complete, self.live, LIVE_SYSTEM_PROMPT, query, max_tokens
            )
            source_kind = SourceKind.LIVE
        except Exception as live_error:
            logger.warning(
                f"Live answering failed for {query[:60]!r} "
                f"({type(live_error).__name__}: {live_error}), using fallback path"
            )
            try:
                response = await self._complete(
                    self.fallback, FALLBACK_SYSTEM_PROMPT, query, max_tokens
                )
            except Exception as fallback_error:
                logger.error(f"Fallback answering failed for {query[:60]!r}: {fallback_error}")
                raise AnsweringUnavailable(query, fallback_error) from fallback_error
            source_kind = SourceKind.FALLBACK

        return RawAnswer(
            content=response.text.strip()[:max_output_length],
            elapsed_seconds=time.monotonic() - start_time,
            source_kind=source_kind,
            model=response.model,
        )
