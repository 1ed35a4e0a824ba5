"""
Base utilities shared across the external-call wrappers.

Provides:
- Error taxonomy for provider failures
- RetryPolicy value object with exponential backoff
- Per-call timeout wrapper
- JSON extraction helper
"""

import asyncio
import json
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AdapterAuthenticationError(Exception):
    """Raised when an adapter fails due to invalid or missing API key."""

    def __init__(self, provider: str, api_key_env: str):
        self.provider = provider
        self.api_key_env = api_key_env
        super().__init__(
            f"{provider} authentication failed. "
            f"Check that {api_key_env} is set to a valid API key."
        )


class AnsweringUnavailable(Exception):
    """Raised when both the live and the fallback answering paths failed."""

    def __init__(self, query: str, cause: BaseException | None = None):
        self.query = query
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"No answer available for {query!r}{detail}")


class ExtractionDegraded(Exception):
    """Extraction output failed validation. Never leaves the extraction client."""


class EvaluationDegraded(Exception):
    """Completeness judgment failed. Never leaves the evaluator."""


def exponential_backoff(
    multiplier: float = 1.0, minimum: float = 2.0, maximum: float = 10.0
) -> Callable[[int], float]:
    """
    Build a backoff function mapping attempt number to seconds of wait.

    Args:
        multiplier: Base multiplier
        minimum: Lower clamp in seconds
        maximum: Upper clamp in seconds

    Returns:
        Function of the 1-based attempt number that just failed
    """

    def backoff(attempt: int) -> float:
        return max(minimum, min(maximum, multiplier * (2 ** (attempt - 1))))

    return backoff


def no_backoff(attempt: int) -> float:
    return 0.0


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry policy for one external-call wrapper.

    Attributes:
        max_attempts: Total attempts including the first call
        backoff: Seconds to wait after the given failed attempt
        retry_on: Exception types that trigger another attempt
    """

    max_attempts: int = 3
    backoff: Callable[[int], float] = field(default_factory=exponential_backoff)
    retry_on: tuple[type[BaseException], ...] = (Exception,)

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    @classmethod
    def no_wait(cls, max_attempts: int = 3) -> "RetryPolicy":
        """Policy that retries immediately (tests, offline paths)."""
        return cls(max_attempts=max_attempts, backoff=no_backoff)

    def _wait(self, retry_state: RetryCallState) -> float:
        return self.backoff(retry_state.attempt_number)

    async def call(
        self,
        func: Callable[..., Awaitable[T]],
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Execute an async function under this policy.

        Raises:
            Last exception if all attempts fail
        """
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(self.retry_on),
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait,
            reraise=True,
        ):
            with attempt:
                logger.debug(
                    f"Attempt {attempt.retry_state.attempt_number}/{self.max_attempts}"
                )
                return await func(*args, **kwargs)

        # This should never be reached due to reraise=True, but satisfies type checker
        raise RuntimeError("Retry logic failed unexpectedly")


async def call_with_timeout(
    func: Callable[..., Awaitable[T]],
    timeout_seconds: float | None,
    *args: Any,
    **kwargs: Any,
) -> T:
    """Await func(*args, **kwargs), raising TimeoutError past the deadline."""
    if timeout_seconds is None:
        return await func(*args, **kwargs)
    return await asyncio.wait_for(func(*args, **kwargs), timeout=timeout_seconds)


def extract_json_from_text(text: str) -> dict[str, Any] | None:
    """
    Extract JSON object from text (handles markdown code blocks).

    Args:
        text: Text potentially containing JSON

    Returns:
        Parsed JSON dict or None if not found
    """
    # Try to find JSON in markdown code block
    json_match = re.search(r"```(?:json)?\s*(\{.*?\})\s*```", text, re.DOTALL)
    if json_match:
        try:
            parsed = json.loads(json_match.group(1))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    # Try to find raw JSON
    json_match = re.search(r"\{.*\}", text, re.DOTALL)
    if json_match:
        try:
            parsed = json.loads(json_match.group(0))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    return None
