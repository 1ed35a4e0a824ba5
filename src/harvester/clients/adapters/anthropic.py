"""
Anthropic Claude adapter.

Supports:
- Single-turn completions for answering, extraction and evaluation
- Dual authentication (API key or ambient environment credentials)
- Credential verification with a minimal request
"""

import logging
import time

import anthropic

from ..base import AdapterAuthenticationError
from ..protocol import LLMResponse

logger = logging.getLogger(__name__)


class AnthropicAdapter:
    """Adapter for Anthropic Claude models."""

    def __init__(
        self,
        model: str = "claude-sonnet-4-20250514",
        api_key: str | None = None,
        use_subscription: bool = False,
        timeout: float = 120.0,
    ):
        """
        Initialize Anthropic adapter.

        Args:
            model: Model identifier
            api_key: API key (if not using subscription)
            use_subscription: Use environment credentials instead of an explicit key
            timeout: Request timeout in seconds
        """
        if use_subscription:
            self.client = anthropic.AsyncAnthropic(timeout=timeout)
        else:
            if not api_key:
                raise ValueError("api_key required when not using subscription")
            self.client = anthropic.AsyncAnthropic(api_key=api_key, timeout=timeout)

        self.model = model
        self.timeout = timeout

    @property
    def name(self) -> str:
        """Human-readable adapter name."""
        return f"claude-{self.model}"

    async def verify(self) -> None:
        """Verify API key with a one-token request."""
        try:
            await self.client.messages.create(
                model=self.model,
                max_tokens=1,
                messages=[{"role": "user", "content": "hi"}],
            )
        except anthropic.AuthenticationError as e:
            raise AdapterAuthenticationError(
                provider="Anthropic", api_key_env="ANTHROPIC_API_KEY"
            ) from e

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        start_time = time.time()

        response = await self.client.messages.create(
            model=self.model,
            system=system_prompt,
            messages=[{"role": "user", "content": user_prompt}],
            max_tokens=max_tokens,
        )

        text = "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

        logger.debug(
            f"[{self.name}] {response.stop_reason}, "
            f"{response.usage.input_tokens} in / {response.usage.output_tokens} out"
        )

        return LLMResponse(
            text=text,
            model=self.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            duration_seconds=time.time() - start_time,
        )
