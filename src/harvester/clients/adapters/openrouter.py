"""
OpenRouter adapter for harvester.

OpenRouter provides unified access to many LLM models through a single API.
Uses OpenAI-compatible API format. Models with built-in web search (the
``:online`` variants) make a good live answering path.
"""

import logging
from datetime import datetime
from typing import Any

import httpx

from ..base import AdapterAuthenticationError
from ..protocol import LLMResponse

logger = logging.getLogger(__name__)


def _message_text(message: dict[str, Any]) -> str:
    """
    Flatten assistant message content into plain text.

    Handles:
    - Plain string content (OpenAI standard)
    - List of content parts (Anthropic/Gemini leak-through)
    - None / missing
    """
    content = message.get("content")
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for part in content:
            if isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
            elif isinstance(part, str):
                parts.append(part)
        return "".join(parts)
    return ""


class OpenRouterAdapter:
    """Adapter for the OpenRouter API."""

    def __init__(
        self,
        model: str,
        api_key: str,
        timeout: float = 120.0,
        base_url: str = "https://openrouter.ai/api/v1",
    ):
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.base_url = base_url

    @property
    def name(self) -> str:
        return f"openrouter:{self.model}"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "X-Title": "Harvester Entity Research",
        }

    async def verify(self) -> None:
        """Verify API key with a minimal request."""
        try:
            async with httpx.AsyncClient(timeout=10) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json={
                        "model": self.model,
                        "messages": [{"role": "user", "content": "hi"}],
                        "max_tokens": 1,
                    },
                )
                if response.status_code in (401, 403):
                    raise AdapterAuthenticationError(
                        provider="OpenRouter", api_key_env="OPENROUTER_API_KEY"
                    )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403):
                raise AdapterAuthenticationError(
                    provider="OpenRouter", api_key_env="OPENROUTER_API_KEY"
                ) from e
            raise

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_tokens: int = 4096,
    ) -> LLMResponse:
        start_time = datetime.now()

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers=self._headers(),
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system_prompt},
                        {"role": "user", "content": user_prompt},
                    ],
                    "max_tokens": max_tokens,
                    "temperature": 0.2,
                },
            )

        if response.status_code in (401, 403):
            raise AdapterAuthenticationError(
                provider="OpenRouter", api_key_env="OPENROUTER_API_KEY"
            )
        if response.status_code != 200:
            raise RuntimeError(
                f"OpenRouter API error ({response.status_code}): {response.text}"
            )

        result = response.json()
        choices = result.get("choices") or []
        if not choices:
            raise RuntimeError(f"OpenRouter returned no choices: {str(result)[:200]}")

        usage = result.get("usage", {})
        text = _message_text(choices[0].get("message") or {})
        logger.debug(
            f"[{self.name}] {choices[0].get('finish_reason')}, "
            f"{usage.get('prompt_tokens', 0)} in / {usage.get('completion_tokens', 0)} out"
        )

        return LLMResponse(
            text=text,
            model=result.get("model", self.model),
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            duration_seconds=(datetime.now() - start_time).total_seconds(),
        )
