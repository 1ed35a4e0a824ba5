"""LLM adapters for multiple providers."""

from .anthropic import AnthropicAdapter
from .openrouter import OpenRouterAdapter

__all__ = ["AnthropicAdapter", "OpenRouterAdapter"]
