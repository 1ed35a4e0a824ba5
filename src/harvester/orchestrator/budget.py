"""
Token budget for text handed to the extraction and evaluation calls.

Narrative answers can be long; each downstream call gets a character limit
(~4 chars per token) and the text is cut at a line boundary to fit.
"""

from dataclasses import dataclass


@dataclass
class TokenBudget:
    """Character limits per downstream call (~4 chars per token)."""

    extraction: int = 12000
    evaluation: int = 8000

    def __post_init__(self) -> None:
        if self.extraction <= 0 or self.evaluation <= 0:
            raise ValueError("TokenBudget limits must be positive")

    def for_extraction(self, text: str) -> str:
        return truncate(text, self.extraction)

    def for_evaluation(self, text: str) -> str:
        return truncate(text, self.evaluation)


def truncate(text: str, max_chars: int) -> str:
    """Truncate text to max_chars, ending at a line boundary."""
    if len(text) <= max_chars:
        return text

    truncated = text[:max_chars]
    # Find last newline to avoid cutting mid-line
    last_newline = truncated.rfind("\n")
    if last_newline > max_chars * 0.5:
        truncated = truncated[:last_newline]

    return truncated + "\n\n[...truncated for token budget]"
