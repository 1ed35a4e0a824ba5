"""Recursive search orchestration: evaluation, recursion and entity merge."""

from .budget import TokenBudget
from .cancel import CancellationToken
from .core import RecursiveOrchestrator
from .evaluation import LLMCompletenessEvaluator, fallback_evaluation
from .merge import EntityMerger, merge_entities, traversal_order

__all__ = [
    "RecursiveOrchestrator",
    "CancellationToken",
    "TokenBudget",
    "LLMCompletenessEvaluator",
    "fallback_evaluation",
    "EntityMerger",
    "merge_entities",
    "traversal_order",
]
