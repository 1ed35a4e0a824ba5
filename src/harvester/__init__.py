"""
Harvester - Recursive entity research with completeness-driven follow-ups.

Given a natural-language query, harvester obtains a narrative answer, extracts
structured entities from it, judges whether coverage is complete, and spawns
bounded follow-up queries recursively, merging every discovered entity into
one deduplicated set.

Example:
    import asyncio
    from harvester import RecursiveOrchestrator
    from harvester.clients import LLMAnsweringClient, LLMExtractionClient
    from harvester.clients.adapters import AnthropicAdapter, OpenRouterAdapter
    from harvester.orchestrator import LLMCompletenessEvaluator

    async def main():
        claude = AnthropicAdapter(api_key="...")
        orchestrator = RecursiveOrchestrator(
            answering=LLMAnsweringClient(
                live=OpenRouterAdapter(model="perplexity/sonar", api_key="..."),
                fallback=claude,
            ),
            extraction=LLMExtractionClient(claude),
            evaluator=LLMCompletenessEvaluator(claude),
            config={"max_depth": 2, "max_queries_per_level": 3},
            entity_type="company",
        )

        tree, merged = await orchestrator.search("Who makes solid-state batteries?")
        for entity in merged:
            print(entity.name, dict(entity.attributes))

    asyncio.run(main())
"""

__version__ = "0.1.0"

# Core exports
from .config import ConfigurationInvalid, OrchestratorConfig
from .models import (
    EntityCollection,
    EntityRecord,
    Evaluation,
    MergedEntitySet,
    QueryNode,
    RawAnswer,
    ResultTree,
    SearchSession,
    SourceKind,
)
from .orchestrator import CancellationToken, EntityMerger, RecursiveOrchestrator

__all__ = [
    "__version__",
    "RecursiveOrchestrator",
    "EntityMerger",
    "CancellationToken",
    "OrchestratorConfig",
    "ConfigurationInvalid",
    "QueryNode",
    "RawAnswer",
    "SourceKind",
    "EntityRecord",
    "EntityCollection",
    "Evaluation",
    "ResultTree",
    "MergedEntitySet",
    "SearchSession",
]
