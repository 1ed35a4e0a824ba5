"""
Recursive search orchestrator.

The RecursiveOrchestrator is the control loop of a search session:
- Dispatches a query to the answering client
- Extracts entities and evaluates completeness concurrently over the answer
- Recurses into bounded follow-up queries while coverage is incomplete
- Merges every branch's entities once, after all branches have joined

Per node: DISPATCHED -> ANSWERED -> EXTRACTED/EVALUATED -> RECURSING | TERMINAL.
Every external call runs under per_call_timeout_seconds. A timed-out or failing
answer ends the node; extraction and evaluation degrade to an empty collection
and the fallback judgment.
The root moves to MERGED after the merge.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, TypeVar

from ..clients.base import AnsweringUnavailable
from ..config import ConfigurationInvalid, OrchestratorConfig
from ..models import (
    EntityCollection,
    Evaluation,
    NodeStatus,
    QueryNode,
    RawAnswer,
    ResultTree,
    SearchSession,
    normalize_name,
)
from ..utils.logging import StructuredLogger
from .budget import TokenBudget
from .cancel import CancellationToken
from .evaluation import fallback_evaluation
from .merge import EntityMerger

if TYPE_CHECKING:
    from ..clients.protocol import AnsweringClient, CompletenessEvaluator, ExtractionClient

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class _SessionState:
    """Per-session resources shared by every branch."""

    semaphore: asyncio.Semaphore
    cancel_token: CancellationToken
    entity_type: str
    dispatched: int = 0
    in_flight: set[asyncio.Future[Any]] = field(default_factory=set)


def _preview(text: str, max_chars: int = 60) -> str:
    return text if len(text) <= max_chars else text[:max_chars] + "..."


def _validate_config(config: OrchestratorConfig) -> None:
    """Re-check limits in case the config was built without validation."""
    if config.max_depth < 0:
        raise ConfigurationInvalid(f"max_depth must be >= 0, got {config.max_depth}")
    if config.max_queries_per_level < 0:
        raise ConfigurationInvalid(
            f"max_queries_per_level must be >= 0, got {config.max_queries_per_level}"
        )
    if config.global_concurrency_limit < 1:
        raise ConfigurationInvalid(
            f"global_concurrency_limit must be >= 1, got {config.global_concurrency_limit}"
        )
    if config.per_call_timeout_seconds <= 0:
        raise ConfigurationInvalid(
            f"per_call_timeout_seconds must be > 0, got {config.per_call_timeout_seconds}"
        )
    if config.max_output_length <= 0:
        raise ConfigurationInvalid(
            f"max_output_length must be > 0, got {config.max_output_length}"
        )


class RecursiveOrchestrator:
    """
    Depth-bounded recursive search with parallel fan-out.

    Collaborators are injected so tests can substitute deterministic fakes.
    Each call to ``search`` owns its own concurrency pool and cancellation
    token; the orchestrator itself only keeps run statistics.
    """

    def __init__(
        self,
        answering: AnsweringClient,
        extraction: ExtractionClient,
        evaluator: CompletenessEvaluator,
        config: OrchestratorConfig | Mapping[str, Any] | None = None,
        entity_type: str = "organization",
        budget: TokenBudget | None = None,
        merger: EntityMerger | None = None,
    ):
        """
        Initialize orchestrator.

        Args:
            answering: Client turning queries into narrative answers
            extraction: Client turning answers into entity collections
            evaluator: Completeness judge driving recursion
            config: Recursion/concurrency limits (dict values are validated)
            entity_type: Default entity type to extract
            budget: Character limits for text sent to extraction/evaluation
            merger: Entity merger applied once per session

        Raises:
            ConfigurationInvalid: If any limit is out of range
        """
        if config is None:
            config = OrchestratorConfig()
        elif isinstance(config, Mapping):
            config = OrchestratorConfig.create(**config)
        _validate_config(config)

        self.answering = answering
        self.extraction = extraction
        self.evaluator = evaluator
        self.config = config
        self.entity_type = entity_type
        self.budget = budget or TokenBudget()
        self.merger = merger or EntityMerger()

        self.sessions_run = 0
        self.total_nodes_dispatched = 0
        self.session_history: list[SearchSession] = []

    async def search(
        self,
        query: str,
        entity_type: str | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> SearchSession:
        """
        Run one recursive search session.

        Args:
            query: Initial natural-language query
            entity_type: Entity type to extract (defaults to the orchestrator's)
            cancel_token: Token the caller can trip to stop further dispatch

        Returns:
            SearchSession holding the ResultTree and the MergedEntitySet
        """
        if not query or not query.strip():
            raise ValueError("query must be a non-empty string")

        start_time = time.monotonic()
        state = _SessionState(
            semaphore=asyncio.Semaphore(self.config.global_concurrency_limit),
            cancel_token=cancel_token or CancellationToken(),
            entity_type=entity_type or self.entity_type,
        )
        root = QueryNode(query=query.strip(), depth=0)

        logger.info(
            f"=== Search started: {_preview(root.query)!r} === "
            f"(entity_type={state.entity_type}, max_depth={self.config.max_depth}, "
            f"branching={self.config.max_queries_per_level}, parallel={self.config.parallel})"
        )

        try:
            tree = await self._run_node(root, state)
        except asyncio.CancelledError:
            state.cancel_token.request_cancel()
            logger.warning("Search cancelled by caller, no further queries will be dispatched")
            raise

        if tree is None:
            tree = ResultTree(
                node=root,
                entities=EntityCollection.empty(state.entity_type),
                status=NodeStatus.TERMINAL,
                error="cancelled before dispatch",
            )

        merged = self.merger.merge(tree)
        if not tree.failed:
            tree = replace(tree, status=NodeStatus.MERGED)

        session = SearchSession(
            tree=tree,
            merged=merged,
            elapsed_seconds=time.monotonic() - start_time,
            cancelled=state.cancel_token.cancelled,
        )

        self.sessions_run += 1
        self.total_nodes_dispatched += state.dispatched
        self.session_history.append(session)

        logger.info(
            f"=== Search complete === {state.dispatched} queries, "
            f"{len(merged)} distinct entities, {session.elapsed_seconds:.1f}s"
            + (" (cancelled)" if session.cancelled else "")
        )

        return session

    async def _external(
        self,
        state: _SessionState,
        label: str,
        make_call: Callable[[], Awaitable[T]],
    ) -> T:
        """
        Run one external call inside the session's concurrency pool.

        Every call carries the per-call deadline and raises TimeoutError past it.
        The call is shielded: if the awaiting branch is cancelled, the call
        still runs to completion (or its deadline) and releases its slot then.
        """
        timeout = self.config.per_call_timeout_seconds

        async def with_deadline() -> T:
            try:
                return await asyncio.wait_for(make_call(), timeout=timeout)
            except TimeoutError as e:
                raise TimeoutError(f"{label} exceeded {timeout}s") from e

        await state.semaphore.acquire()
        try:
            task = asyncio.ensure_future(with_deadline())
        except BaseException:
            state.semaphore.release()
            raise

        state.in_flight.add(task)

        def _on_done(done: asyncio.Future[Any]) -> None:
            state.semaphore.release()
            state.in_flight.discard(done)
            if not done.cancelled():
                # Mark retrieved; the awaiting branch re-raises it if still alive
                done.exception()

        task.add_done_callback(_on_done)
        return await asyncio.shield(task)

    async def _answer(self, node: QueryNode, state: _SessionState) -> RawAnswer:
        """Answer a node's query; any failure surfaces as AnsweringUnavailable."""
        try:
            return await self._external(
                state,
                "answering",
                lambda: self.answering.answer(node.query, self.config.max_output_length),
            )
        except AnsweringUnavailable:
            raise
        except Exception as e:
            raise AnsweringUnavailable(node.query, e) from e

    async def _extract(
        self, answer: RawAnswer, state: _SessionState, log: StructuredLogger
    ) -> EntityCollection:
        """Extract entities from an answer; any failure yields an empty collection."""
        try:
            return await self._external(
                state,
                "extraction",
                lambda: self.extraction.extract(
                    self.budget.for_extraction(answer.content), state.entity_type
                ),
            )
        except Exception as e:
            log.warning(f"Extraction failed ({type(e).__name__}: {e}), no entities recorded")
            return EntityCollection.empty(state.entity_type)

    async def _evaluate(
        self, node: QueryNode, answer: RawAnswer, state: _SessionState, log: StructuredLogger
    ) -> Evaluation:
        """Judge an answer; any failure yields the conservative fallback judgment."""
        try:
            return await self._external(
                state,
                "evaluation",
                lambda: self.evaluator.evaluate(
                    node.query, self.budget.for_evaluation(answer.content)
                ),
            )
        except Exception as e:
            log.warning(f"Evaluation failed ({type(e).__name__}: {e}), using fallback judgment")
            return fallback_evaluation(node.query)

    def _select_follow_ups(self, node: QueryNode, evaluation: Evaluation) -> list[str]:
        """Drop blank and self-loop queries, then cap to the branching factor."""
        own_key = normalize_name(node.query)
        candidates = [
            q.strip()
            for q in evaluation.follow_up_queries
            if q.strip() and normalize_name(q) != own_key
        ]
        return candidates[: self.config.max_queries_per_level]

    async def _run_node(self, node: QueryNode, state: _SessionState) -> ResultTree | None:
        """
        Process one query node and its follow-up subtree.

        Returns:
            ResultTree for the node, or None if cancellation was observed
            before the node could be dispatched
        """
        if state.cancel_token.cancelled:
            return None

        log = StructuredLogger(__name__, depth=node.depth, query=repr(_preview(node.query, 40)))
        state.dispatched += 1
        log.debug(NodeStatus.DISPATCHED.value)

        try:
            answer = await self._answer(node, state)
        except AnsweringUnavailable as e:
            log.warning(f"Answering unavailable, branch terminates: {e}")
            return ResultTree(
                node=node,
                entities=EntityCollection.empty(state.entity_type),
                status=NodeStatus.TERMINAL,
                error=str(e),
            )

        log.debug(
            f"{NodeStatus.ANSWERED.value} ({answer.source_kind.value}, "
            f"{len(answer.content)} chars)"
        )

        entities, evaluation = await asyncio.gather(
            self._extract(answer, state, log),
            self._evaluate(node, answer, state, log),
        )

        log.info(
            f"{len(entities)} entities, "
            f"{'comprehensive' if evaluation.is_comprehensive else 'incomplete'}, "
            f"{len(evaluation.follow_up_queries)} follow-up(s) suggested"
        )

        follow_ups = self._select_follow_ups(node, evaluation)
        should_recurse = (
            node.depth < self.config.max_depth
            and not evaluation.is_comprehensive
            and bool(follow_ups)
        )

        children: dict[str, ResultTree] = {}
        if should_recurse and not state.cancel_token.cancelled:
            log.debug(f"{NodeStatus.RECURSING.value} into {len(follow_ups)} branch(es)")
            children = await self._run_children(node, follow_ups, state)

        return ResultTree(
            node=node,
            answer=answer,
            entities=entities,
            evaluation=evaluation,
            children=children,
            status=NodeStatus.TERMINAL,
        )

    async def _run_children(
        self,
        node: QueryNode,
        follow_ups: list[str],
        state: _SessionState,
    ) -> dict[str, ResultTree]:
        """Run follow-up branches, concurrently or one after another."""
        child_nodes = [node.child(query) for query in follow_ups]

        if self.config.parallel:
            results = await asyncio.gather(
                *(self._run_node(child, state) for child in child_nodes)
            )
        else:
            results = []
            for child in child_nodes:
                results.append(await self._run_node(child, state))

        # Keyed by query text in follow-up order; repeated text gets a suffix
        children: dict[str, ResultTree] = {}
        for child, result in zip(child_nodes, results, strict=True):
            if result is None:
                continue
            key = child.query
            n = 2
            while key in children:
                key = f"{child.query} #{n}"
                n += 1
            children[key] = result

        return children

    def get_summary(self) -> str:
        """
        Get human-readable orchestrator summary.

        Returns:
            Formatted summary string
        """
        total_entities = sum(len(s.merged) for s in self.session_history)
        cancelled = sum(1 for s in self.session_history if s.cancelled)

        return f"""Recursive Orchestrator Summary
==============================
Sessions: {self.sessions_run} ({cancelled} cancelled)
Queries dispatched: {self.total_nodes_dispatched}
Distinct entities (sum over sessions): {total_entities}
Limits: max_depth={self.config.max_depth} branching={self.config.max_queries_per_level} \
parallel={self.config.parallel} concurrency={self.config.global_concurrency_limit}
"""
