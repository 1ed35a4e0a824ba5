"""
Data models for recursive entity research.

This module defines the records that flow through a search session:
- QueryNode: One query dispatched at a specific recursion depth
- RawAnswer: Narrative text returned by the answering service
- EntityRecord / EntityCollection: Structured entities extracted from an answer
- Evaluation: Completeness judgment that drives recursion
- ResultTree: Full provenance of a session, rooted at the initial query
- MergedEntitySet: Deduplicated entities across the whole tree
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any


def normalize_name(name: str) -> str:
    """Identity key for an entity name: whitespace collapsed, case folded."""
    return " ".join(name.split()).casefold()


class SourceKind(str, Enum):
    """Which answering path produced a RawAnswer."""

    LIVE = "live"
    FALLBACK = "fallback"


class NodeStatus(str, Enum):
    """Lifecycle states of a query node."""

    DISPATCHED = "dispatched"
    ANSWERED = "answered"
    EXTRACTED = "extracted"
    EVALUATED = "evaluated"
    RECURSING = "recursing"
    TERMINAL = "terminal"
    MERGED = "merged"


@dataclass(frozen=True)
class QueryNode:
    """A query dispatched at a given depth."""

    query: str
    depth: int = 0
    parent_query: str | None = None

    def child(self, query: str) -> QueryNode:
        """Create the follow-up node one level deeper."""
        return QueryNode(query=query, depth=self.depth + 1, parent_query=self.query)


@dataclass(frozen=True)
class RawAnswer:
    """Narrative answer for one query node."""

    content: str
    elapsed_seconds: float
    source_kind: SourceKind
    model: str = ""


@dataclass(frozen=True)
class EntityRecord:
    """A single extracted entity."""

    name: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    source: str | None = None

    def __post_init__(self) -> None:
        # Freeze attributes so records can be shared across branches safely
        object.__setattr__(self, "attributes", MappingProxyType(dict(self.attributes)))

    @property
    def identity_key(self) -> str:
        return normalize_name(self.name)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "attributes": dict(self.attributes),
            "source": self.source,
        }


@dataclass(frozen=True)
class EntityCollection:
    """Entities of one type extracted from one answer."""

    entities: tuple[EntityRecord, ...]
    entity_type: str
    completeness_score: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "entities", tuple(self.entities))
        if not 0.0 <= self.completeness_score <= 1.0:
            raise ValueError(
                f"completeness_score must be in [0, 1], got {self.completeness_score}"
            )

    @classmethod
    def empty(cls, entity_type: str) -> EntityCollection:
        """Fallback collection used whenever extraction cannot produce results."""
        return cls(entities=(), entity_type=entity_type, completeness_score=0.0)

    def __len__(self) -> int:
        return len(self.entities)


@dataclass(frozen=True)
class Evaluation:
    """Completeness judgment for one answer."""

    is_comprehensive: bool
    missing_information: tuple[str, ...] = ()
    follow_up_queries: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "missing_information", tuple(self.missing_information))
        object.__setattr__(self, "follow_up_queries", tuple(self.follow_up_queries))


@dataclass(frozen=True)
class ResultTree:
    """
    Provenance of one query node and its follow-up recursion.

    A node whose answering failed has no answer, no evaluation, an empty
    entity collection and the failure message in ``error``.
    """

    node: QueryNode
    entities: EntityCollection
    answer: RawAnswer | None = None
    evaluation: Evaluation | None = None
    children: Mapping[str, ResultTree] = field(default_factory=dict)
    status: NodeStatus = NodeStatus.TERMINAL
    error: str | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "children", MappingProxyType(dict(self.children)))

    @property
    def failed(self) -> bool:
        return self.error is not None

    def iter_nodes(self) -> Iterator[ResultTree]:
        """Pre-order walk over this subtree."""
        yield self
        for child in self.children.values():
            yield from child.iter_nodes()

    def node_count(self) -> int:
        return sum(1 for _ in self.iter_nodes())

    def max_depth(self) -> int:
        return max(t.node.depth for t in self.iter_nodes())

    def to_dict(self) -> dict[str, Any]:
        answer = None
        if self.answer is not None:
            answer = {
                "content": self.answer.content,
                "elapsed_seconds": self.answer.elapsed_seconds,
                "source_kind": self.answer.source_kind.value,
                "model": self.answer.model,
            }

        evaluation = None
        if self.evaluation is not None:
            evaluation = {
                "is_comprehensive": self.evaluation.is_comprehensive,
                "missing_information": list(self.evaluation.missing_information),
                "follow_up_queries": list(self.evaluation.follow_up_queries),
            }

        return {
            "query": self.node.query,
            "depth": self.node.depth,
            "parent_query": self.node.parent_query,
            "status": self.status.value,
            "error": self.error,
            "answer": answer,
            "entities": {
                "entity_type": self.entities.entity_type,
                "completeness_score": self.entities.completeness_score,
                "entities": [e.to_dict() for e in self.entities.entities],
            },
            "evaluation": evaluation,
            "children": {key: child.to_dict() for key, child in self.children.items()},
        }


@dataclass(frozen=True)
class MergedEntitySet:
    """Deduplicated entities, one per identity key, in first-seen order."""

    entities: tuple[EntityRecord, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "entities", tuple(self.entities))

    def __len__(self) -> int:
        return len(self.entities)

    def __iter__(self) -> Iterator[EntityRecord]:
        return iter(self.entities)

    def names(self) -> list[str]:
        return [e.name for e in self.entities]

    def get(self, name: str) -> EntityRecord | None:
        """Look up an entity by any spelling that normalizes to its identity key."""
        key = normalize_name(name)
        return next((e for e in self.entities if e.identity_key == key), None)

    def to_dict(self) -> list[dict[str, Any]]:
        return [e.to_dict() for e in self.entities]


@dataclass(frozen=True)
class SearchSession:
    """Result of one search: the provenance tree and the merged entities."""

    tree: ResultTree
    merged: MergedEntitySet
    elapsed_seconds: float = 0.0
    cancelled: bool = False

    def __iter__(self) -> Iterator[Any]:
        # Allows ``tree, merged = await orchestrator.search(...)``
        yield self.tree
        yield self.merged
