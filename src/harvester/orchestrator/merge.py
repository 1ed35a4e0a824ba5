"""
Entity merge logic for consolidating a session's result tree.

This is the consolidation step:
- Walks every node of the tree exactly once in a fixed order
- Deduplicates entities by normalized name
- Unions attributes across occurrences, first writer wins per attribute

The traversal order is breadth-first by depth, then lexicographic by query
text within a depth (ties broken by the ancestor query path, then by child
position). It never depends on which branch finished first, so concurrent and
sequential runs over the same answers merge identically.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from ..models import EntityRecord, MergedEntitySet, ResultTree

logger = logging.getLogger(__name__)


def traversal_order(tree: ResultTree) -> list[ResultTree]:
    """
    Nodes of a tree in merge order.

    Args:
        tree: Root of the result tree

    Returns:
        Every node once, sorted by (depth, query, ancestor queries, child positions)
    """
    keyed: list[tuple[tuple[Any, ...], ResultTree]] = []
    stack: list[tuple[ResultTree, tuple[str, ...], tuple[int, ...]]] = [(tree, (), ())]

    while stack:
        node, ancestors, positions = stack.pop()
        key = (node.node.depth, node.node.query, ancestors, positions)
        keyed.append((key, node))
        for i, child in enumerate(node.children.values()):
            stack.append((child, ancestors + (node.node.query,), positions + (i,)))

    keyed.sort(key=lambda item: item[0])
    return [node for _, node in keyed]


@dataclass
class _MergeSlot:
    """Mutable accumulator for one identity key during a merge pass."""

    name: str
    source: str | None
    attributes: dict[str, Any] = field(default_factory=dict)

    def absorb(self, record: EntityRecord) -> int:
        """Add attributes not already present. Returns how many were added."""
        added = 0
        for key, value in record.attributes.items():
            if key not in self.attributes:
                self.attributes[key] = value
                added += 1
        if self.source is None and record.source:
            self.source = record.source
        return added

    def freeze(self) -> EntityRecord:
        return EntityRecord(name=self.name, attributes=self.attributes, source=self.source)


class EntityMerger:
    """Deduplicates entities gathered across a whole result tree."""

    def merge(self, tree: ResultTree) -> MergedEntitySet:
        """
        Merge all entity collections in a tree.

        Conflict policy: the first occurrence in traversal order fixes the
        record's name (including its casing); later occurrences only
        contribute attribute keys that are not yet present. Existing attribute
        values are never overwritten. ``source`` follows the same rule as an
        attribute: the first non-empty source in traversal order is kept, so a
        later occurrence supplies it only when every earlier one had none.

        Args:
            tree: Completed result tree

        Returns:
            MergedEntitySet with one record per identity key, in first-seen order
        """
        slots: dict[str, _MergeSlot] = {}
        stats = {"nodes": 0, "seen": 0, "created": 0, "updated": 0}

        for node in traversal_order(tree):
            stats["nodes"] += 1
            for record in node.entities.entities:
                stats["seen"] += 1
                key = record.identity_key
                if not key:
                    continue

                slot = slots.get(key)
                if slot is None:
                    slots[key] = _MergeSlot(
                        name=record.name,
                        source=record.source,
                        attributes=dict(record.attributes),
                    )
                    stats["created"] += 1
                elif slot.absorb(record):
                    stats["updated"] += 1

        logger.info(
            f"Merge complete: {stats['nodes']} nodes, {stats['seen']} entities seen, "
            f"{stats['created']} distinct, {stats['updated']} enriched"
        )

        return MergedEntitySet(entities=tuple(slot.freeze() for slot in slots.values()))


def merge_entities(tree: ResultTree) -> MergedEntitySet:
    """Merge a result tree with the default merger."""
    return EntityMerger().merge(tree)
