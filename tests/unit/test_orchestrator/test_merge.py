"""
Tests for entity merge logic.

Verifies:
- One record per normalized identity key
- First-seen casing and first-writer-wins per attribute
- Deterministic traversal (depth, then lexicographic query text)
- Idempotence and independence from child completion order
"""

import pytest

from harvester.models import (
    EntityCollection,
    EntityRecord,
    QueryNode,
    ResultTree,
    normalize_name,
)
from harvester.orchestrator.merge import EntityMerger, merge_entities, traversal_order


def _tree(query, entities=(), children=(), depth=0, parent=None):
    """Build a ResultTree; children are (query, entities, grandchildren) tuples."""
    node = QueryNode(query=query, depth=depth, parent_query=parent)
    built_children = {
        child_query: _tree(child_query, child_entities, grandchildren, depth + 1, query)
        for child_query, child_entities, grandchildren in children
    }
    return ResultTree(
        node=node,
        entities=EntityCollection(entities=tuple(entities), entity_type="company"),
        children=built_children,
    )


def test_case_and_whitespace_variants_merge_into_one_record():
    """' Acme Corp ' and 'acme corp' are one entity; attributes are unioned."""
    tree = _tree(
        "root",
        children=[
            ("a branch", [EntityRecord(name=" Acme Corp ", attributes={"founded": 1990})], ()),
            ("b branch", [EntityRecord(name="acme corp", attributes={"hq": "Denver"})], ()),
        ],
    )

    merged = merge_entities(tree)

    assert len(merged) == 1
    record = merged.entities[0]
    assert record.name == " Acme Corp "
    assert dict(record.attributes) == {"founded": 1990, "hq": "Denver"}


def test_first_writer_wins_per_attribute():
    tree = _tree(
        "root",
        entities=[EntityRecord(name="Globex", attributes={"ceo": "Hank Scorpio"})],
        children=[
            (
                "child",
                [EntityRecord(name="GLOBEX", attributes={"ceo": "Someone Else", "sector": "energy"})],
                (),
            ),
        ],
    )

    merged = merge_entities(tree)

    record = merged.get("globex")
    assert record.name == "Globex"
    assert record.attributes["ceo"] == "Hank Scorpio"
    assert record.attributes["sector"] == "energy"


def test_lexicographic_order_within_depth_decides_conflicts():
    """Children inserted as (zeta, alpha) are still visited alpha first."""
    tree = _tree(
        "root",
        children=[
            ("zeta", [EntityRecord(name="Initech", attributes={"seen_in": "zeta"})], ()),
            ("alpha", [EntityRecord(name="initech", attributes={"seen_in": "alpha"})], ()),
        ],
    )

    merged = merge_entities(tree)

    assert merged.entities[0].name == "initech"
    assert merged.entities[0].attributes["seen_in"] == "alpha"


def test_shallower_nodes_win_over_deeper_ones():
    tree = _tree(
        "root",
        children=[
            (
                "aaa",
                [],
                (("aaa deeper", [EntityRecord(name="Hooli", attributes={"v": "depth2"})], ()),),
            ),
            ("zzz", [EntityRecord(name="Hooli", attributes={"v": "depth1"})], ()),
        ],
    )

    merged = merge_entities(tree)

    assert merged.get("hooli").attributes["v"] == "depth1"


def test_traversal_visits_every_node_once_breadth_first():
    tree = _tree(
        "root",
        children=[
            ("b", [], (("b2", [], ()), ("b1", [], ()))),
            ("a", [], (("a1", [], ()),)),
        ],
    )

    order = [node.node.query for node in traversal_order(tree)]

    assert order == ["root", "a", "b", "a1", "b1", "b2"]


def test_merge_is_idempotent():
    tree = _tree(
        "root",
        entities=[EntityRecord(name="Umbrella", attributes={"x": 1}, source="https://a.example")],
        children=[("c", [EntityRecord(name="umbrella ", attributes={"y": 2})], ())],
    )
    merger = EntityMerger()

    first = merger.merge(tree)
    second = merger.merge(tree)

    assert first == second
    assert first.to_dict() == second.to_dict()


def test_merge_ignores_child_insertion_order():
    """Shuffling the order children were attached does not change the output."""
    branches = [
        ("q1", [EntityRecord(name="Wayne Enterprises", attributes={"from": "q1"})], ()),
        ("q2", [EntityRecord(name="wayne enterprises", attributes={"from": "q2", "city": "Gotham"})], ()),
        ("q3", [EntityRecord(name="Stark Industries", attributes={"from": "q3"})], ()),
    ]

    forward = merge_entities(_tree("root", children=branches))
    backward = merge_entities(_tree("root", children=list(reversed(branches))))

    assert forward.to_dict() == backward.to_dict()


def test_no_duplicate_identity_keys():
    variants = ["Acme", "ACME", " acme", "a c m e", "Acme  Inc", "acme inc", "Acme\tInc"]
    tree = _tree(
        "root",
        entities=[EntityRecord(name=v) for v in variants[:3]],
        children=[
            ("x", [EntityRecord(name=v) for v in variants[3:]], ()),
            ("y", [EntityRecord(name=v) for v in variants], ()),
        ],
    )

    merged = merge_entities(tree)
    keys = [normalize_name(e.name) for e in merged]

    assert len(keys) == len(set(keys))
    assert sorted(keys) == ["a c m e", "acme", "acme inc"]


def test_source_is_filled_only_when_missing():
    tree = _tree(
        "root",
        entities=[EntityRecord(name="Soylent", source=None)],
        children=[
            ("a", [EntityRecord(name="soylent", source="https://first.example")], ()),
            ("b", [EntityRecord(name="Soylent", source="https://second.example")], ()),
        ],
    )

    merged = merge_entities(tree)

    assert merged.get("Soylent").source == "https://first.example"


def test_empty_tree_merges_to_empty_set():
    merged = merge_entities(_tree("root"))

    assert len(merged) == 0
    assert merged.names() == []


@pytest.mark.parametrize("name", ["  Acme   Corp  ", "ACME CORP", "acme\ncorp"])
def test_get_accepts_any_spelling(name):
    merged = merge_entities(_tree("root", entities=[EntityRecord(name="Acme Corp")]))

    assert merged.get(name) is not None
