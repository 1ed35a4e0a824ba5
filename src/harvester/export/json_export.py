"""
JSON export for search sessions.

Produces machine-readable JSON with the complete session artifact:
- Merged entities (the primary deliverable)
- Full result tree provenance for auditing
- Session metadata and statistics
"""

import json
from collections import Counter
from datetime import datetime
from pathlib import Path
from typing import Any

from .. import __version__
from ..models import SearchSession


def session_stats(session: SearchSession) -> dict[str, Any]:
    """Compute summary statistics over a session's result tree."""
    nodes = list(session.tree.iter_nodes())
    source_kinds = Counter(
        node.answer.source_kind.value for node in nodes if node.answer is not None
    )

    return {
        "total_nodes": len(nodes),
        "failed_nodes": sum(1 for node in nodes if node.failed),
        "max_depth": session.tree.max_depth(),
        "entities_extracted": sum(len(node.entities) for node in nodes),
        "distinct_entities": len(session.merged),
        "answers_by_source": dict(source_kinds),
    }


def session_to_dict(session: SearchSession, include_metadata: bool = True) -> dict[str, Any]:
    """
    Serialize a search session to a JSON-compatible dict.

    Example output:
        {
            "metadata": {"exported_at": "...", "version": "0.1.0"},
            "query": "Who supplies lithium to EV makers?",
            "cancelled": false,
            "elapsed_seconds": 12.4,
            "stats": {"total_nodes": 4, "distinct_entities": 9, ...},
            "entities": [{"name": "Albemarle", "attributes": {...}, "source": "..."}],
            "tree": {"query": "...", "depth": 0, "children": {...}}
        }
    """
    data: dict[str, Any] = {}
    if include_metadata:
        data["metadata"] = {
            "exported_at": datetime.now().isoformat(),
            "version": __version__,
        }

    data.update(
        {
            "query": session.tree.node.query,
            "cancelled": session.cancelled,
            "elapsed_seconds": round(session.elapsed_seconds, 3),
            "stats": session_stats(session),
            "entities": session.merged.to_dict(),
            "tree": session.tree.to_dict(),
        }
    )
    return data


def export_session_to_json(
    session: SearchSession,
    output_path: Path | str,
    pretty: bool = True,
    include_metadata: bool = True,
) -> None:
    """
    Export a search session to a JSON file.

    Args:
        session: Completed search session
        output_path: Output file path
        pretty: Pretty-print JSON with indentation
        include_metadata: Include export metadata
    """
    data = session_to_dict(session, include_metadata=include_metadata)

    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2 if pretty else None, ensure_ascii=False, default=str)
