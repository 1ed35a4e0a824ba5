"""Export functionality for search sessions."""

from .json_export import export_session_to_json, session_stats, session_to_dict

__all__ = [
    "export_session_to_json",
    "session_stats",
    "session_to_dict",
]
