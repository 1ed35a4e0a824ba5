"""Cooperative cancellation for search sessions."""

from __future__ import annotations


class CancellationToken:
    """
    Shared flag checked before every node dispatch in a session.

    Tripping the token never interrupts calls already in flight; it only
    stops new queries from being dispatched. The orchestrator trips it itself
    when the awaiting task is cancelled.
    """

    def __init__(self) -> None:
        self._cancel_requested = False

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested

    def request_cancel(self) -> None:
        self._cancel_requested = True

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancel_requested})"
