"""Append-only status history.

History is a tuple of frozen ``StatusHistoryEntry`` objects, so the only
way to "change" it is to build a longer tuple; earlier entries are
shared, never rewritten.
"""

from __future__ import annotations

from imagery_requests.core.exceptions import HistoryOrderError
from imagery_requests.models.request import StatusHistoryEntry


def append_history(
    history: tuple[StatusHistoryEntry, ...],
    entry: StatusHistoryEntry,
) -> tuple[StatusHistoryEntry, ...]:
    """Return ``history + (entry,)``.

    Raises:
        HistoryOrderError: If *entry* is earlier than the last entry.
    """
    if history and entry.changed_at < history[-1].changed_at:
        msg = (
            f"History entry at {entry.changed_at.isoformat()} precedes "
            f"last entry at {history[-1].changed_at.isoformat()}"
        )
        raise HistoryOrderError(msg)
    return (*history, entry)
