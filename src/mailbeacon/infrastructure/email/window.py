"""Newest-first message window shared by both mail adapters."""

from __future__ import annotations

DEFAULT_WINDOW = 10


def recent_window(count: int, size: int = DEFAULT_WINDOW) -> range:
    """Sequence numbers of the newest ``size`` messages in a ``count``-message mailbox.

    Returns ``[max(1, count - size + 1), count]`` inclusive, or an empty range
    for an empty mailbox. Messages older than the window are never looked at,
    so a burst of more than ``size`` arrivals between two polls loses its
    oldest members.
    """
    if count <= 0 or size <= 0:
        return range(0)
    return range(max(1, count - size + 1), count + 1)
