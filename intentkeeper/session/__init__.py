"""Per-session conversational context."""

from intentkeeper.session.history import ChatHistoryEntry, SessionHistory

__all__ = ["ChatHistoryEntry", "SessionHistory"]
