"""Bounded per-session conversation history used as arbiter context."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass

from loguru import logger

MAX_HISTORY_LENGTH = 10


@dataclass(frozen=True, slots=True)
class ChatHistoryEntry:
    user: str
    bot: str


class SessionHistory:
    """
    Ordered (utterance, answer) log per session.

    A session's queue is created lazily on first append and evicts its
    oldest entry once it grows past ``max_length``.  Sessions live only as
    long as the transport connection; ``end`` drops them.
    """

    def __init__(self, max_length: int = MAX_HISTORY_LENGTH) -> None:
        self.max_length = max_length
        self._sessions: dict[str, deque[ChatHistoryEntry]] = {}

    def append(self, session_id: str, entry: ChatHistoryEntry) -> None:
        turns = self._sessions.get(session_id)
        if turns is None:
            turns = self._sessions[session_id] = deque(maxlen=self.max_length)
        turns.append(entry)

    def get(self, session_id: str) -> list[ChatHistoryEntry]:
        return list(self._sessions.get(session_id, ()))

    def render(self, session_id: str) -> str:
        """Plain-text transcript for the arbiter prompt."""
        turns = self.get(session_id)
        if not turns:
            return "No previous conversation."
        return "\n\n".join(f"User: {t.user}\nBot: {t.bot}" for t in turns)

    def end(self, session_id: str) -> bool:
        dropped = self._sessions.pop(session_id, None) is not None
        if dropped:
            logger.debug(f"History dropped for session {session_id}")
        return dropped

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)
