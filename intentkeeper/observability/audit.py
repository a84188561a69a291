"""Decision log – a process-lifetime ring buffer of every persistence decision.

Only the audit trail can tell a genuine ``none`` decision apart from one
forced by an override: entries carry the override label, replies don't.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

MAX_DECISION_LOG = 100


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


@dataclass(frozen=True, slots=True)
class DecisionLogEntry:
    message: str
    df_intent: str
    df_confidence: float
    reusability_score: int | None
    action: str
    blocked: bool
    session_id: str = ""
    override: str | None = None
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "sessionId": self.session_id,
            "message": self.message,
            "dfIntent": self.df_intent,
            "dfConfidence": self.df_confidence,
            "reusabilityScore": self.reusability_score,
            "action": self.action,
            "blocked": self.blocked,
            "override": self.override,
        }


class DecisionLog:
    """Insertion-ordered, bounded, safe to read while sessions append."""

    def __init__(self, max_entries: int = MAX_DECISION_LOG) -> None:
        self.max_entries = max_entries
        self._entries: deque[DecisionLogEntry] = deque(maxlen=max_entries)
        self._lock = threading.Lock()

    def append(self, entry: DecisionLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def recent(self, limit: int | None = None) -> list[DecisionLogEntry]:
        """Oldest-first slice of the newest *limit* entries."""
        with self._lock:
            entries = list(self._entries)
        return entries[-limit:] if limit else entries

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
