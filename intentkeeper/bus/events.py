"""Event types exchanged with the chat transport."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from intentkeeper.agent.handler import HandlerReply


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class InboundMessage:
    """Utterance received from a client."""

    session_id: str
    content: str
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_frame(cls, session_id: str, frame: str) -> InboundMessage:
        """Accept either ``{"text": "..."}`` or a bare text frame."""
        content = frame
        stripped = frame.strip()
        if stripped.startswith("{"):
            try:
                data = json.loads(stripped)
            except json.JSONDecodeError:
                data = None
            if isinstance(data, dict):
                content = str(data.get("text") or data.get("message") or "")
        return cls(session_id=session_id, content=content.strip())

    @property
    def is_empty(self) -> bool:
        return not self.content


@dataclass
class OutboundMessage:
    """Bot reply in the transport's wire shape."""

    text: str
    metadata: dict[str, Any] = field(default_factory=dict)
    sender: str = "bot"
    timestamp: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_reply(cls, reply: HandlerReply) -> OutboundMessage:
        return cls(text=reply.text, metadata=reply.metadata())

    def to_payload(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "sender": self.sender,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }
