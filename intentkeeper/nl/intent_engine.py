"""NLU engine contract: intent detection plus the intent store behind it.

The core never talks to a concrete NLU vendor directly.  It depends on the
``NluEngine`` protocol below; ``intentkeeper.nl.dialogflow`` provides the
production implementation and tests substitute in-memory fakes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from intentkeeper.memory.metadata_store import IntentMetadata

PROTECTED_INTENTS: frozenset[str] = frozenset({
    "Default Welcome Intent",
    "Default Fallback Intent",
})


def is_protected(display_name: str | None) -> bool:
    return bool(display_name) and display_name in PROTECTED_INTENTS


class NluCallFailure(RuntimeError):
    """Raised when the detect call fails or times out."""


@dataclass(frozen=True, slots=True)
class NluResult:
    """Outcome of a single detect call."""

    intent_name: str
    confidence: float
    reply_text: str = ""


@dataclass
class TrainingPhrase:
    """One example utterance.

    ``parts`` keeps the store's annotated segments (entity types, aliases)
    so phrases read from the store are written back unchanged.
    """

    text: str
    type: str = "EXAMPLE"
    parts: list[dict[str, Any]] = field(default_factory=list)

    @classmethod
    def example(cls, text: str) -> TrainingPhrase:
        return cls(text=text, type="EXAMPLE", parts=[{"text": text}])


@dataclass
class Intent:
    """An intent as stored by the NLU engine.

    ``name`` is the store-assigned id (empty until created); ``display_name``
    is the unique human key.  ``extra`` carries engine-specific fields
    (priority, contexts, parameters, rich messages) that must survive an
    update untouched.
    """

    display_name: str
    training_phrases: list[TrainingPhrase] = field(default_factory=list)
    responses: list[str] = field(default_factory=list)
    name: str = ""
    metadata: IntentMetadata | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def phrase_texts(self) -> list[str]:
        return [tp.text for tp in self.training_phrases]

    def phrase_keys(self) -> set[str]:
        """Case-insensitive phrase set used for deduplication."""
        return {tp.text.lower() for tp in self.training_phrases}

    def summary(self, max_phrases: int = 3) -> dict[str, Any]:
        """Compact form shown to the arbiter in the candidate catalog."""
        purpose = self.metadata.purpose if self.metadata else "unknown"
        return {
            "name": self.display_name,
            "phrases": self.phrase_texts[:max_phrases],
            "purpose": purpose or "unknown",
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "displayName": self.display_name,
            "trainingPhrases": self.phrase_texts,
            "responses": list(self.responses),
            "metadata": self.metadata.model_dump(exclude_none=True) if self.metadata else None,
        }


@dataclass(frozen=True, slots=True)
class ConnectionStatus:
    status: str  # "connected" | "error"
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == "connected"

    def to_dict(self) -> dict[str, str]:
        data = {"status": self.status}
        if self.error:
            data["error"] = self.error
        return data


class NluEngine(Protocol):
    """What the core needs from the external NLU engine."""

    async def detect(self, session_id: str, text: str) -> NluResult: ...

    async def list_intents(self) -> list[Intent]: ...

    async def create_intent(self, intent: Intent) -> Intent: ...

    async def update_intent(self, intent: Intent) -> Intent: ...

    async def check_connection(self) -> ConnectionStatus: ...
