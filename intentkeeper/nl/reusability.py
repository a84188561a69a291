"""Static reusability gate: the first pass before the arbiter LLM is consulted.

Two independent checks run on the trimmed, lower-cased utterance:

* ``classify_context`` flags replies that only make sense inside the current
  conversation ("yes", "tell me more", "hit") so they are never persisted.
* ``pre_check`` assigns an a-priori verdict from ordered ``(pattern, verdict)``
  rules.  Low-reusability rules are listed before high-reusability rules and
  the first match wins; no match defers the decision to the arbiter.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class PreCheckResult:
    """Verdict of the static pass. ``should_save=None`` means undecided."""

    should_save: bool | None
    reason: str
    score: int
    pattern: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {"shouldSave": self.should_save, "reason": self.reason, "score": self.score}

    def matched(self, pattern: re.Pattern[str]) -> PreCheckResult:
        return PreCheckResult(self.should_save, self.reason, self.score, pattern.pattern)


LOW_REUSABILITY = PreCheckResult(False, "Matches low-reusability pattern", 2)
HIGH_REUSABILITY = PreCheckResult(True, "Matches high-reusability pattern", 8)
UNDECIDED = PreCheckResult(None, "Needs arbiter analysis", 5)
CONTEXT_DEPENDENT = PreCheckResult(False, "Context-dependent", 1)


# ---------------------------------------------------------------------------
# Context-dependent replies: meaningless without the previous turn.
# ---------------------------------------------------------------------------

CONTEXT_DEPENDENT_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"^(yes|yeah|yep|yup|no|nope|nah|sure|okay|ok|alright)\.?$", re.I),
    re.compile(r"^(again|repeat|more|continue|go on|next|another)\.?$", re.I),
    re.compile(r"^(that|this|it|those|these)$", re.I),
    re.compile(r"(do it|do that|say it) again", re.I),
    re.compile(r"tell me more", re.I),
    re.compile(r"what about (it|that|this)", re.I),
    re.compile(r"^(why|how|when|where|what)\?*$", re.I),
    # game moves
    re.compile(r"^(hit|stand|fold|call|raise|spin|roll|flip|draw)\.?$", re.I),
]


# ---------------------------------------------------------------------------
# Pre-check rules.  Order matters: first match wins, so every
# low-reusability rule is evaluated before any high-reusability one.
# ---------------------------------------------------------------------------

_LOW: list[re.Pattern[str]] = [
    # ── personal / account-specific ──
    re.compile(r"\b(my|mine|i|me|we|our)\b.*\b(account|order|password|email|phone|address|name)\b", re.I),
    re.compile(r"\b(order|account|ticket|booking)\s*#?\s*\d+", re.I),
    re.compile(r"\b(call|text|email|contact)\s+(my|the)?\s*(mom|dad|friend|boss|wife|husband)", re.I),

    # ── time-bound one-offs ──
    re.compile(r"\b(today|tomorrow|yesterday|tonight|this morning|last night)\b", re.I),
    re.compile(r"\b(book|schedule|reserve|set)\b.*\b(appointment|meeting|reservation|reminder)\b", re.I),

    # ── greetings & small talk ──
    re.compile(r"^(hi|hello|hey|good morning|good night|bye|goodbye|thanks|thank you)\.?$", re.I),
    re.compile(r"^(how are you|how's it going|what's up|sup)\.?$", re.I),

    # ── games & entertainment ──
    re.compile(r"\b(play|let's play|start|begin)\b.*\b(game|trivia|quiz|riddle|joke)\b", re.I),
    re.compile(r"\b(tell me a|give me a)\s*(joke|riddle|story|fact)\b", re.I),

    # ── very short or vague ──
    re.compile(r"^.{1,10}$"),
    re.compile(r"^(test|testing|asdf|aaa|hello?|hi?|ok|k)$", re.I),

    # ── opinion / preference ──
    re.compile(r"\b(best|favorite|worst|should i|do you think|what do you prefer)\b", re.I),

    # ── current events ──
    re.compile(r"\b(news|latest|recent|current|trending|today's)\b", re.I),
]

_HIGH: list[re.Pattern[str]] = [
    # ── factual definitions ──
    re.compile(r"^what is\s+[a-z\s]+\??$", re.I),
    re.compile(r"^how does\s+[a-z\s]+\s+work\??$", re.I),
    re.compile(r"^explain\s+[a-z\s]+$", re.I),
    re.compile(r"^define\s+[a-z\s]+$", re.I),

    # ── general how-to ──
    re.compile(r"^how (do|can|to)\s+[a-z\s]+\??$", re.I),

    # ── general knowledge ──
    re.compile(r"\b(what|who|where|when|why|how)\b.*\b(invented|discovered|created|founded|started)\b", re.I),
    re.compile(r"\b(capital|population|president|ceo|founder)\s+of\b", re.I),

    # ── technical / educational ──
    re.compile(r"\b(difference between|compare|vs|versus)\b", re.I),
    re.compile(r"\b(example|examples) of\b", re.I),
    re.compile(r"\b(benefits|advantages|disadvantages|pros|cons) of\b", re.I),
]

PRECHECK_RULES: list[tuple[re.Pattern[str], PreCheckResult]] = [
    *((p, LOW_REUSABILITY) for p in _LOW),
    *((p, HIGH_REUSABILITY) for p in _HIGH),
]


def _normalise(text: str) -> str:
    return text.strip().lower()


class HeuristicGate:
    """Pure pattern classifier; holds no state beyond its rule tables."""

    def __init__(
        self,
        context_patterns: list[re.Pattern[str]] | None = None,
        rules: list[tuple[re.Pattern[str], PreCheckResult]] | None = None,
    ) -> None:
        self.context_patterns = CONTEXT_DEPENDENT_PATTERNS if context_patterns is None else context_patterns
        self.rules = PRECHECK_RULES if rules is None else rules

    def classify_context(self, utterance: str) -> bool:
        """True when the utterance only makes sense relative to the previous turn."""
        text = _normalise(utterance)
        return any(p.search(text) for p in self.context_patterns)

    def pre_check(self, utterance: str) -> PreCheckResult:
        text = _normalise(utterance)
        for pattern, verdict in self.rules:
            if pattern.search(text):
                return verdict.matched(pattern)
        return UNDECIDED
