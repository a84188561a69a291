"""Typed schema for the arbiter's JSON verdict.

The arbiter is asked for exactly one JSON object.  Everything except
``intent_action`` is optional and defaulted, so downstream code never has
to guess at missing keys.  ``action`` stays a free string: values outside
``ActionKind`` are carried through and reported by the synchronizer as
``unknown`` rather than rejected here.
"""

from __future__ import annotations

import math
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ANSWER = "I'd be happy to help! Could you tell me more?"


class ActionKind(StrEnum):
    NONE = "none"
    CREATE_NEW = "create_new"
    UPDATE_MATCHED = "update_matched"
    UPDATE_OTHER = "update_other"


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="ignore")


class ReusabilityAnalysis(_Lenient):
    score: int = 0
    would_others_ask: bool = False
    is_time_specific: bool = False
    is_personal: bool = False
    is_factual_knowledge: bool = False
    reasoning: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _clamp_score(cls, value: Any) -> int:
        if value is None:
            return 0
        if isinstance(value, bool):
            raise ValueError("score must be a number")
        try:
            number = float(value)
        except TypeError as exc:
            raise ValueError("score must be a number") from exc
        if not math.isfinite(number):
            raise ValueError("score must be a finite number")
        return max(1, min(10, round(number)))


class MatchAnalysis(_Lenient):
    dialogflow_intent: str = ""
    is_correct_match: bool = False
    mismatch_reason: str | None = None


class ActionMetadata(_Lenient):
    purpose: str = ""
    scope: str = ""
    keywords: list[str] = Field(default_factory=list)


class IntentAction(_Lenient):
    action: str = ActionKind.NONE
    reasoning: str = ""
    target_intent: str | None = None
    new_intent_name: str | None = None
    training_phrases: list[str] = Field(default_factory=list)
    response_template: str | None = None
    metadata: ActionMetadata | None = None

    @field_validator("action", mode="before")
    @classmethod
    def _normalise_action(cls, value: Any) -> str:
        return str(value or ActionKind.NONE).strip().lower()

    @field_validator("training_phrases", mode="before")
    @classmethod
    def _clean_phrases(cls, value: Any) -> list[str]:
        if not value:
            return []
        if isinstance(value, str):
            value = [value]
        elif not isinstance(value, list):
            raise ValueError("training_phrases must be a list of strings")
        return [str(p).strip() for p in value if str(p).strip()]

    @property
    def is_none(self) -> bool:
        return self.action == ActionKind.NONE


class Decision(_Lenient):
    answer: str = DEFAULT_ANSWER
    reusability_analysis: ReusabilityAnalysis | None = None
    match_analysis: MatchAnalysis | None = None
    intent_action: IntentAction

    # Set locally, never read from the arbiter payload.
    failed: bool = Field(default=False, exclude=True)
    override: str | None = Field(default=None, exclude=True)

    @field_validator("answer", mode="before")
    @classmethod
    def _default_answer(cls, value: Any) -> str:
        text = str(value).strip() if value is not None else ""
        return text or DEFAULT_ANSWER

    @property
    def score(self) -> int:
        """Reusability score; a missing analysis counts as 0."""
        return self.reusability_analysis.score if self.reusability_analysis else 0

    @property
    def reported_score(self) -> int | None:
        return self.reusability_analysis.score if self.reusability_analysis else None

    @property
    def action(self) -> str:
        return self.intent_action.action

    @classmethod
    def fallback(cls) -> Decision:
        """Safe default used whenever the arbiter cannot be trusted."""
        decision = cls(answer=DEFAULT_ANSWER, intent_action=IntentAction(action=ActionKind.NONE))
        decision.failed = True
        return decision

    def suppress(self, reasoning: str, override: str) -> Decision:
        """Copy with the action forced to ``none``."""
        action = self.intent_action.model_copy(update={"action": ActionKind.NONE, "reasoning": reasoning})
        return self.model_copy(update={"intent_action": action, "override": override})
