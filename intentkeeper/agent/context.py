"""Context builder for the arbiter prompt."""

from __future__ import annotations

import json
from typing import Any

from intentkeeper.nl.intent_engine import Intent, NluResult, is_protected
from intentkeeper.nl.reusability import PreCheckResult

_ROLE = """You are a helpful chatbot that also curates a shared intent catalog.

## YOUR JOBS
1. **Always answer the user helpfully** (this is the primary job).
2. **Strictly judge** whether the message is reusable knowledge worth saving as an intent.
3. **Only save what many other users would independently ask.**"""

_REUSABILITY_GUIDE = """## REUSABILITY SCALE
Ask yourself: *would 100 different users ask this same question?*

### Never save (score 1-4)
- Personal requests: "my order", "my account", "call my mom"
- Time-bound requests: "weather today", "book tomorrow"
- Greetings and thanks (defaults already exist)
- Games and entertainment: jokes, coin flips, quizzes
- Opinions: "what's the best...", "should I..."
- Current events and news
- Very short, vague or test messages
- Context-dependent replies: "yes", "again", "tell me more"

### Maybe (score 5-6)
- Fairly general, but possibly one-off or too loosely phrased
- A similar intent may already exist

### Save (score {threshold}-10)
- Factual questions: "What is photosynthesis?"
- How-to guides: "How to reset a router"
- Definitions: "Define machine learning"
- Comparisons: "Difference between HTTP and HTTPS"
- General knowledge: "Capital of France", "Who invented the telephone"
"""

_DECISION_RULES = """## DECISION RULES
1. reusability_score < {threshold} → action "none" (answer only).
2. reusability_score >= {threshold} and no similar intent exists → action "create_new".
3. reusability_score >= {threshold} and an intent with the SAME purpose exists → "update_matched" (the NLU match) or "update_other" (another catalog intent, named in target_intent).
4. If the NLU matched the WRONG intent → pick the correct one or create a new one (only when reusability_score >= {threshold})."""

_RESPONSE_FORMAT = """## RESPONSE FORMAT
Reply with exactly one JSON object:
{
  "answer": "your helpful reply to the user",
  "reusability_analysis": {
    "score": 1-10,
    "would_others_ask": true|false,
    "is_time_specific": true|false,
    "is_personal": true|false,
    "is_factual_knowledge": true|false,
    "reasoning": "why this score"
  },
  "match_analysis": {
    "dialogflow_intent": "matched intent name",
    "is_correct_match": true|false,
    "mismatch_reason": "only if wrong"
  },
  "intent_action": {
    "action": "none" | "update_matched" | "update_other" | "create_new",
    "reasoning": "why this action",
    "target_intent": "for update_other",
    "new_intent_name": "for create_new, formatted category_topic_scope",
    "training_phrases": ["only when saving"],
    "response_template": "only when saving",
    "metadata": {"purpose": "what it handles", "scope": "which scenarios", "keywords": ["key", "words"]}
  }
}"""

_REMINDER = """## REMEMBER
- Answering well comes first; saving intents is secondary and should be rare.
- When in doubt, use action "none".
- Only save genuinely reusable knowledge."""


class JudgeContextBuilder:
    """
    Builds the (system, user) message pair sent to the arbiter.

    The system message carries the NLU match, the candidate intent catalog,
    the pre-check verdict and the decision rules; the user message carries
    the conversation transcript and the utterance itself.
    """

    def __init__(self, threshold: int = 7, catalog_phrases: int = 3, matched_phrases: int = 5) -> None:
        self.threshold = threshold
        self.catalog_phrases = catalog_phrases
        self.matched_phrases = matched_phrases

    def build_messages(
        self,
        utterance: str,
        nlu_result: NluResult,
        candidates: list[Intent],
        pre_check: PreCheckResult,
        history_text: str,
    ) -> list[dict[str, Any]]:
        return [
            {"role": "system", "content": self.build_system_prompt(nlu_result, candidates, pre_check)},
            {"role": "user", "content": self.build_user_prompt(utterance, nlu_result, history_text)},
        ]

    def build_system_prompt(
        self,
        nlu_result: NluResult,
        candidates: list[Intent],
        pre_check: PreCheckResult,
    ) -> str:
        catalog = [i for i in candidates if not is_protected(i.display_name)]
        matched = next((i for i in catalog if i.display_name == nlu_result.intent_name), None)

        parts = [
            _ROLE,
            self._matched_section(matched),
            "## EXISTING INTENTS\n"
            + json.dumps([i.summary(self.catalog_phrases) for i in catalog], indent=2, ensure_ascii=False),
            _REUSABILITY_GUIDE.format(threshold=self.threshold),
            self._pre_check_section(pre_check),
            _DECISION_RULES.format(threshold=self.threshold),
            _RESPONSE_FORMAT,
            _REMINDER,
        ]
        return "\n\n".join(parts)

    def build_user_prompt(self, utterance: str, nlu_result: NluResult, history_text: str) -> str:
        return (
            f"## CONVERSATION HISTORY\n{history_text}\n\n"
            f"## CURRENT USER MESSAGE\n\"{utterance}\"\n\n"
            "## NLU RESULT\n"
            f"- Intent: {nlu_result.intent_name}\n"
            f"- Confidence: {nlu_result.confidence}\n"
            f"- Response: \"{nlu_result.reply_text}\"\n\n"
            "First give a helpful answer, then strictly judge whether this should be saved as an intent.\n"
            "Most messages should NOT become intents."
        )

    def _matched_section(self, matched: Intent | None) -> str:
        if matched is None:
            return "## NLU MATCH\nNo intent matched (fallback)"
        phrases = json.dumps(matched.phrase_texts[: self.matched_phrases], ensure_ascii=False)
        return f"## NLU MATCH\nMatched: {matched.display_name}\nPhrases: {phrases}"

    @staticmethod
    def _pre_check_section(pre_check: PreCheckResult) -> str:
        text = f"## PRE-CHECK RESULT\n{json.dumps(pre_check.to_dict())}"
        if pre_check.should_save is False:
            text += "\n\n⚠️ PRE-CHECK SAYS: DO NOT SAVE THIS AS AN INTENT!"
        return text
