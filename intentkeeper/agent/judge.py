"""Arbiter orchestration: prompt → LLM → validated ``Decision`` → enforcement.

The arbiter is statistical and will sometimes lean towards saving things it
should not.  Two mechanical overrides run after every successful parse:

* pre-check rejection (``should_save is False``) forces ``none``;
* a reusability score under the threshold forces ``none``.

Both may apply at once; the pre-check reason is the one recorded.
"""

from __future__ import annotations

import asyncio
import json
import re

from loguru import logger
from pydantic import ValidationError

from intentkeeper.agent.context import JudgeContextBuilder
from intentkeeper.agent.schemas import Decision
from intentkeeper.nl.intent_engine import Intent, NluResult
from intentkeeper.nl.reusability import PreCheckResult
from intentkeeper.providers.base import LLMProvider
from intentkeeper.session.history import SessionHistory

_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.S | re.I)

OVERRIDE_PRE_CHECK = "pre_check"
OVERRIDE_LOW_SCORE = "low_score"


class JudgeFailure(RuntimeError):
    """The arbiter could not be reached or returned an unusable verdict."""


class JudgeOrchestrator:
    def __init__(
        self,
        provider: LLMProvider,
        history: SessionHistory,
        context: JudgeContextBuilder | None = None,
        model: str | None = None,
        temperature: float = 0.3,
        max_tokens: int = 1200,
        timeout: float = 30.0,
        threshold: int = 7,
    ) -> None:
        self.provider = provider
        self.history = history
        self.context = context or JudgeContextBuilder(threshold=threshold)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self.threshold = threshold

    async def judge(
        self,
        utterance: str,
        nlu_result: NluResult,
        session_id: str,
        candidates: list[Intent],
        pre_check: PreCheckResult,
    ) -> Decision:
        """Answer the utterance and decide what, if anything, to persist.

        Never raises: any arbiter failure degrades to ``Decision.fallback()``.
        """
        messages = self.context.build_messages(
            utterance,
            nlu_result,
            candidates,
            pre_check,
            self.history.render(session_id),
        )
        try:
            decision = await self._ask(messages)
        except JudgeFailure as exc:
            logger.warning(f"Arbiter failed, answering without persistence: {exc}")
            return Decision.fallback()

        self._log_analysis(decision)
        return self.enforce(decision, pre_check)

    def enforce(self, decision: Decision, pre_check: PreCheckResult) -> Decision:
        if decision.intent_action.is_none:
            return decision
        if pre_check.should_save is False:
            logger.warning(f"OVERRIDE: pre-check rejected, forcing action 'none' (was {decision.action!r})")
            return decision.suppress(f"Pre-check rejected: {pre_check.reason}", OVERRIDE_PRE_CHECK)
        if decision.score < self.threshold:
            logger.warning(
                f"OVERRIDE: score {decision.score} < {self.threshold}, "
                f"forcing action 'none' (was {decision.action!r})"
            )
            return decision.suppress(f"Reusability score too low (< {self.threshold})", OVERRIDE_LOW_SCORE)
        return decision

    async def _ask(self, messages: list[dict[str, str]]) -> Decision:
        try:
            response = await asyncio.wait_for(
                self.provider.chat(
                    messages,
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    json_mode=True,
                ),
                timeout=self.timeout,
            )
        except TimeoutError as exc:
            raise JudgeFailure(f"arbiter timed out after {self.timeout}s") from exc
        except Exception as exc:
            raise JudgeFailure(f"arbiter call raised: {exc}") from exc

        if response.failed:
            raise JudgeFailure(response.error or "provider reported an error")
        return self.parse(response.content)

    @staticmethod
    def parse(content: str | None) -> Decision:
        """Validate raw arbiter output into a ``Decision``.

        Tolerates a Markdown code fence or prose around the object; anything
        else that is not one JSON object with an ``intent_action`` raises
        ``JudgeFailure``.
        """
        if not content or not content.strip():
            raise JudgeFailure("empty arbiter response")

        text = content.strip()
        fenced = _FENCE_RE.match(text)
        if fenced:
            text = fenced.group(1)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            start, end = text.find("{"), text.rfind("}")
            if start == -1 or end <= start:
                raise JudgeFailure("arbiter response is not JSON") from None
            try:
                payload = json.loads(text[start : end + 1])
            except json.JSONDecodeError as exc:
                raise JudgeFailure(f"arbiter response is not JSON: {exc}") from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("intent_action"), dict):
            raise JudgeFailure("arbiter response has no intent_action object")

        payload.pop("failed", None)
        payload.pop("override", None)
        try:
            return Decision.model_validate(payload)
        except ValidationError as exc:
            raise JudgeFailure(f"arbiter response failed validation: {exc.error_count()} error(s)") from exc
        except (TypeError, ValueError, OverflowError) as exc:
            raise JudgeFailure(f"arbiter response failed validation: {exc}") from exc

    @staticmethod
    def _log_analysis(decision: Decision) -> None:
        ra = decision.reusability_analysis
        if ra is not None:
            logger.info(
                f"Reusability {ra.score}/10 | others_ask={ra.would_others_ask} "
                f"time_specific={ra.is_time_specific} personal={ra.is_personal} "
                f"factual={ra.is_factual_knowledge}"
            )
            logger.debug(f"Reusability reasoning: {ra.reasoning}")
        logger.info(f"Arbiter proposed action: {decision.action}")
