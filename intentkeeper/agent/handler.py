"""Message handler: the single per-utterance pipeline the transport calls.

    utterance → context check → pre-check → NLU detect → catalog
              → arbiter → synchronizer → history + decision log → reply

The handler owns all lifecycle-scoped state (session histories, decision
log, metadata store) and serialises each session's utterances so history
order always matches send order.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from loguru import logger

from intentkeeper.agent.judge import JudgeOrchestrator
from intentkeeper.agent.schemas import DEFAULT_ANSWER, Decision
from intentkeeper.memory.metadata_store import IntentMetadataStore
from intentkeeper.nl.intent_engine import (
    ConnectionStatus,
    Intent,
    NluCallFailure,
    NluEngine,
    NluResult,
    is_protected,
)
from intentkeeper.nl.reusability import CONTEXT_DEPENDENT, HeuristicGate
from intentkeeper.nl.synchronizer import IntentSynchronizer, SyncResult
from intentkeeper.observability.audit import DecisionLog, DecisionLogEntry
from intentkeeper.runtime.session_lock import SessionLock
from intentkeeper.session.history import ChatHistoryEntry, SessionHistory
from intentkeeper.settings import IntentKeeperSettings

ERROR_REPLY = "Sorry, I encountered an error. Please try again."
CONTEXT_INTENT = "context-dependent"


@dataclass(frozen=True, slots=True)
class HandlerReply:
    text: str
    intent: str
    confidence: float
    reusability_score: int | None = None
    action_taken: str = "none"

    def metadata(self) -> dict[str, Any]:
        return {
            "intent": self.intent,
            "confidence": self.confidence,
            "reusabilityScore": self.reusability_score,
            "actionTaken": self.action_taken,
        }


class MessageHandler:
    def __init__(
        self,
        engine: NluEngine,
        judge: JudgeOrchestrator,
        synchronizer: IntentSynchronizer,
        history: SessionHistory,
        decision_log: DecisionLog,
        metadata: IntentMetadataStore,
        gate: HeuristicGate | None = None,
        session_lock: SessionLock | None = None,
        nlu_timeout: float = 15.0,
        store_timeout: float = 20.0,
    ) -> None:
        self.engine = engine
        self.judge = judge
        self.synchronizer = synchronizer
        self.history = history
        self.decision_log = decision_log
        self.metadata = metadata
        self.gate = gate or HeuristicGate()
        self.session_lock = session_lock or SessionLock(namespace="session")
        self.nlu_timeout = nlu_timeout
        self.store_timeout = store_timeout

    @classmethod
    def from_settings(cls, settings: IntentKeeperSettings) -> MessageHandler:
        """Wire the production collaborators (Dialogflow, LiteLLM, optional Redis)."""
        from intentkeeper.nl.dialogflow import DialogflowEngine
        from intentkeeper.providers.litellm_provider import LiteLLMProvider

        redis = None
        if settings.redis_url:
            from redis.asyncio import Redis

            redis = Redis.from_url(settings.redis_url)

        engine = DialogflowEngine.from_settings(settings)
        provider = LiteLLMProvider(
            api_key=settings.judge_api_key or None,
            api_base=settings.judge_api_base or None,
            default_model=settings.judge_model,
        )
        history = SessionHistory(max_length=settings.max_history_length)
        metadata = IntentMetadataStore(settings.metadata_path)
        metadata.load()

        intent_lock = None
        if settings.serialize_intent_writes:
            intent_lock = SessionLock(
                namespace="intent", redis=redis, timeout=settings.lock_timeout_seconds
            )

        return cls(
            engine=engine,
            judge=JudgeOrchestrator(
                provider,
                history,
                model=settings.judge_model,
                temperature=settings.judge_temperature,
                max_tokens=settings.judge_max_tokens,
                timeout=settings.judge_timeout_seconds,
                threshold=settings.reusability_threshold,
            ),
            synchronizer=IntentSynchronizer(
                engine,
                metadata,
                lock=intent_lock,
                threshold=settings.reusability_threshold,
                timeout=settings.store_timeout_seconds,
            ),
            history=history,
            decision_log=DecisionLog(max_entries=settings.max_decision_log),
            metadata=metadata,
            session_lock=SessionLock(
                namespace="session", redis=redis, timeout=settings.lock_timeout_seconds
            ),
            nlu_timeout=settings.nlu_timeout_seconds,
            store_timeout=settings.store_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def handle(self, session_id: str, text: str) -> HandlerReply:
        """Process one utterance. Always returns a well-formed reply."""
        message = text.strip()
        if not message:
            return HandlerReply(text=DEFAULT_ANSWER, intent="empty", confidence=0.0)

        try:
            async with self.session_lock.acquire(session_id):
                return await self._process(session_id, message)
        except Exception as exc:
            logger.exception(f"Unhandled error for session {session_id}: {exc}")
            return HandlerReply(text=ERROR_REPLY, intent="error", confidence=0.0)

    async def _process(self, session_id: str, message: str) -> HandlerReply:
        logger.info(f"Message [{session_id}]: {message}")

        if self.gate.classify_context(message):
            return await self._answer_in_context(session_id, message)

        pre_check = self.gate.pre_check(message)
        logger.info(f"Pre-check: {pre_check.reason} (score: {pre_check.score})")

        try:
            nlu_result = await self._detect(session_id, message)
        except NluCallFailure as exc:
            logger.error(f"NLU detect failed: {exc}")
            return HandlerReply(text=ERROR_REPLY, intent="error", confidence=0.0)
        logger.info(f"NLU: {nlu_result.intent_name} ({nlu_result.confidence:.2f})")

        candidates: list[Intent] = []
        if pre_check.should_save is not False:
            candidates = await self.catalog()
            logger.info(f"Loaded {len(candidates)} candidate intents")

        decision = await self.judge.judge(message, nlu_result, session_id, candidates, pre_check)

        result = SyncResult(success=True, action="none")
        if pre_check.should_save is False:
            if not decision.intent_action.is_none:
                logger.info("Intent save blocked by pre-check")
        elif not decision.intent_action.is_none:
            result = await self.synchronizer.execute(decision, matched_intent=nlu_result.intent_name)
            logger.info(f"Intent action result: {result.action}")

        self.history.append(session_id, ChatHistoryEntry(user=message, bot=decision.answer))
        self._log(session_id, message, nlu_result, decision, result.action, blocked=pre_check.should_save is False)

        return HandlerReply(
            text=decision.answer,
            intent=nlu_result.intent_name,
            confidence=nlu_result.confidence,
            reusability_score=decision.reported_score,
            action_taken=result.action,
        )

    async def _answer_in_context(self, session_id: str, message: str) -> HandlerReply:
        """Context-dependent replies are answered from history, never persisted."""
        logger.info("Context-dependent message: answering only")
        nlu_result = NluResult(intent_name=CONTEXT_INTENT, confidence=1.0)
        decision = await self.judge.judge(message, nlu_result, session_id, [], CONTEXT_DEPENDENT)

        self.history.append(session_id, ChatHistoryEntry(user=message, bot=decision.answer))
        self._log(session_id, message, nlu_result, decision, "none", blocked=True)

        return HandlerReply(
            text=decision.answer,
            intent=CONTEXT_INTENT,
            confidence=nlu_result.confidence,
            reusability_score=decision.reported_score,
            action_taken="none",
        )

    async def _detect(self, session_id: str, message: str) -> NluResult:
        try:
            return await asyncio.wait_for(self.engine.detect(session_id, message), timeout=self.nlu_timeout)
        except TimeoutError as exc:
            raise NluCallFailure(f"detect timed out after {self.nlu_timeout}s") from exc
        except Exception as exc:
            raise NluCallFailure(str(exc)) from exc

    def _log(
        self,
        session_id: str,
        message: str,
        nlu_result: NluResult,
        decision: Decision,
        action: str,
        blocked: bool,
    ) -> None:
        override = decision.override
        if decision.failed:
            override = "judge_failure"
        self.decision_log.append(DecisionLogEntry(
            session_id=session_id,
            message=message,
            df_intent=nlu_result.intent_name,
            df_confidence=nlu_result.confidence,
            reusability_score=decision.reported_score,
            action=action,
            blocked=blocked,
            override=override,
        ))

    # ------------------------------------------------------------------
    # Session lifecycle and inspection
    # ------------------------------------------------------------------

    def end_session(self, session_id: str) -> None:
        self.history.end(session_id)
        self.session_lock.discard(session_id)

    async def catalog(self) -> list[Intent]:
        """Non-protected intents with their metadata. Store failures yield ``[]``."""
        try:
            intents = await asyncio.wait_for(self.engine.list_intents(), timeout=self.store_timeout)
        except Exception as exc:
            logger.error(f"Error fetching intents: {exc}")
            return []
        catalog = []
        for intent in intents:
            if is_protected(intent.display_name):
                continue
            intent.metadata = self.metadata.get_or_default(intent.display_name)
            catalog.append(intent)
        return catalog

    async def check_connection(self) -> ConnectionStatus:
        try:
            return await asyncio.wait_for(self.engine.check_connection(), timeout=self.nlu_timeout)
        except TimeoutError:
            return ConnectionStatus(status="error", error=f"connection check timed out after {self.nlu_timeout}s")
