"""Intent synchronizer: turns an approved ``IntentAction`` into store writes.

All outcomes are reported as ``SyncResult`` values; nothing here raises to
the caller.  The synchronizer re-checks the reusability threshold itself, so
it never depends on the arbiter overrides having run.

Each write is a read (``list_intents``) followed by a create/update.  With a
lock configured, that sequence is serialised per target display name and a
``create_new`` for a name that already exists is merged into it instead.
Without one, two sessions proposing the same new name can both create it.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable
from dataclasses import dataclass, replace
from typing import Any, TypeVar

from loguru import logger

from intentkeeper.agent.schemas import ActionKind, Decision
from intentkeeper.memory.metadata_store import IntentMetadataStore
from intentkeeper.nl.intent_engine import Intent, NluEngine, TrainingPhrase, is_protected
from intentkeeper.runtime.session_lock import SessionLock

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class SyncResult:
    success: bool
    action: str
    intent: str | None = None
    error: str | None = None
    added_phrases: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"success": self.success, "action": self.action}
        if self.intent:
            data["intent"] = self.intent
        if self.error:
            data["error"] = self.error
        return data


def _dedupe(phrases: list[str], seen: set[str] | None = None) -> list[str]:
    """Keep the first spelling of each phrase, ignoring case and anything in *seen*."""
    seen = set() if seen is None else set(seen)
    unique = []
    for phrase in phrases:
        key = phrase.lower()
        if key not in seen:
            seen.add(key)
            unique.append(phrase)
    return unique


class IntentSynchronizer:
    def __init__(
        self,
        engine: NluEngine,
        metadata: IntentMetadataStore,
        lock: SessionLock | None = None,
        threshold: int = 7,
        timeout: float = 20.0,
    ) -> None:
        self.engine = engine
        self.metadata = metadata
        self.lock = lock
        self.threshold = threshold
        self.timeout = timeout

    async def execute(self, decision: Decision, matched_intent: str | None = None) -> SyncResult:
        """Apply *decision*'s intent action.

        Args:
            decision: Enforced arbiter decision.
            matched_intent: NLU match, used as the ``update_matched`` target
                when the arbiter's match analysis does not name one.
        """
        action = decision.intent_action
        if action.is_none:
            return SyncResult(success=True, action="none")

        if decision.score < self.threshold:
            logger.warning(f"BLOCKED: reusability score {decision.score} < {self.threshold}")
            return SyncResult(success=False, action="blocked_low_score")

        kind = action.action
        if kind in (ActionKind.UPDATE_MATCHED, ActionKind.UPDATE_OTHER):
            if kind == ActionKind.UPDATE_OTHER:
                target = action.target_intent
            else:
                analysed = decision.match_analysis.dialogflow_intent if decision.match_analysis else ""
                target = analysed or matched_intent
            target = (target or "").strip()
            if not target or is_protected(target):
                logger.warning(f"No usable target intent for {kind} (got {target!r})")
                return SyncResult(success=False, action="no_target")
        elif kind == ActionKind.CREATE_NEW:
            target = (action.new_intent_name or "").strip()
            if not target or not action.training_phrases or is_protected(target):
                logger.warning(f"Missing or invalid data for new intent {target!r}")
                return SyncResult(success=False, action="invalid_data")
        else:
            logger.warning(f"Unknown intent action {kind!r}")
            return SyncResult(success=False, action="unknown")

        try:
            async with self._guard(target):
                return await self._apply(kind, target, decision)
        except TimeoutError:
            logger.error(f"Intent store call timed out after {self.timeout}s ({kind} {target})")
            return SyncResult(success=False, action="error", error="intent store call timed out")
        except Exception as exc:
            logger.error(f"Intent action error ({kind} {target}): {exc}")
            return SyncResult(success=False, action="error", error=str(exc))

    @contextlib.asynccontextmanager
    async def _guard(self, display_name: str) -> AsyncIterator[None]:
        if self.lock is None:
            yield
            return
        async with self.lock.acquire(display_name):
            yield

    async def _apply(self, kind: str, target: str, decision: Decision) -> SyncResult:
        existing = await self._find(target)

        if kind == ActionKind.CREATE_NEW:
            if existing is not None and self.lock is not None:
                logger.info(f"Intent {target!r} already exists, merging instead of creating")
                return await self._merge(existing, decision)
            return await self._create(target, decision)

        if existing is None:
            logger.warning(f"Intent {target!r} not found, creating new instead")
            if not decision.intent_action.training_phrases:
                return SyncResult(success=False, action="invalid_data")
            return await self._create(target, decision)
        return await self._merge(existing, decision)

    async def _find(self, display_name: str) -> Intent | None:
        intents = await self._call(self.engine.list_intents())
        for intent in intents:
            if intent.display_name == display_name and not is_protected(intent.display_name):
                return intent
        return None

    async def _merge(self, existing: Intent, decision: Decision) -> SyncResult:
        action = decision.intent_action
        name = existing.display_name
        new_phrases = _dedupe(action.training_phrases, existing.phrase_keys())
        if not new_phrases:
            logger.info(f"No new phrases for {name!r}")
            return SyncResult(success=True, action="no_changes", intent=name)

        responses = list(existing.responses)
        if action.response_template and action.response_template not in responses:
            responses.append(action.response_template)

        updated = replace(
            existing,
            training_phrases=[*existing.training_phrases, *(TrainingPhrase.example(p) for p in new_phrases)],
            responses=responses,
        )
        await self._call(self.engine.update_intent(updated))

        if action.metadata is not None:
            await self.metadata.merge(name, action.metadata.model_dump())

        logger.info(f"Updated intent {name!r} (+{len(new_phrases)} phrases)")
        return SyncResult(success=True, action="updated", intent=name, added_phrases=len(new_phrases))

    async def _create(self, display_name: str, decision: Decision) -> SyncResult:
        action = decision.intent_action
        phrases = _dedupe(action.training_phrases)
        intent = Intent(
            display_name=display_name,
            training_phrases=[TrainingPhrase.example(p) for p in phrases],
            responses=[action.response_template or decision.answer],
        )
        await self._call(self.engine.create_intent(intent))

        if action.metadata is not None:
            await self.metadata.record_created(display_name, action.metadata.model_dump())

        logger.info(f"Created new intent {display_name!r} ({len(phrases)} phrases)")
        return SyncResult(success=True, action="created", intent=display_name, added_phrases=len(phrases))

    async def _call(self, aw: Awaitable[T]) -> T:
        return await asyncio.wait_for(aw, timeout=self.timeout)
