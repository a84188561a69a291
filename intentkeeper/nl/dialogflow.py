"""Dialogflow ES implementation of the ``NluEngine`` contract.

Intents read from the agent keep their original protobuf in
``Intent.extra["proto"]``; updates start from a copy of it so priority,
contexts, parameters and non-text messages are written back untouched.
"""

from __future__ import annotations

import uuid
from typing import Any

from google.cloud import dialogflow_v2 as dialogflow
from google.oauth2 import service_account
from loguru import logger

from intentkeeper.nl.intent_engine import (
    ConnectionStatus,
    Intent,
    NluResult,
    TrainingPhrase,
)
from intentkeeper.settings import IntentKeeperSettings

_TOKEN_URI = "https://oauth2.googleapis.com/token"


class DialogflowEngine:
    """Thin async adapter over ``SessionsAsyncClient`` / ``IntentsAsyncClient``."""

    def __init__(
        self,
        project_id: str,
        credentials: service_account.Credentials | None = None,
        language_code: str = "en-US",
        intent_language_code: str = "en",
    ) -> None:
        self.project_id = project_id
        self.language_code = language_code
        self.intent_language_code = intent_language_code
        self._sessions = dialogflow.SessionsAsyncClient(credentials=credentials)
        self._intents = dialogflow.IntentsAsyncClient(credentials=credentials)

    @classmethod
    def from_settings(cls, settings: IntentKeeperSettings) -> DialogflowEngine:
        credentials = None
        if settings.dialogflow_client_email and settings.dialogflow_private_key:
            credentials = service_account.Credentials.from_service_account_info({
                "type": "service_account",
                "project_id": settings.dialogflow_project_id,
                "client_email": settings.dialogflow_client_email,
                "private_key": settings.private_key,
                "token_uri": _TOKEN_URI,
            })
        return cls(
            project_id=settings.dialogflow_project_id,
            credentials=credentials,
            language_code=settings.language_code,
            intent_language_code=settings.intent_language_code,
        )

    @property
    def _agent_path(self) -> str:
        return f"projects/{self.project_id}/agent"

    # ── detection ──

    async def detect(self, session_id: str, text: str) -> NluResult:
        session = dialogflow.SessionsAsyncClient.session_path(self.project_id, session_id)
        response = await self._sessions.detect_intent(request={
            "session": session,
            "query_input": {"text": {"text": text, "language_code": self.language_code}},
        })
        result = response.query_result
        return NluResult(
            intent_name=result.intent.display_name,
            confidence=float(result.intent_detection_confidence),
            reply_text=result.fulfillment_text,
        )

    async def check_connection(self) -> ConnectionStatus:
        try:
            await self.detect(f"test-{uuid.uuid4().hex[:7]}", "test")
            return ConnectionStatus(status="connected")
        except Exception as exc:
            logger.warning(f"Dialogflow connection check failed: {exc}")
            return ConnectionStatus(status="error", error=str(exc))

    # ── intent store ──

    async def list_intents(self) -> list[Intent]:
        pager = await self._intents.list_intents(request={
            "parent": self._agent_path,
            "intent_view": dialogflow.IntentView.INTENT_VIEW_FULL,
        })
        return [self._from_proto(proto) async for proto in pager]

    async def create_intent(self, intent: Intent) -> Intent:
        proto = dialogflow.Intent(
            display_name=intent.display_name,
            training_phrases=[self._phrase_to_proto(tp) for tp in intent.training_phrases],
            messages=[dialogflow.Intent.Message(text=dialogflow.Intent.Message.Text(text=list(intent.responses)))],
        )
        created = await self._intents.create_intent(request={"parent": self._agent_path, "intent": proto})
        return self._from_proto(created)

    async def update_intent(self, intent: Intent) -> Intent:
        original = intent.extra.get("proto")
        proto = dialogflow.Intent()
        if original is not None:
            dialogflow.Intent.copy_from(proto, original)
        proto.name = intent.name
        proto.display_name = intent.display_name
        proto.training_phrases = [self._phrase_to_proto(tp) for tp in intent.training_phrases]

        messages = list(proto.messages)
        if messages and "text" in messages[0]:
            messages[0] = dialogflow.Intent.Message(
                text=dialogflow.Intent.Message.Text(text=list(intent.responses)),
                platform=messages[0].platform,
            )
            proto.messages = messages

        updated = await self._intents.update_intent(request={
            "intent": proto,
            "language_code": self.intent_language_code,
        })
        return self._from_proto(updated)

    # ── conversion ──

    @staticmethod
    def _from_proto(proto: Any) -> Intent:
        phrases = []
        for tp in proto.training_phrases:
            parts = [
                {k: v for k, v in (
                    ("text", p.text),
                    ("entity_type", p.entity_type),
                    ("alias", p.alias),
                    ("user_defined", p.user_defined),
                ) if v}
                for p in tp.parts
            ]
            phrases.append(TrainingPhrase(
                text="".join(p.text for p in tp.parts),
                type=dialogflow.Intent.TrainingPhrase.Type(tp.type_).name,
                parts=parts,
            ))

        responses: list[str] = []
        if proto.messages and "text" in proto.messages[0]:
            responses = list(proto.messages[0].text.text)

        return Intent(
            name=proto.name,
            display_name=proto.display_name,
            training_phrases=phrases,
            responses=responses,
            extra={"proto": proto},
        )

    @staticmethod
    def _phrase_to_proto(phrase: TrainingPhrase) -> Any:
        parts = phrase.parts or [{"text": phrase.text}]
        return dialogflow.Intent.TrainingPhrase(
            type_=dialogflow.Intent.TrainingPhrase.Type[phrase.type or "EXAMPLE"],
            parts=[dialogflow.Intent.TrainingPhrase.Part(**part) for part in parts],
        )
