from __future__ import annotations

import os
from pathlib import Path

# Use litellm's bundled model cost map instead of fetching it over the network at import.
os.environ.setdefault("LITELLM_LOCAL_MODEL_COST_MAP", "True")

import pytest
from fakes import FakeNluEngine, FakeProvider, verdict

from intentkeeper.agent.handler import MessageHandler
from intentkeeper.agent.judge import JudgeOrchestrator
from intentkeeper.memory.metadata_store import IntentMetadataStore
from intentkeeper.nl.synchronizer import IntentSynchronizer
from intentkeeper.observability.audit import DecisionLog
from intentkeeper.runtime.session_lock import SessionLock
from intentkeeper.session.history import SessionHistory
from intentkeeper.utils.atomic_io import AtomicFileWriter


@pytest.fixture
def engine() -> FakeNluEngine:
    return FakeNluEngine()


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider(verdict())


@pytest.fixture
def history() -> SessionHistory:
    return SessionHistory()


@pytest.fixture
def metadata(tmp_path: Path) -> IntentMetadataStore:
    return IntentMetadataStore(tmp_path / "intent_metadata.json", writer=AtomicFileWriter())


@pytest.fixture
def synchronizer(engine: FakeNluEngine, metadata: IntentMetadataStore) -> IntentSynchronizer:
    return IntentSynchronizer(engine, metadata, lock=SessionLock(namespace="intent"), timeout=1.0)


@pytest.fixture
def judge(provider: FakeProvider, history: SessionHistory) -> JudgeOrchestrator:
    return JudgeOrchestrator(provider, history, timeout=1.0)


@pytest.fixture
def handler(
    engine: FakeNluEngine,
    judge: JudgeOrchestrator,
    synchronizer: IntentSynchronizer,
    history: SessionHistory,
    metadata: IntentMetadataStore,
) -> MessageHandler:
    return MessageHandler(
        engine=engine,
        judge=judge,
        synchronizer=synchronizer,
        history=history,
        decision_log=DecisionLog(),
        metadata=metadata,
        nlu_timeout=1.0,
        store_timeout=1.0,
    )
