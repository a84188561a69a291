import json

import pytest
from fakes import FakeProvider, make_intent, verdict

from intentkeeper.agent.judge import OVERRIDE_LOW_SCORE, OVERRIDE_PRE_CHECK, JudgeFailure, JudgeOrchestrator
from intentkeeper.agent.schemas import DEFAULT_ANSWER, Decision
from intentkeeper.nl.intent_engine import NluResult
from intentkeeper.nl.reusability import HIGH_REUSABILITY, LOW_REUSABILITY, UNDECIDED
from intentkeeper.providers.base import LLMResponse
from intentkeeper.session.history import ChatHistoryEntry, SessionHistory

FALLBACK = NluResult(intent_name="Default Fallback Intent", confidence=0.2)
CREATE = {
    "new_intent_name": "science_photosynthesis_definition",
    "training_phrases": ["What is photosynthesis?"],
    "response_template": "Photosynthesis converts light into chemical energy.",
}


async def _judge(reply, pre_check=UNDECIDED, candidates=None, history=None, **kwargs) -> tuple[Decision, FakeProvider]:
    provider = reply if isinstance(reply, FakeProvider) else FakeProvider(reply)
    orchestrator = JudgeOrchestrator(provider, history or SessionHistory(), **kwargs)
    decision = await orchestrator.judge("What is photosynthesis?", FALLBACK, "s1", candidates or [], pre_check)
    return decision, provider


# ── parsing ──


def test_parse_accepts_plain_object() -> None:
    decision = JudgeOrchestrator.parse(json.dumps(verdict("create_new", 9, **CREATE)))

    assert decision.action == "create_new"
    assert decision.score == 9
    assert decision.intent_action.training_phrases == ["What is photosynthesis?"]


def test_parse_strips_code_fence_and_surrounding_prose() -> None:
    body = json.dumps(verdict(answer="fenced"))

    assert JudgeOrchestrator.parse(f"```json\n{body}\n```").answer == "fenced"
    assert JudgeOrchestrator.parse(f"Sure! Here it is: {body} Hope that helps.").answer == "fenced"


@pytest.mark.parametrize(
    "content",
    [
        None,
        "",
        "   ",
        "not json at all",
        '{"answer": "x"}',
        '{"answer": "x", "intent_action": "none"}',
        "[1, 2]",
        '{"reusability_analysis": {"score": [9]}, "intent_action": {}}',
        '{"reusability_analysis": {"score": 1e400}, "intent_action": {}}',
        '{"intent_action": {"action": "create_new", "training_phrases": 5}}',
    ],
)
def test_parse_rejects_unusable_output(content) -> None:
    with pytest.raises(JudgeFailure):
        JudgeOrchestrator.parse(content)


def test_parse_defaults_optional_fields() -> None:
    decision = JudgeOrchestrator.parse('{"answer": "", "intent_action": {}}')

    assert decision.answer == DEFAULT_ANSWER
    assert decision.action == "none"
    assert decision.reusability_analysis is None
    assert decision.score == 0
    assert decision.reported_score is None


def test_parse_clamps_score_and_ignores_local_flags() -> None:
    payload = verdict(score=15)
    payload["failed"] = True
    payload["override"] = "pre_check"

    decision = JudgeOrchestrator.parse(json.dumps(payload))

    assert decision.score == 10
    assert decision.failed is False
    assert decision.override is None


def test_parse_rejects_non_numeric_score() -> None:
    payload = verdict()
    payload["reusability_analysis"]["score"] = "high"

    with pytest.raises(JudgeFailure):
        JudgeOrchestrator.parse(json.dumps(payload))


# ── failures degrade to the fallback decision ──


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [
        "I think you should save this!",
        RuntimeError("connection reset"),
        LLMResponse(content="Error calling LLM: 401", finish_reason="error", error="401"),
    ],
)
async def test_arbiter_failure_returns_fallback(reply) -> None:
    decision, _ = await _judge(reply)

    assert decision.failed is True
    assert decision.answer == DEFAULT_ANSWER
    assert decision.action == "none"


@pytest.mark.asyncio
async def test_arbiter_timeout_returns_fallback() -> None:
    decision, _ = await _judge(FakeProvider(verdict("create_new", 9, **CREATE), delay=0.5), timeout=0.01)

    assert decision.failed is True
    assert decision.action == "none"


# ── overrides ──


@pytest.mark.asyncio
async def test_reusable_create_passes_through() -> None:
    decision, _ = await _judge(verdict("create_new", 9, **CREATE), pre_check=HIGH_REUSABILITY)

    assert decision.action == "create_new"
    assert decision.override is None


@pytest.mark.asyncio
async def test_low_score_forces_none() -> None:
    decision, _ = await _judge(verdict("create_new", 5, **CREATE))

    assert decision.action == "none"
    assert decision.override == OVERRIDE_LOW_SCORE
    assert decision.reported_score == 5
    assert "too low" in decision.intent_action.reasoning


@pytest.mark.asyncio
async def test_pre_check_rejection_forces_none_even_with_high_score() -> None:
    decision, _ = await _judge(verdict("update_matched", 9, matched="greeting"), pre_check=LOW_REUSABILITY)

    assert decision.action == "none"
    assert decision.override == OVERRIDE_PRE_CHECK


@pytest.mark.asyncio
async def test_pre_check_reason_wins_when_both_overrides_apply() -> None:
    decision, _ = await _judge(verdict("create_new", 3, **CREATE), pre_check=LOW_REUSABILITY)

    assert decision.override == OVERRIDE_PRE_CHECK


@pytest.mark.asyncio
async def test_missing_analysis_counts_as_zero() -> None:
    decision, _ = await _judge(verdict("create_new", None, **CREATE))

    assert decision.action == "none"
    assert decision.override == OVERRIDE_LOW_SCORE
    assert decision.reported_score is None


@pytest.mark.asyncio
async def test_none_action_is_not_marked_as_override() -> None:
    decision, _ = await _judge(verdict("none", 2), pre_check=LOW_REUSABILITY)

    assert decision.override is None


# ── prompt ──


@pytest.mark.asyncio
async def test_prompt_carries_history_catalog_and_pre_check() -> None:
    history = SessionHistory()
    history.append("s1", ChatHistoryEntry(user="hello there", bot="hi!"))
    candidates = [
        make_intent("science_biology_basics", ["what is a cell", "what is dna", "what is an enzyme", "define gene"]),
        make_intent("Default Welcome Intent", ["hi"]),
    ]

    _, provider = await _judge(verdict(), pre_check=LOW_REUSABILITY, candidates=candidates, history=history)

    system = provider.system_prompt
    assert "science_biology_basics" in system
    assert "define gene" not in system
    assert "Default Welcome Intent" not in system
    assert "No intent matched (fallback)" in system
    assert "DO NOT SAVE" in system
    assert "score 7-10" in system
    assert "User: hello there\nBot: hi!" in provider.user_prompt
    assert '"What is photosynthesis?"' in provider.user_prompt


@pytest.mark.asyncio
async def test_prompt_shows_matched_intent_phrases() -> None:
    provider = FakeProvider(verdict())
    orchestrator = JudgeOrchestrator(provider, SessionHistory())
    candidates = [make_intent("tech_router_reset", ["how to reset a router", "reset my router"])]

    await orchestrator.judge(
        "how to reset a router",
        NluResult(intent_name="tech_router_reset", confidence=0.9),
        "s1",
        candidates,
        HIGH_REUSABILITY,
    )

    assert "Matched: tech_router_reset" in provider.system_prompt
    assert "No previous conversation." in provider.user_prompt


@pytest.mark.asyncio
async def test_arbiter_called_in_json_mode() -> None:
    seen = {}

    class Recording(FakeProvider):
        async def chat(self, messages, model=None, max_tokens=1200, temperature=0.3, json_mode=False):
            seen["json_mode"] = json_mode
            seen["temperature"] = temperature
            return await super().chat(messages, model, max_tokens, temperature, json_mode)

    await _judge(Recording(verdict()))

    assert seen == {"json_mode": True, "temperature": 0.3}
