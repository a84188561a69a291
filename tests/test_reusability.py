import re

import pytest

from intentkeeper.nl.reusability import (
    CONTEXT_DEPENDENT,
    HIGH_REUSABILITY,
    UNDECIDED,
    HeuristicGate,
    PreCheckResult,
)

gate = HeuristicGate()


@pytest.mark.parametrize(
    "utterance",
    ["yes", "Yes.", "  OK  ", "nope", "tell me more about that", "Do it again", "hit", "why?", "what about this one"],
)
def test_context_dependent_replies_are_flagged(utterance: str) -> None:
    assert gate.classify_context(utterance) is True


@pytest.mark.parametrize(
    "utterance",
    ["What is photosynthesis?", "How does a hash map work?", "Who invented the telephone?"],
)
def test_standalone_questions_are_not_context_dependent(utterance: str) -> None:
    assert gate.classify_context(utterance) is False


def test_greeting_is_low_reusability() -> None:
    result = gate.pre_check("hi")

    assert result.should_save is False
    assert result.score == 2
    assert result.reason == "Matches low-reusability pattern"


def test_factual_question_is_high_reusability() -> None:
    result = gate.pre_check("What is photosynthesis?")

    assert result.should_save is True
    assert result.score == 8


@pytest.mark.parametrize(
    "utterance",
    [
        "How do I reset my password?",
        "What is the weather today",
        "check order #12345 status",
        "let's play a trivia game",
        "tell me a joke please",
        "any news about the election",
        "testing",
    ],
)
def test_low_reusability_patterns(utterance: str) -> None:
    assert gate.pre_check(utterance).should_save is False


@pytest.mark.parametrize(
    "utterance",
    [
        "explain recursion",
        "define machine learning",
        "Who invented the telephone?",
        "difference between tcp and udp",
        "What is the capital of France?",
        "benefits of regular exercise",
    ],
)
def test_high_reusability_patterns(utterance: str) -> None:
    assert gate.pre_check(utterance).should_save is True


def test_low_rules_win_over_high_rules() -> None:
    # also matches "^what is ..." but the opinion rule is checked first
    result = gate.pre_check("what is the best phone?")

    assert result.should_save is False
    assert "best" in result.pattern


def test_unmatched_utterance_defers_to_arbiter() -> None:
    result = gate.pre_check("Tell me about volcanoes in Iceland")

    assert result == UNDECIDED
    assert result.should_save is None
    assert result.score == 5


def test_pre_check_ignores_case_and_padding() -> None:
    assert gate.pre_check("   HELLO   ").should_save is False


def test_rule_table_is_data_driven() -> None:
    custom = HeuristicGate(context_patterns=[], rules=[(re.compile(r"banana"), HIGH_REUSABILITY)])

    matched = custom.pre_check("banana bread recipe")
    assert matched.should_save is True
    assert matched.pattern == "banana"
    assert custom.pre_check("apple pie recipe") == UNDECIDED
    assert custom.classify_context("yes") is False


def test_pre_check_result_wire_shape() -> None:
    assert CONTEXT_DEPENDENT.to_dict() == {"shouldSave": False, "reason": "Context-dependent", "score": 1}
    assert PreCheckResult(None, "x", 5).to_dict()["shouldSave"] is None
