from pathlib import Path
from types import SimpleNamespace

import pytest

from intentkeeper.providers import litellm_provider
from intentkeeper.providers.litellm_provider import LiteLLMProvider
from intentkeeper.settings import IntentKeeperSettings


def _completion(content: str) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=4, total_tokens=16),
    )


@pytest.mark.asyncio
async def test_litellm_provider_forwards_json_mode_and_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    seen = {}

    async def fake_acompletion(**kwargs):
        seen.update(kwargs)
        return _completion('{"answer": "ok"}')

    monkeypatch.setattr(litellm_provider, "acompletion", fake_acompletion)
    provider = LiteLLMProvider(api_key="sk-test", default_model="groq/llama-3.1-8b-instant")

    response = await provider.chat([{"role": "user", "content": "hi"}], json_mode=True)

    assert response.content == '{"answer": "ok"}'
    assert response.failed is False
    assert response.usage["total_tokens"] == 16
    assert seen["model"] == "groq/llama-3.1-8b-instant"
    assert seen["response_format"] == {"type": "json_object"}
    assert seen["api_key"] == "sk-test"
    assert "api_base" not in seen


@pytest.mark.asyncio
async def test_litellm_provider_reports_errors_as_values(monkeypatch: pytest.MonkeyPatch) -> None:
    async def failing(**kwargs):
        raise RuntimeError("rate limited")

    monkeypatch.setattr(litellm_provider, "acompletion", failing)

    response = await LiteLLMProvider().chat([{"role": "user", "content": "hi"}], model="openai/gpt-4o-mini")

    assert response.failed is True
    assert response.error == "rate limited"
    assert response.model == "openai/gpt-4o-mini"


def test_settings_read_prefixed_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("INTENTKEEPER_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("INTENTKEEPER_REUSABILITY_THRESHOLD", "8")
    monkeypatch.setenv("INTENTKEEPER_DIALOGFLOW_PRIVATE_KEY", "-----BEGIN-----\\nabc\\n-----END-----")

    settings = IntentKeeperSettings()

    assert settings.reusability_threshold == 8
    assert settings.metadata_path == tmp_path / "intent_metadata.json"
    assert settings.private_key == "-----BEGIN-----\nabc\n-----END-----"
    assert settings.serialize_intent_writes is True
