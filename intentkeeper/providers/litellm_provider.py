"""LiteLLM-backed arbiter transport."""

from typing import Any

import litellm
from litellm import acompletion
from loguru import logger

from intentkeeper.providers.base import LLMProvider, LLMResponse

_USAGE_FIELDS = ("prompt_tokens", "completion_tokens", "total_tokens")


class LiteLLMProvider(LLMProvider):
    """
    Arbiter provider speaking through LiteLLM.

    Models use LiteLLM's ``provider/model`` names (``groq/llama-3.1-8b-instant``,
    ``openai/gpt-4o-mini``), so moving the arbiter to another vendor only
    changes settings.
    """

    def __init__(
        self,
        api_key: str | None = None,
        api_base: str | None = None,
        default_model: str = "groq/llama-3.1-8b-instant",
        extra_headers: dict[str, str] | None = None,
    ):
        super().__init__(api_key, api_base)
        self.default_model = default_model
        self.extra_headers = extra_headers or {}

        litellm.suppress_debug_info = True
        # some providers reject response_format; let LiteLLM drop it
        litellm.drop_params = True

    async def chat(
        self,
        messages: list[dict[str, Any]],
        model: str | None = None,
        max_tokens: int = 1200,
        temperature: float = 0.3,
        json_mode: bool = False,
    ) -> LLMResponse:
        model = model or self.default_model
        request: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
            **self._credentials(),
        }
        if json_mode:
            request["response_format"] = {"type": "json_object"}

        logger.debug(f"Arbiter request to {model} ({len(messages)} messages, json_mode={json_mode})")
        try:
            completion = await acompletion(**request)
        except Exception as e:
            logger.error(f"LLM call failed ({model}): {e}")
            return LLMResponse(content=None, finish_reason="error", model=model, error=str(e))

        choice = completion.choices[0]
        usage = getattr(completion, "usage", None)
        return LLMResponse(
            content=choice.message.content,
            finish_reason=choice.finish_reason or "stop",
            usage={f: getattr(usage, f, 0) for f in _USAGE_FIELDS} if usage else {},
            model=model,
        )

    def _credentials(self) -> dict[str, Any]:
        creds = {"api_key": self.api_key, "api_base": self.api_base, "extra_headers": self.extra_headers}
        return {k: v for k, v in creds.items() if v}

    def get_default_model(self) -> str:
        return self.default_model
