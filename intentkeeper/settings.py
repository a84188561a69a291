"""Centralised settings for intentkeeper, loaded from env / .env."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class IntentKeeperSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="INTENTKEEPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- general ---
    app_name: str = "intentkeeper"
    env: str = "dev"
    debug: bool = False
    log_level: str = "INFO"

    # --- HTTP ---
    host: str = "0.0.0.0"
    port: int = 3000

    # --- Dialogflow (NLU engine + intent store) ---
    dialogflow_project_id: str = ""
    dialogflow_client_email: str = ""
    dialogflow_private_key: str = ""
    language_code: str = "en-US"
    intent_language_code: str = "en"

    # --- arbiter LLM ---
    judge_model: str = "groq/llama-3.1-8b-instant"
    judge_api_key: str = ""
    judge_api_base: str = ""
    judge_temperature: float = 0.3
    judge_max_tokens: int = 1200

    # --- per-call timeouts (seconds) ---
    nlu_timeout_seconds: float = 15.0
    judge_timeout_seconds: float = 30.0
    store_timeout_seconds: float = 20.0

    # --- persistence policy ---
    reusability_threshold: int = 7
    max_history_length: int = 10
    max_decision_log: int = 100
    serialize_intent_writes: bool = True

    # --- file-system paths ---
    state_dir: Path = Field(default_factory=lambda: Path.home() / ".intentkeeper")
    metadata_file: Path | None = None

    # --- locks (Redis optional; empty URL keeps locks in-process) ---
    redis_url: str = ""
    lock_timeout_seconds: float = 60.0

    @property
    def metadata_path(self) -> Path:
        return self.metadata_file or self.state_dir / "intent_metadata.json"

    @property
    def private_key(self) -> str:
        """Service-account key with escaped newlines restored."""
        return self.dialogflow_private_key.replace("\\n", "\n")


@lru_cache
def get_settings() -> IntentKeeperSettings:
    s = IntentKeeperSettings()
    s.state_dir.mkdir(parents=True, exist_ok=True)
    return s
