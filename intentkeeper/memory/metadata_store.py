"""IntentMetadataStore – purpose/scope/keywords for each intent, keyed by display name.

The NLU engine has nowhere to keep descriptive metadata, so it lives in a
JSON file next to the process state.  The file is read once at start-up and
rewritten (atomically) after every mutation.
"""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from intentkeeper.utils.atomic_io import AtomicFileWriter, get_atomic_writer


class IntentMetadata(BaseModel):
    """Descriptive metadata. Unknown keys posted by operators are kept."""

    model_config = ConfigDict(extra="allow")

    purpose: str = ""
    scope: str = ""
    keywords: list[str] = Field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None


DEFAULT_METADATA = IntentMetadata(purpose="No description", scope="unknown", keywords=[])


def _now() -> str:
    return datetime.now(tz=UTC).isoformat()


class IntentMetadataStore:
    """Process-local metadata map with a single read-modify-write lock."""

    def __init__(self, path: Path, writer: AtomicFileWriter | None = None) -> None:
        self.path = path
        self._writer = writer or get_atomic_writer()
        self._entries: dict[str, IntentMetadata] = {}
        self._lock = asyncio.Lock()

    def load(self) -> int:
        """Read the metadata file. A missing or corrupt file yields an empty map."""
        self._entries = {}
        if not self.path.exists():
            return 0
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            for name, data in raw.items():
                self._entries[name] = IntentMetadata.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError, AttributeError) as exc:
            logger.warning(f"Failed to load intent metadata from {self.path}: {exc}")
            self._entries = {}
        logger.info(f"Loaded metadata for {len(self._entries)} intents")
        return len(self._entries)

    def get(self, display_name: str) -> IntentMetadata | None:
        return self._entries.get(display_name)

    def get_or_default(self, display_name: str) -> IntentMetadata:
        return self._entries.get(display_name) or DEFAULT_METADATA.model_copy(deep=True)

    def snapshot(self) -> dict[str, dict[str, Any]]:
        return {name: meta.model_dump(exclude_none=True) for name, meta in self._entries.items()}

    async def record_created(self, display_name: str, metadata: dict[str, Any]) -> IntentMetadata:
        """Replace the entry for a freshly created intent and stamp ``created_at``."""
        async with self._lock:
            entry = IntentMetadata.model_validate({**metadata, "created_at": _now()})
            self._entries[display_name] = entry
            await self._persist()
        return entry

    async def merge(self, display_name: str, patch: dict[str, Any]) -> IntentMetadata:
        """Shallow-merge *patch* over the existing entry and stamp ``updated_at``."""
        async with self._lock:
            existing = self._entries.get(display_name)
            base = existing.model_dump(exclude_none=True) if existing else {}
            entry = IntentMetadata.model_validate({**base, **patch, "updated_at": _now()})
            self._entries[display_name] = entry
            await self._persist()
        return entry

    async def _persist(self) -> None:
        ok = await self._writer.write_json(self.path, self.snapshot())
        if not ok:
            logger.error(f"Intent metadata not persisted to {self.path}")
