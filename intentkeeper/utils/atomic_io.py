"""Crash-safe JSON state files.

Writers for one path queue on a shared asyncio lock.  The document goes to a
sibling temp file, is fsynced, then replaces the target, so a reader (or a
restart) never sees half a file.
"""

import asyncio
import json
import os
from collections import defaultdict
from functools import lru_cache
from pathlib import Path
from typing import Any

from loguru import logger


class AtomicFileWriter:
    def __init__(self) -> None:
        self._locks: defaultdict[Path, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def write_json(self, path: Path, data: Any) -> bool:
        """Replace *path* with *data* as JSON. Returns ``False`` (and logs) on failure."""
        try:
            document = json.dumps(data, indent=2, ensure_ascii=False, sort_keys=True) + "\n"
        except (TypeError, ValueError) as exc:
            logger.error(f"Cannot serialise state for {path}: {exc}")
            return False
        async with self._locks[path.resolve()]:
            return self._replace(path, document)

    @staticmethod
    def _replace(path: Path, document: str) -> bool:
        tmp = path.with_name(f".{path.name}.{os.getpid()}.tmp")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tmp.open("w", encoding="utf-8") as fh:
                fh.write(document)
                fh.flush()
                os.fsync(fh.fileno())
            tmp.replace(path)
        except OSError as exc:
            logger.error(f"Failed to write {path}: {exc}")
            tmp.unlink(missing_ok=True)
            return False
        return True


@lru_cache(maxsize=1)
def get_atomic_writer() -> AtomicFileWriter:
    """Process-wide writer, so every store writing the same file shares one lock."""
    return AtomicFileWriter()
