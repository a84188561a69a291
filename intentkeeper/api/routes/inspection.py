"""Read-mostly inspection API: decision log, intent catalog, metadata."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, ConfigDict

from intentkeeper.api.deps import HandlerDep
from intentkeeper.nl.intent_engine import is_protected

router = APIRouter()

RECENT_LOGS = 30


class MetadataPatch(BaseModel):
    model_config = ConfigDict(extra="allow")

    purpose: str | None = None
    scope: str | None = None
    keywords: list[str] | None = None


@router.get("/logs")
async def list_logs(handler: HandlerDep) -> dict[str, Any]:
    log = handler.decision_log
    return {"total": len(log), "logs": [e.to_dict() for e in log.recent(RECENT_LOGS)]}


@router.get("/intents")
async def list_intents(handler: HandlerDep) -> dict[str, Any]:
    intents = await handler.catalog()
    return {"count": len(intents), "intents": [i.to_dict() for i in intents]}


@router.get("/metadata")
async def get_metadata(handler: HandlerDep) -> dict[str, Any]:
    return handler.metadata.snapshot()


@router.post("/metadata/{name}")
async def update_metadata(name: str, body: MetadataPatch, handler: HandlerDep) -> dict[str, Any]:
    if is_protected(name):
        raise HTTPException(status_code=403, detail=f"{name!r} is a protected intent")
    entry = await handler.metadata.merge(name, body.model_dump(exclude_unset=True))
    return {"success": True, "metadata": entry.model_dump(exclude_none=True)}


@router.get("/health")
async def health(handler: HandlerDep) -> dict[str, str]:
    status = await handler.check_connection()
    return status.to_dict()
