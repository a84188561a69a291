"""Shared FastAPI dependencies."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi.requests import HTTPConnection

from intentkeeper.agent.handler import MessageHandler


def get_handler(conn: HTTPConnection) -> MessageHandler:
    """The handler built in the app lifespan (works for HTTP and WebSocket routes)."""
    return conn.app.state.handler


HandlerDep = Annotated[MessageHandler, Depends(get_handler)]
