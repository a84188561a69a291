"""FastAPI application factory with lifespan for intentkeeper."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from intentkeeper import __version__
from intentkeeper.agent.handler import MessageHandler
from intentkeeper.settings import get_settings


def create_app(handler: MessageHandler | None = None) -> FastAPI:
    """Build the app. Pass *handler* to inject collaborators (tests, embedding)."""
    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Startup: wire the handler and probe the NLU engine."""
        if getattr(app.state, "handler", None) is None:
            app.state.handler = MessageHandler.from_settings(settings)
        status = await app.state.handler.check_connection()
        logger.info(f"NLU engine: {status.status}" + (f" ({status.error})" if status.error else ""))
        yield

    app = FastAPI(title=settings.app_name, version=__version__, lifespan=lifespan)
    app.state.handler = handler

    # ── mount routers ──
    from intentkeeper.api.routes import chat, inspection

    app.include_router(inspection.router, prefix="/api", tags=["inspection"])
    app.include_router(chat.router, tags=["chat"])

    return app
