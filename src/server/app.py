"""FastAPI application for the Discord webhook relay."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import discord
import httpx
from fastapi import FastAPI

from src.audit.logger import AuditLogger
from src.bot.session import BotSession
from src.config import RelaySettings
from src.server.routes import create_relay_router
from src.webhook.service import RelayService

logger = logging.getLogger(__name__)


def create_app_from_env() -> FastAPI:
    """Factory for uvicorn --factory: reads config from environment variables."""
    bot_token = os.environ["BOT_TOKEN"]
    audit_log = os.environ.get("AUDIT_LOG_PATH")
    audit_logger = AuditLogger.from_env(audit_log) if audit_log else None
    service = RelayService(
        httpx.AsyncClient(),
        settings=RelaySettings.from_env(),
        bot=BotSession(),
        audit_logger=audit_logger,
    )
    return create_app(service, bot_token=bot_token)


def create_app(service: RelayService, bot_token: str | None = None) -> FastAPI:
    """Create the relay app around an already-built RelayService.

    When the service carries a bot session, the app logs it in during
    startup; a missing or rejected token aborts startup.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        bot = service.bot
        if bot is not None:
            if not bot_token:
                raise RuntimeError("BOT_TOKEN is not set")
            try:
                await bot.start(bot_token)
            except discord.LoginFailure as e:
                logger.error("Login failed: %s", e)
                await bot.close()
                await service.aclose()
                raise
        try:
            yield
        finally:
            if bot is not None:
                await bot.close()
            await service.aclose()

    app = FastAPI(docs_url=None, redoc_url=None, lifespan=lifespan)

    @app.get("/health")
    async def health() -> dict[str, str]:
        if service.bot is None:
            bot_state = "disabled"
        else:
            bot_state = "ready" if service.bot.is_ready else "starting"
        return {"status": "ok", "bot": bot_state}

    app.include_router(create_relay_router(service))
    return app
