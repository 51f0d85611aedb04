"""FastAPI endpoint a messaging transport posts inbound messages to."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI
from pydantic import BaseModel, Field

from compound_chat.bot import Bot

logger = logging.getLogger("compound_chat.server")


class InboundMessage(BaseModel):
    account_id: str = Field(min_length=1)
    text: str


class Reply(BaseModel):
    reply: str


def create_app(bot: Bot | None = None, base_path: Path | None = None) -> FastAPI:
    """Build the app.

    With *bot* given the app uses it as-is and leaves its lifecycle to the
    caller; otherwise the bot is loaded from *base_path* on startup and shut
    down with the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = bot is None
        app.state.bot = bot if bot is not None else await Bot.load(base_path)
        if owned:
            app.state.bot.start()
        logger.info(f"Server started on {app.state.bot.network.name}")
        try:
            yield
        finally:
            if owned:
                await app.state.bot.shutdown()

    app = FastAPI(title="CompoundChat", lifespan=lifespan)

    # ------------------------------------------------------------------
    # API routes
    # ------------------------------------------------------------------

    @app.get("/health")
    async def health():
        current: Bot = app.state.bot
        return {
            "status": "ok",
            "network": current.network.name,
            "chain_id": current.network.chain_id,
            "pending_sessions": len(current.sessions),
        }

    @app.post("/messages", response_model=Reply)
    async def messages(body: InboundMessage) -> Reply:
        current: Bot = app.state.bot
        reply = await current.handle_message(body.account_id, body.text)
        return Reply(reply=reply)

    return app


def run_server(
    host: str = "127.0.0.1",
    port: int = 8430,
    base_path: Path | None = None,
    log_level: str = "INFO",
) -> None:
    uvicorn.run(create_app(base_path=base_path), host=host, port=port, log_level=log_level.lower())
