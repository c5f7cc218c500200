"""Long-lived Discord bot session used for reading channels and history.

Posting never goes through the bot; only webhook endpoints post messages.
"""

from __future__ import annotations

import asyncio
import logging

import discord

logger = logging.getLogger(__name__)


def default_intents() -> discord.Intents:
    intents = discord.Intents.none()
    intents.guilds = True
    intents.guild_messages = True
    intents.message_content = True
    return intents


class BotSession:
    """Wraps a ``discord.Client`` with an explicit login/connect lifecycle."""

    def __init__(self, client: discord.Client | None = None) -> None:
        self.client = client or discord.Client(intents=default_intents())
        self._connect_task: asyncio.Task[None] | None = None

    @property
    def is_ready(self) -> bool:
        return self.client.is_ready()

    async def start(self, token: str) -> None:
        """Authenticate, then keep the gateway connection in the background.

        ``discord.LoginFailure`` propagates: the service is useless without
        a bot identity.
        """
        await self.client.login(token)
        logger.info("Bot authenticated, connecting to gateway")
        self._connect_task = asyncio.create_task(self.client.connect())
        self._connect_task.add_done_callback(self._on_connect_done)

    async def close(self) -> None:
        if not self.client.is_closed():
            await self.client.close()
        if self._connect_task is not None:
            self._connect_task.cancel()
            await asyncio.gather(self._connect_task, return_exceptions=True)
            self._connect_task = None

    @staticmethod
    def _on_connect_done(task: asyncio.Task[None]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Bot gateway connection ended: %s", exc)

    async def resolve_channel(self, channel_id: int) -> object:
        """Fetch a channel from the API, bypassing the local cache."""
        return await self.client.fetch_channel(channel_id)

    def can_read_history(self, channel: object) -> bool:
        """True if the bot holds both view-channel and read-history on ``channel``."""
        guild = getattr(channel, "guild", None)
        me = guild.me if guild is not None else self.client.user
        if me is None:
            return False
        perms = channel.permissions_for(me)  # type: ignore[attr-defined]
        return bool(perms.view_channel and perms.read_message_history)

    async def recent_messages(
        self, channel: discord.abc.Messageable, limit: int,
    ) -> list[discord.Message]:
        """Newest-first page of messages, in Discord's native order."""
        return [msg async for msg in channel.history(limit=limit)]
