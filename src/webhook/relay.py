"""Message relay: posting to webhook endpoints and reading channel history.

Send stages:
1. Reject empty messages and oversized uploads (no network call)
2. Build a multipart payload (content field + one part per file)
3. POST to the endpoint URL via httpx

Fetch stages:
1. Resolve the channel through the bot session
2. Check view-channel / read-history permissions
3. Read the newest page and normalize each message
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aiohttp
import discord
import httpx

from src.bot.messages import to_channel_message
from src.models import ChannelMessage, Endpoint
from src.webhook.errors import (
    AttachmentTooLargeError,
    ChannelNotFoundError,
    EmptyMessageError,
    FetchFailedError,
    ForbiddenError,
    InvalidChannelError,
    RelayFailedError,
    TooManyAttachmentsError,
)
from src.webhook.models import OutgoingAttachment

if TYPE_CHECKING:
    from src.bot.session import BotSession

logger = logging.getLogger(__name__)

_MAX_ATTACHMENT_BYTES = 8 * 1024 * 1024  # 8 MiB per file
_MAX_ATTACHMENTS = 10
_HISTORY_PAGE_SIZE = 50

# Transport failures raised by discord.py's aiohttp session, plus our own timeout.
_BOT_NETWORK_ERRORS = (TimeoutError, aiohttp.ClientError, OSError)


def check_message(
    content: str | None,
    attachments: list[OutgoingAttachment],
    max_attachments: int = _MAX_ATTACHMENTS,
    max_attachment_bytes: int = _MAX_ATTACHMENT_BYTES,
) -> None:
    """Validate a composed message before any lookup or network call."""
    if not content and not attachments:
        raise EmptyMessageError()
    if len(attachments) > max_attachments:
        raise TooManyAttachmentsError(max_attachments)
    for attachment in attachments:
        if attachment.size > max_attachment_bytes:
            raise AttachmentTooLargeError(attachment.filename, max_attachment_bytes)


def _network_reason(e: BaseException) -> str:
    if isinstance(e, TimeoutError):
        return "Discord did not respond in time"
    return str(e) or type(e).__name__


def build_multipart(
    content: str | None, attachments: list[OutgoingAttachment],
) -> list[tuple[str, Any]]:
    """Multipart parts for Discord's execute-webhook endpoint.

    Content is sent as a filename-less part so the request is multipart even
    without files.
    """
    parts: list[tuple[str, Any]] = []
    if content:
        parts.append(("content", (None, content.encode())))
    for i, attachment in enumerate(attachments):
        parts.append((
            f"files[{i}]",
            (attachment.filename, attachment.data, attachment.content_type),
        ))
    return parts


class MessageRelay:
    """Forwards composed messages to endpoints and reads recent channel messages."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        bot: BotSession | None = None,
        send_timeout: float = 10.0,
        max_attachments: int = _MAX_ATTACHMENTS,
        max_attachment_bytes: int = _MAX_ATTACHMENT_BYTES,
        history_page_size: int = _HISTORY_PAGE_SIZE,
        fetch_timeout: float = 10.0,
    ) -> None:
        self._http = http_client
        self._bot = bot
        self._send_timeout = send_timeout
        self.max_attachments = max_attachments
        self.max_attachment_bytes = max_attachment_bytes
        self._page_size = history_page_size
        self._fetch_timeout = fetch_timeout

    async def send(
        self,
        endpoint: Endpoint,
        content: str | None = None,
        attachments: list[OutgoingAttachment] | None = None,
    ) -> None:
        attachments = attachments or []
        check_message(
            content, attachments, self.max_attachments, self.max_attachment_bytes,
        )

        try:
            resp = await self._http.post(
                endpoint.url,
                files=build_multipart(content, attachments),
                timeout=self._send_timeout,
            )
        except httpx.TimeoutException as e:
            raise RelayFailedError("Discord did not respond in time") from e
        except httpx.HTTPError as e:
            raise RelayFailedError(str(e) or type(e).__name__) from e

        if not resp.is_success:
            raise RelayFailedError(
                f"{resp.status_code} - {resp.text}",
                remote_status=resp.status_code,
                body=resp.text,
            )

        logger.info(
            "Message sent successfully to webhook: %s (%d file(s))",
            endpoint.id, len(attachments),
        )

    async def fetch_recent(self, channel_id: str) -> list[ChannelMessage]:
        if self._bot is None:
            raise FetchFailedError("bot session is not configured")
        try:
            snowflake = int(channel_id)
        except ValueError:
            raise InvalidChannelError() from None

        try:
            async with asyncio.timeout(self._fetch_timeout):
                channel = await self._bot.resolve_channel(snowflake)
        except discord.NotFound as e:
            raise ChannelNotFoundError() from e
        except discord.Forbidden as e:
            raise ForbiddenError() from e
        except (discord.HTTPException, discord.InvalidData) as e:
            raise FetchFailedError(str(e)) from e
        except _BOT_NETWORK_ERRORS as e:
            raise FetchFailedError(_network_reason(e)) from e

        if not isinstance(channel, discord.abc.Messageable):
            raise InvalidChannelError()
        if not self._bot.can_read_history(channel):
            raise ForbiddenError()

        try:
            async with asyncio.timeout(self._fetch_timeout):
                messages = await self._bot.recent_messages(channel, self._page_size)
        except discord.Forbidden as e:
            raise ForbiddenError() from e
        except discord.HTTPException as e:
            raise FetchFailedError(str(e)) from e
        except _BOT_NETWORK_ERRORS as e:
            raise FetchFailedError(_network_reason(e)) from e

        formatted = [to_channel_message(m) for m in messages[: self._page_size]]
        logger.info("Fetched %d messages for channel %s", len(formatted), channel_id)
        return formatted
