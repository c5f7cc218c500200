"""RelayService: the single state container behind the HTTP handlers.

Owns the endpoint registry, the validator (cooldown + success cache), the
message relay and the shared outbound HTTP client. Constructed once at
startup and injected into the route factory.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import httpx

from src.config import RelaySettings
from src.models import AuditEvent, AuditEventType, ChannelMessage, Endpoint, RiskLevel
from src.webhook.cooldown import ValidationCooldown
from src.webhook.errors import (
    DuplicateEndpointError,
    InvalidFormatError,
    RelayError,
    RelayFailedError,
)
from src.webhook.models import OutgoingAttachment, Registration
from src.webhook.registry import WEBHOOK_URL_PREFIX, EndpointRegistry, redact_webhook_url
from src.webhook.relay import MessageRelay, check_message
from src.webhook.validator import WebhookValidator

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger
    from src.bot.session import BotSession

logger = logging.getLogger(__name__)

# Discord answers these when a webhook was deleted or its token revoked.
_STALE_WEBHOOK_STATUSES = frozenset({401, 404})


class RelayService:
    """Registration, relay and history reads over shared in-memory state."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: RelaySettings | None = None,
        bot: BotSession | None = None,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self.settings = settings or RelaySettings()
        self.bot = bot
        self._http = http_client
        self._audit = audit_logger
        self.registry = EndpointRegistry()
        self.validator = WebhookValidator(
            http_client,
            cooldown=ValidationCooldown(self.settings.validation_cooldown_seconds),
            timeout=self.settings.validation_timeout_seconds,
            max_rate_limit_wait=self.settings.max_rate_limit_wait_seconds,
        )
        self.relay = MessageRelay(
            http_client,
            bot=bot,
            send_timeout=self.settings.send_timeout_seconds,
            max_attachments=self.settings.max_attachments,
            max_attachment_bytes=self.settings.max_attachment_bytes,
            history_page_size=self.settings.history_page_size,
            fetch_timeout=self.settings.fetch_timeout_seconds,
        )
        self._url_locks: dict[str, asyncio.Lock] = {}
        self._url_lock_users: dict[str, int] = {}

    async def aclose(self) -> None:
        await self._http.aclose()

    # --- Registry & validation ---

    async def register(self, url: str, source_ip: str | None = None) -> Registration:
        """Validate ``url`` against Discord and store the resulting endpoint.

        At most one validation per URL is in flight; a URL that is already
        registered is rejected before any cooldown or network work.
        """
        if not isinstance(url, str) or not url.startswith(WEBHOOK_URL_PREFIX):
            logger.info("Invalid webhook URL received")
            raise InvalidFormatError()

        async with self._url_lock(url):
            try:
                if self.registry.has_url(url):
                    raise DuplicateEndpointError()
                endpoint = await self.validator.validate(url)
                registration = self.registry.add(endpoint)
            except RelayError as e:
                self._audit_event(
                    AuditEventType.WEBHOOK_REJECTED, "register", "rejected",
                    RiskLevel.LOW, source_ip,
                    {"url": redact_webhook_url(url), "reason": str(e)},
                )
                raise

        self._audit_event(
            AuditEventType.WEBHOOK_REGISTERED, "register", "success",
            RiskLevel.INFO, source_ip,
            {"endpoint_id": endpoint.id, "channel_id": endpoint.channel_id},
        )
        return registration

    @asynccontextmanager
    async def _url_lock(self, url: str) -> AsyncIterator[None]:
        """Serialize work on one URL; the lock is dropped once nobody holds or awaits it."""
        lock = self._url_locks.setdefault(url, asyncio.Lock())
        self._url_lock_users[url] = self._url_lock_users.get(url, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._url_lock_users[url] -= 1
            if not self._url_lock_users[url]:
                del self._url_lock_users[url]
                del self._url_locks[url]

    def lookup(self, endpoint_id: str) -> Endpoint:
        return self.registry.lookup(endpoint_id)

    def list_endpoints(self) -> list[Endpoint]:
        return self.registry.list()

    def delete(self, endpoint_id: str, source_ip: str | None = None) -> Endpoint:
        endpoint = self.registry.delete(endpoint_id)
        self._audit_event(
            AuditEventType.WEBHOOK_DELETED, "delete", "success",
            RiskLevel.INFO, source_ip, {"endpoint_id": endpoint_id},
        )
        return endpoint

    # --- Relay ---

    async def send(
        self,
        endpoint_id: str,
        content: str | None = None,
        attachments: list[OutgoingAttachment] | None = None,
        source_ip: str | None = None,
    ) -> None:
        attachments = attachments or []
        check_message(
            content, attachments,
            self.settings.max_attachments, self.settings.max_attachment_bytes,
        )
        endpoint = self.registry.lookup(endpoint_id)

        try:
            await self.relay.send(endpoint, content, attachments)
        except RelayFailedError as e:
            logger.warning("Error sending message to %s: %s", endpoint_id, e)
            if e.remote_status in _STALE_WEBHOOK_STATUSES:
                self.validator.forget(endpoint.url)
            self._audit_event(
                AuditEventType.RELAY_FAILED, "send", "failure",
                RiskLevel.MEDIUM, source_ip,
                {"endpoint_id": endpoint_id, "remote_status": e.remote_status},
            )
            raise

        self._audit_event(
            AuditEventType.MESSAGE_RELAYED, "send", "success",
            RiskLevel.INFO, source_ip,
            {"endpoint_id": endpoint_id, "files": len(attachments)},
        )

    async def fetch_recent(
        self, channel_id: str, source_ip: str | None = None,
    ) -> list[ChannelMessage]:
        try:
            messages = await self.relay.fetch_recent(channel_id)
        except RelayError as e:
            logger.warning("Error fetching messages for channel %s: %s", channel_id, e)
            self._audit_event(
                AuditEventType.FETCH_FAILED, "fetch", "failure",
                RiskLevel.LOW, source_ip,
                {"channel_id": channel_id, "reason": str(e)},
            )
            raise

        self._audit_event(
            AuditEventType.MESSAGES_FETCHED, "fetch", "success",
            RiskLevel.INFO, source_ip,
            {"channel_id": channel_id, "count": len(messages)},
        )
        return messages

    def _audit_event(
        self,
        event_type: AuditEventType,
        action: str,
        result: str,
        risk_level: RiskLevel,
        source_ip: str | None,
        details: dict[str, object],
    ) -> None:
        if self._audit:
            self._audit.log(AuditEvent(
                event_type=event_type,
                source_ip=source_ip,
                action=action,
                result=result,
                risk_level=risk_level,
                details=details,
            ))
