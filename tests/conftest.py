"""Shared test fixtures for discord-webhook-relay."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock

import httpx
import pytest

from src.audit.logger import AuditLogger
from src.models import DEFAULT_AVATAR_URL, AuditEvent, AuditEventType, Endpoint, RiskLevel

WEBHOOK_URL = "https://discord.com/api/webhooks/123/abc"

Handler = Callable[[httpx.Request], httpx.Response]


class DiscordStub:
    """Records outbound requests and answers them from a handler."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


def webhook_object(**kwargs: Any) -> dict[str, Any]:
    """Discord's GET /webhooks/{id}/{token} body with sensible defaults."""
    defaults: dict[str, Any] = {
        "id": "123",
        "type": 1,
        "name": "Bot",
        "avatar": None,
        "channel_id": "999",
        "guild_id": "555",
        "token": "abc",
    }
    defaults.update(kwargs)
    return defaults


def discord_ok(request: httpx.Request) -> httpx.Response:
    """Validate any webhook URL; accept any posted message."""
    if request.method == "GET":
        webhook_id = request.url.path.split("/")[3]
        return httpx.Response(200, json=webhook_object(id=webhook_id))
    return httpx.Response(204)


@pytest.fixture
def discord_stub() -> DiscordStub:
    return DiscordStub(discord_ok)


@pytest.fixture
def mock_audit_logger() -> MagicMock:
    return MagicMock(spec=AuditLogger)


# --- Factory functions for test data ---


def make_endpoint(**kwargs: Any) -> Endpoint:
    """Factory for Endpoint with sensible defaults."""
    defaults: dict[str, Any] = {
        "id": "123",
        "name": "Bot",
        "avatar_url": DEFAULT_AVATAR_URL,
        "channel_id": "999",
        "url": WEBHOOK_URL,
    }
    defaults.update(kwargs)
    return Endpoint(**defaults)


def make_audit_event(**kwargs: Any) -> AuditEvent:
    """Factory for AuditEvent with sensible defaults."""
    defaults: dict[str, Any] = {
        "event_type": AuditEventType.WEBHOOK_REGISTERED,
        "action": "register",
        "result": "success",
        "risk_level": RiskLevel.INFO,
    }
    defaults.update(kwargs)
    return AuditEvent(**defaults)


def make_discord_message(**kwargs: Any) -> SimpleNamespace:
    """Duck-typed stand-in for ``discord.Message``."""
    defaults: dict[str, Any] = {
        "id": 1001,
        "content": "hello",
        "author": SimpleNamespace(name="alice", avatar=None),
        "created_at": datetime(2026, 1, 1, 12, 0, tzinfo=UTC),
        "embeds": [],
        "attachments": [],
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)
