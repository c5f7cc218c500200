"""Shared Pydantic data models for discord-webhook-relay."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

DEFAULT_AVATAR_URL = "https://cdn.discordapp.com/embed/avatars/0.png"

# --- Enums ---


class AuditEventType(str, Enum):
    WEBHOOK_REGISTERED = "webhook_registered"
    WEBHOOK_REJECTED = "webhook_rejected"
    WEBHOOK_DELETED = "webhook_deleted"
    MESSAGE_RELAYED = "message_relayed"
    RELAY_FAILED = "relay_failed"
    MESSAGES_FETCHED = "messages_fetched"
    FETCH_FAILED = "fetch_failed"


class RiskLevel(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# --- Wire models (camelCase on the wire) ---


class WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True,
    )


class Endpoint(WireModel):
    """A registered outgoing webhook. Immutable once stored."""

    id: str
    name: str
    avatar_url: str
    channel_id: str | None = None
    url: str


class MessageAuthor(WireModel):
    username: str
    avatar_url: str = DEFAULT_AVATAR_URL


class EmbedField(WireModel):
    name: str
    value: str


class MessageEmbed(WireModel):
    title: str | None = None
    description: str | None = None
    fields: list[EmbedField] = Field(default_factory=list)
    thumbnail: str | None = None
    image: str | None = None


class MessageAttachment(WireModel):
    url: str
    filename: str
    content_type: str | None = None


class ChannelMessage(WireModel):
    """Normalized view of a message read through the bot session."""

    id: str = Field(min_length=1)
    content: str
    author: MessageAuthor
    timestamp: str  # ISO8601
    embeds: list[MessageEmbed] = Field(default_factory=list)
    attachments: list[MessageAttachment] = Field(default_factory=list)


# --- Audit Models ---


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class AuditEvent(BaseModel):
    timestamp: str = Field(default_factory=_now_iso)
    event_type: AuditEventType
    source_ip: str | None = None
    action: str
    result: str  # "success" | "failure" | "rejected"
    risk_level: RiskLevel
    details: dict[str, object] | None = None
