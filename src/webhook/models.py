"""Data models for the webhook relay pipeline."""

from __future__ import annotations

from dataclasses import dataclass

from src.models import Endpoint

PRIVACY_NOTICE = (
    "Webhook URLs are stored locally and sent to this server for processing. "
    "Ensure you trust the server operator."
)


@dataclass(frozen=True)
class OutgoingAttachment:
    """A file uploaded by the client, to be forwarded as a multipart part."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass(frozen=True)
class Registration:
    """Result of adding an endpoint to the registry."""

    endpoint: Endpoint
    privacy_notice: str = PRIVACY_NOTICE
