"""In-memory registry of validated webhook endpoints.

Registrations are volatile: they live until deleted or until the process
exits.
"""

from __future__ import annotations

import logging

from src.models import Endpoint
from src.webhook.errors import DuplicateEndpointError, EndpointNotFoundError
from src.webhook.models import Registration

logger = logging.getLogger(__name__)

WEBHOOK_URL_PREFIX = "https://discord.com/api/webhooks/"


def redact_webhook_url(url: str) -> str:
    """Strip the secret token from a webhook URL for logging."""
    if not url.startswith(WEBHOOK_URL_PREFIX):
        return "<invalid webhook url>"
    webhook_id = url[len(WEBHOOK_URL_PREFIX):].split("/", 1)[0]
    return f"{WEBHOOK_URL_PREFIX}{webhook_id}/***"


class EndpointRegistry:
    """Ordered store of endpoints, unique by URL and by id, looked up by id."""

    def __init__(self) -> None:
        self._endpoints: list[Endpoint] = []

    def __len__(self) -> int:
        return len(self._endpoints)

    def has_url(self, url: str) -> bool:
        return any(e.url == url for e in self._endpoints)

    def has_id(self, endpoint_id: str) -> bool:
        return any(e.id == endpoint_id for e in self._endpoints)

    def add(self, endpoint: Endpoint) -> Registration:
        if self.has_url(endpoint.url):
            logger.info("Duplicate webhook URL: %s", redact_webhook_url(endpoint.url))
            raise DuplicateEndpointError()
        # Ids are the lookup key: another spelling of a stored webhook URL
        # validates to the same id and must not create a second entry.
        if self.has_id(endpoint.id):
            logger.info("Duplicate webhook id: %s", endpoint.id)
            raise DuplicateEndpointError()

        self._endpoints.append(endpoint)
        logger.info("Webhook added: %s (%s)", endpoint.name, endpoint.id)
        return Registration(endpoint=endpoint)

    def lookup(self, endpoint_id: str) -> Endpoint:
        for endpoint in self._endpoints:
            if endpoint.id == endpoint_id:
                return endpoint
        raise EndpointNotFoundError(endpoint_id)

    def delete(self, endpoint_id: str) -> Endpoint:
        endpoint = self.lookup(endpoint_id)
        self._endpoints.remove(endpoint)
        logger.info("Webhook deleted: %s", endpoint_id)
        return endpoint

    def list(self) -> list[Endpoint]:
        return list(self._endpoints)
