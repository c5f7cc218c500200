"""Webhook validation against Discord with cooldown, cache and bounded backoff.

Validation stages:
1. Cooldown check (per URL)
2. Success cache short-circuit
3. GET the webhook URL itself
4. On 429, wait once (capped) and retry a single time
5. Parse the webhook object into an Endpoint
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import httpx

from src.models import DEFAULT_AVATAR_URL, Endpoint
from src.webhook.cooldown import ValidationCooldown
from src.webhook.errors import (
    InvalidWebhookError,
    RateLimitedError,
    TooManyAttemptsError,
)
from src.webhook.registry import redact_webhook_url

logger = logging.getLogger(__name__)

_MAX_RETRIES = 1
_DEFAULT_NAME = "Unnamed Webhook"
_AVATAR_URL_TEMPLATE = "https://cdn.discordapp.com/avatars/{id}/{avatar}.png"


def parse_webhook_payload(url: str, data: Any) -> Endpoint:
    """Build an Endpoint from Discord's webhook object.

    Fallbacks: ``name`` -> "Unnamed Webhook"; ``avatar`` -> Discord's default
    avatar image.
    """
    if not isinstance(data, dict) or not data.get("id"):
        raise InvalidWebhookError("response did not identify a webhook")

    webhook_id = str(data["id"])
    name = data.get("name") or _DEFAULT_NAME
    avatar_hash = data.get("avatar")
    if avatar_hash:
        avatar_url = _AVATAR_URL_TEMPLATE.format(id=webhook_id, avatar=avatar_hash)
    else:
        avatar_url = DEFAULT_AVATAR_URL
    channel_id = data.get("channel_id")

    return Endpoint(
        id=webhook_id,
        name=name,
        avatar_url=avatar_url,
        channel_id=str(channel_id) if channel_id is not None else None,
        url=url,
    )


def retry_after_seconds(resp: httpx.Response) -> float | None:
    """Suggested wait from a 429: Retry-After header, then JSON ``retry_after``."""
    header = resp.headers.get("retry-after")
    if header:
        try:
            return float(header)
        except ValueError:
            pass
    try:
        body = resp.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    if isinstance(body, dict) and isinstance(body.get("retry_after"), int | float):
        return float(body["retry_after"])
    return None


class WebhookValidator:
    """Validates candidate webhook URLs against Discord."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        cooldown: ValidationCooldown | None = None,
        timeout: float = 5.0,
        max_rate_limit_wait: float = 10.0,
    ) -> None:
        self._http = http_client
        self._cooldown = cooldown or ValidationCooldown()
        self._timeout = timeout
        self._max_rate_limit_wait = max_rate_limit_wait
        self._cache: dict[str, Endpoint] = {}

    def cached(self, url: str) -> Endpoint | None:
        return self._cache.get(url)

    def forget(self, url: str) -> None:
        """Drop a cached validation, e.g. after Discord reports it deleted."""
        if self._cache.pop(url, None) is not None:
            logger.info("Evicted cached validation for %s", redact_webhook_url(url))

    async def validate(self, url: str) -> Endpoint:
        if not self._cooldown.check(url):
            raise TooManyAttemptsError()

        cached = self._cache.get(url)
        if cached is not None:
            return cached

        try:
            endpoint = await self._fetch_webhook(url)
        except (InvalidWebhookError, RateLimitedError) as e:
            logger.warning(
                "Webhook validation failed for %s: %s", redact_webhook_url(url), e,
            )
            raise

        self._cache[url] = endpoint
        return endpoint

    async def _fetch_webhook(self, url: str) -> Endpoint:
        for attempt in range(_MAX_RETRIES + 1):
            try:
                resp = await self._http.get(
                    url,
                    headers={"Content-Type": "application/json"},
                    timeout=self._timeout,
                )
            except httpx.TimeoutException as e:
                raise InvalidWebhookError("Discord did not respond in time") from e
            except httpx.HTTPError as e:
                raise InvalidWebhookError(f"could not reach Discord ({e})") from e

            if resp.status_code != 429:
                break

            delay = retry_after_seconds(resp)
            if (
                attempt >= _MAX_RETRIES
                or delay is None
                or delay > self._max_rate_limit_wait
            ):
                raise RateLimitedError(delay)
            logger.info(
                "Rate limited validating %s; retrying in %.2fs",
                redact_webhook_url(url), delay,
            )
            await asyncio.sleep(delay)

        if not resp.is_success:
            raise InvalidWebhookError(
                f"Invalid webhook URL: {resp.status_code} {resp.reason_phrase}",
                remote_status=resp.status_code,
            )

        try:
            data = resp.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidWebhookError(
                "Discord returned a malformed webhook object",
                remote_status=resp.status_code,
            ) from e
        return parse_webhook_payload(url, data)
