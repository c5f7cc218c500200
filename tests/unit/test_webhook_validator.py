"""Tests for webhook validation: cooldown, cache, backoff and payload parsing."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import httpx
import pytest

from src.models import DEFAULT_AVATAR_URL
from src.webhook.cooldown import ValidationCooldown
from src.webhook.errors import (
    InvalidWebhookError,
    RateLimitedError,
    TooManyAttemptsError,
)
from src.webhook.validator import (
    WebhookValidator,
    parse_webhook_payload,
    retry_after_seconds,
)
from tests.conftest import WEBHOOK_URL, DiscordStub, discord_ok, webhook_object


def _make_validator(stub: DiscordStub, **kwargs: object) -> WebhookValidator:
    defaults: dict[str, object] = {
        "cooldown": ValidationCooldown(window_seconds=5),
        "timeout": 5.0,
        "max_rate_limit_wait": 10.0,
    }
    defaults.update(kwargs)
    return WebhookValidator(stub.client(), **defaults)  # type: ignore[arg-type]


class TestParseWebhookPayload:
    def test_applies_default_avatar(self) -> None:
        endpoint = parse_webhook_payload(WEBHOOK_URL, webhook_object(avatar=None))
        assert endpoint.avatar_url == DEFAULT_AVATAR_URL

    def test_builds_avatar_url_from_hash(self) -> None:
        endpoint = parse_webhook_payload(WEBHOOK_URL, webhook_object(avatar="deadbeef"))
        assert endpoint.avatar_url == "https://cdn.discordapp.com/avatars/123/deadbeef.png"

    def test_applies_default_name(self) -> None:
        endpoint = parse_webhook_payload(WEBHOOK_URL, webhook_object(name=None))
        assert endpoint.name == "Unnamed Webhook"

    def test_copies_identity_fields(self) -> None:
        endpoint = parse_webhook_payload(WEBHOOK_URL, webhook_object(id=77, channel_id=88))
        assert endpoint.id == "77"
        assert endpoint.channel_id == "88"
        assert endpoint.url == WEBHOOK_URL

    def test_missing_id_rejected(self) -> None:
        with pytest.raises(InvalidWebhookError):
            parse_webhook_payload(WEBHOOK_URL, {"name": "x"})

    def test_non_object_rejected(self) -> None:
        with pytest.raises(InvalidWebhookError):
            parse_webhook_payload(WEBHOOK_URL, ["not", "an", "object"])


class TestRetryAfter:
    def test_reads_header(self) -> None:
        resp = httpx.Response(429, headers={"Retry-After": "1.5"})
        assert retry_after_seconds(resp) == 1.5

    def test_falls_back_to_body(self) -> None:
        resp = httpx.Response(429, json={"retry_after": 0.25, "global": False})
        assert retry_after_seconds(resp) == 0.25

    def test_unknown_when_absent(self) -> None:
        assert retry_after_seconds(httpx.Response(429, text="slow down")) is None


class TestWebhookValidator:
    @pytest.mark.asyncio
    async def test_successful_validation(self) -> None:
        stub = DiscordStub(discord_ok)
        validator = _make_validator(stub)
        endpoint = await validator.validate(WEBHOOK_URL)
        assert endpoint.id == "123"
        assert stub.requests[0].method == "GET"
        assert str(stub.requests[0].url) == WEBHOOK_URL

    @pytest.mark.asyncio
    async def test_second_attempt_within_cooldown_rejected(self) -> None:
        stub = DiscordStub(discord_ok)
        validator = _make_validator(stub)
        await validator.validate(WEBHOOK_URL)
        with pytest.raises(TooManyAttemptsError):
            await validator.validate(WEBHOOK_URL)
        assert len(stub.requests) == 1

    @pytest.mark.asyncio
    async def test_cooldown_applies_after_failure(self) -> None:
        stub = DiscordStub(lambda r: httpx.Response(404, json={"code": 10015}))
        validator = _make_validator(stub)
        with pytest.raises(InvalidWebhookError):
            await validator.validate(WEBHOOK_URL)
        with pytest.raises(TooManyAttemptsError):
            await validator.validate(WEBHOOK_URL)

    @pytest.mark.asyncio
    async def test_cached_after_cooldown_expiry(self) -> None:
        stub = DiscordStub(discord_ok)
        validator = _make_validator(stub)
        with patch("src.webhook.cooldown.time") as mock_time:
            mock_time.time.return_value = 1000.0
            first = await validator.validate(WEBHOOK_URL)
            mock_time.time.return_value = 1006.0
            second = await validator.validate(WEBHOOK_URL)
        assert first == second
        assert len(stub.requests) == 1

    @pytest.mark.asyncio
    async def test_failed_validation_not_cached(self) -> None:
        stub = DiscordStub(lambda r: httpx.Response(401))
        validator = _make_validator(stub, cooldown=ValidationCooldown(window_seconds=0))
        for _ in range(2):
            with pytest.raises(InvalidWebhookError):
                await validator.validate(WEBHOOK_URL)
        assert len(stub.requests) == 2
        assert validator.cached(WEBHOOK_URL) is None

    @pytest.mark.asyncio
    async def test_non_success_carries_remote_status(self) -> None:
        stub = DiscordStub(lambda r: httpx.Response(404))
        validator = _make_validator(stub)
        with pytest.raises(InvalidWebhookError) as exc_info:
            await validator.validate(WEBHOOK_URL)
        assert exc_info.value.remote_status == 404
        assert "404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_rate_limit_retried_once(self) -> None:
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "2"}),
            httpx.Response(200, json=webhook_object()),
        ])
        stub = DiscordStub(lambda r: next(responses))
        validator = _make_validator(stub)
        with patch("src.webhook.validator.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            endpoint = await validator.validate(WEBHOOK_URL)
        mock_sleep.assert_awaited_once_with(2.0)
        assert endpoint.id == "123"
        assert len(stub.requests) == 2

    @pytest.mark.asyncio
    async def test_second_rate_limit_surfaces(self) -> None:
        stub = DiscordStub(lambda r: httpx.Response(429, headers={"Retry-After": "1"}))
        validator = _make_validator(stub)
        with patch("src.webhook.validator.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RateLimitedError) as exc_info:
                await validator.validate(WEBHOOK_URL)
        assert mock_sleep.await_count == 1
        assert len(stub.requests) == 2
        assert exc_info.value.retry_after == 1.0

    @pytest.mark.asyncio
    async def test_failure_after_rate_limit_retry_reported(self) -> None:
        responses = iter([
            httpx.Response(429, headers={"Retry-After": "1"}),
            httpx.Response(404, json={"message": "Unknown Webhook"}),
        ])
        stub = DiscordStub(lambda r: next(responses))
        validator = _make_validator(stub)
        with patch("src.webhook.validator.asyncio.sleep", new_callable=AsyncMock):
            with pytest.raises(InvalidWebhookError) as exc_info:
                await validator.validate(WEBHOOK_URL)
        assert exc_info.value.remote_status == 404
        assert len(stub.requests) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_above_cap_fails_without_waiting(self) -> None:
        stub = DiscordStub(lambda r: httpx.Response(429, headers={"Retry-After": "30"}))
        validator = _make_validator(stub)
        with patch("src.webhook.validator.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            with pytest.raises(RateLimitedError):
                await validator.validate(WEBHOOK_URL)
        mock_sleep.assert_not_awaited()
        assert len(stub.requests) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_without_delay_fails(self) -> None:
        stub = DiscordStub(lambda r: httpx.Response(429))
        validator = _make_validator(stub)
        with pytest.raises(RateLimitedError) as exc_info:
            await validator.validate(WEBHOOK_URL)
        assert exc_info.value.retry_after is None

    @pytest.mark.asyncio
    async def test_timeout_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        validator = _make_validator(DiscordStub(handler))
        with pytest.raises(InvalidWebhookError) as exc_info:
            await validator.validate(WEBHOOK_URL)
        assert isinstance(exc_info.value.__cause__, httpx.TimeoutException)

    @pytest.mark.asyncio
    async def test_connect_error_wrapped(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        validator = _make_validator(DiscordStub(handler))
        with pytest.raises(InvalidWebhookError, match="could not reach Discord"):
            await validator.validate(WEBHOOK_URL)

    @pytest.mark.asyncio
    async def test_malformed_body_rejected(self) -> None:
        stub = DiscordStub(lambda r: httpx.Response(200, text="<html>"))
        validator = _make_validator(stub)
        with pytest.raises(InvalidWebhookError):
            await validator.validate(WEBHOOK_URL)

    @pytest.mark.asyncio
    async def test_forget_evicts_cache(self) -> None:
        stub = DiscordStub(discord_ok)
        validator = _make_validator(stub, cooldown=ValidationCooldown(window_seconds=0))
        await validator.validate(WEBHOOK_URL)
        validator.forget(WEBHOOK_URL)
        assert validator.cached(WEBHOOK_URL) is None
        await validator.validate(WEBHOOK_URL)
        assert len(stub.requests) == 2
