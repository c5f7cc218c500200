"""Relay API endpoints.

Provides endpoints for:
- Registering a webhook endpoint (POST /add-webhook)
- Sending a message through an endpoint (POST /send-message)
- Deleting an endpoint (DELETE /webhook/{id})
- Reading recent channel messages via the bot (GET /messages/{channel_id})
- Listing registered endpoints (GET /webhooks)
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from src.webhook.errors import RelayError
from src.webhook.models import OutgoingAttachment

if TYPE_CHECKING:
    from src.webhook.service import RelayService

logger = logging.getLogger(__name__)

# Multipart field names accepted for uploaded files.
_FILE_FIELDS = ("file", "files")


def _client_ip(request: Request) -> str | None:
    return request.client.host if request.client else None


def _error(e: RelayError) -> JSONResponse:
    return JSONResponse({"error": str(e)}, status_code=e.status_code)


async def _read_upload(upload: UploadFile, limit: int) -> OutgoingAttachment:
    # Read one byte past the limit so oversize files are detected without
    # buffering the whole upload.
    data = await upload.read(limit + 1)
    return OutgoingAttachment(
        filename=upload.filename or "file",
        content_type=upload.content_type or "application/octet-stream",
        data=data,
    )


def create_relay_router(service: RelayService) -> APIRouter:
    """Create the relay API router bound to one RelayService."""
    router = APIRouter()

    @router.post("/add-webhook")
    async def add_webhook(request: Request) -> JSONResponse:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            body = None
        url = body.get("url") if isinstance(body, dict) else None

        try:
            registration = await service.register(url, _client_ip(request))
        except RelayError as e:
            logger.info("Error adding webhook: %s", e)
            return _error(e)

        return JSONResponse({
            "endpoint": registration.endpoint.model_dump(by_alias=True),
            "privacyNotice": registration.privacy_notice,
        })

    @router.post("/send-message")
    async def send_message(request: Request) -> JSONResponse:
        form = await request.form()
        try:
            webhook_id = form.get("webhookId")
            if not isinstance(webhook_id, str) or not webhook_id:
                return JSONResponse({"error": "Webhook ID is required"}, status_code=400)
            content = form.get("content")
            if not isinstance(content, str):
                content = None

            uploads = [
                item
                for field in _FILE_FIELDS
                for item in form.getlist(field)
                if isinstance(item, UploadFile)
            ]
            limit = service.settings.max_attachment_bytes
            attachments = [await _read_upload(u, limit) for u in uploads]

            await service.send(webhook_id, content, attachments, _client_ip(request))
        except RelayError as e:
            return _error(e)
        finally:
            await form.close()

        return JSONResponse({"success": True})

    @router.delete("/webhook/{endpoint_id}")
    async def delete_webhook(endpoint_id: str, request: Request) -> JSONResponse:
        try:
            service.delete(endpoint_id, _client_ip(request))
        except RelayError as e:
            return _error(e)
        return JSONResponse({"success": True})

    @router.get("/webhooks")
    async def list_webhooks() -> JSONResponse:
        return JSONResponse(
            [e.model_dump(by_alias=True) for e in service.list_endpoints()],
        )

    @router.get("/messages/{channel_id}")
    async def get_messages(channel_id: str, request: Request) -> JSONResponse:
        try:
            messages = await service.fetch_recent(channel_id, _client_ip(request))
        except RelayError as e:
            return _error(e)
        return JSONResponse([m.model_dump(by_alias=True) for m in messages])

    return router
